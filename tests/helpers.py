"""Line builders and a sample dump shared by the parser, session and CLI tests."""

ESC = "\x1b"

EXCHANGE_ID = "ACD21AD4B7F9D3E-0000000000000001"
EXCHANGE_ID_2 = "ACD21AD4B7F9D3E-0000000000000002"


def header_line(index: int, status: str, node: str = "route1/*-->", millis: int = 93) -> str:
    """Build a colored dump header line as printed by `camel trace`."""
    return (
        f"2025-08-14 00:45:23.{millis:03d}  16397 --- "
        f"[ thread #7 - file://input]        {node} :     {index} - {status}"
    )


def exchange_line(exchange_id: str = EXCHANGE_ID, pattern: str = "InOnly") -> str:
    return (
        f"    Exchange    {ESC}[99;2m(DefaultExchange){ESC}[m  "
        f"{ESC}[95;2m{pattern}{ESC}[m  {ESC}[32m{exchange_id}{ESC}[m"
    )


def header_field_line(key: str, value: str, type_name: str = "String") -> str:
    return f"    Header      {ESC}[99;2m({type_name}){ESC}[m  {key}  {value}"


def body_marker_line(type_name: str = "String", byte_count: int | None = None) -> str:
    line = f"    Body        {ESC}[99;2m({type_name}){ESC}[m"
    if byte_count is not None:
        line += f" {ESC}[2m(bytes: {byte_count}){ESC}[m"
    return line


CREATED = f"{ESC}[32mCreated{ESC}[m"
PROCESSED = f"{ESC}[32mProcessed{ESC}[m {ESC}[2m(2ms){ESC}[m"
COMPLETED = f"{ESC}[32mCompleted{ESC}[m {ESC}[2m(3ms){ESC}[m"

SAMPLE_DUMP = [
    "Tracing started, waiting for messages...",
    header_line(1, CREATED, millis=93),
    "    Endpoint    file://input",
    exchange_line(EXCHANGE_ID),
    header_field_line("CamelFileName", "20250415.csv"),
    "    Message     (GenericFileMessage)",
    body_marker_line("String", 11),
    "Hello",
    "World",
    header_line(2, PROCESSED, node="route1/log1", millis=95),
    exchange_line(EXCHANGE_ID),
    header_line(3, CREATED, node="route2/*-->", millis=97),
    "    Endpoint    timer://tick",
    header_line(4, COMPLETED, node="route3/*<--", millis=99),
    "    Service     http://0.0.0.0:8080/hello",
    "                (protocol=http)",
    exchange_line(EXCHANGE_ID_2, pattern="InOut"),
    body_marker_line("String"),
    '{"greeting":',
    '  "hi"}',
]
