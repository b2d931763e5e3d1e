"""Line classifiers for `camel trace --action=dump` output.

Every classifier takes a preprocessed line and returns a typed field update,
or None when the line is not its kind. Content classifiers are tried in
CONTENT_CLASSIFIERS order and the first accepted update wins:

  1. Exchange   → correlation id, exchange type and pattern
  2. Header     → message header key/value
  3. Endpoint / Service / (continuation) / Message → structural metadata
  4. Body       → start of the body section
"""

import re
from dataclasses import dataclass

from trace_dump.models import (
    ENDPOINT_KEY,
    MESSAGE_TYPE_KEY,
    SERVICE_KEY,
)
from trace_dump.preprocess import strip_ansi

# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

# 2025-08-14 00:45:23.093  16397 --- [ thread #7 - file://input]   route1/*--> :     1 - Created
_HEADER_RE = re.compile(
    r'^(?P<timestamp>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3})\s+'
    r'\d+\s+---\s+'
    r'\[[^\]]*]\s+'
    r'(?P<node>[^:]+)\s*:\s*'
    r'(?P<index>\d+)\s*-\s*'
    r'(?P<status>.*)$'
)

_TRAILING_PARENS_RE = re.compile(r'\s*\([^)]*\)\s*$')
_TERMINAL_STATUS_RE = re.compile(r'^(Completed|Processed)\b', re.IGNORECASE)

_EXCHANGE_RE = re.compile(r'^\s*Exchange\s+(?P<rest>.*)$')
_EXCHANGE_TYPE_RE = re.compile(r'^\((?P<type>[^)]*)\)\s*(?P<rest>.*)$')
_EXCHANGE_ID_RE = re.compile(r'^[A-Za-z0-9-]+$')
_MIN_EXCHANGE_ID_LEN = 16

_HEADER_FIELD_RE = re.compile(r'^\s*Header\s+(?:\([^)]*\)\s+)?(?P<rest>.*)$')
_KEY_VALUE_RE = re.compile(r'^(?P<key>\S.*?)\s{2,}(?P<value>.*)$')

_ENDPOINT_RE = re.compile(r'^\s*Endpoint\s+(?P<value>.*\S)\s*$')
_SERVICE_RE = re.compile(r'^\s*Service\s+(?P<value>.*\S)\s*$')
_CONTINUATION_RE = re.compile(r'^\s*\((?P<value>[^)]*)\)\s*$')
_MESSAGE_RE = re.compile(r'^\s*Message\s+\((?P<value>[^)]*)\)\s*$')

_BODY_RE = re.compile(r'^\s*Body\s+')
_BODY_TYPE_RE = re.compile(r'Body\s*\((?P<type>[^)]*)\)')
_BODY_BYTES_RE = re.compile(r'\(bytes:\s*(?P<bytes>\d+)\)')
_BODY_SIZE_RE = re.compile(r'\(size:\s*(?P<size>\d+)\b')

# ---------------------------------------------------------------------------
# Field updates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeaderLine:
    timestamp: str
    node: str
    index: str
    status: str

    @property
    def step(self) -> str:
        return f"{self.node} : {self.index} - {self.status}"

    @property
    def is_terminal(self) -> bool:
        return bool(_TERMINAL_STATUS_RE.match(self.status))


@dataclass(frozen=True)
class ExchangeLine:
    exchange_id: str            # "" when no token looks like an id
    exchange_type: str | None = None
    pattern: str | None = None


@dataclass(frozen=True)
class HeaderField:
    key: str
    value: str


@dataclass(frozen=True)
class StructuralField:
    key: str
    value: str
    expect_continuation: bool = False


@dataclass(frozen=True)
class ServiceContinuation:
    value: str


@dataclass(frozen=True)
class BodyMarker:
    content_type: str | None = None
    byte_count: int | None = None
    size: int | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def looks_like_exchange_id(token: str) -> bool:
    return (
        "-" in token
        and len(token) >= _MIN_EXCHANGE_ID_LEN
        and bool(_EXCHANGE_ID_RE.match(token))
    )


def find_exchange_id(tokens: list[str]) -> int:
    """Index of the right-most token that looks like an exchange id, or -1."""
    for i in range(len(tokens) - 1, -1, -1):
        if looks_like_exchange_id(tokens[i]):
            return i
    return -1


# ---------------------------------------------------------------------------
# Classifiers
# ---------------------------------------------------------------------------


def parse_header_line(line: str) -> HeaderLine | None:
    """Recognize the line that opens a new exchange event."""
    m = _HEADER_RE.match(line)
    if not m:
        return None
    status = _TRAILING_PARENS_RE.sub("", m.group("status").strip())
    return HeaderLine(
        timestamp=m.group("timestamp"),
        node=m.group("node").strip(),
        index=m.group("index"),
        status=strip_ansi(status).strip(),
    )


def classify_exchange(line: str) -> ExchangeLine | None:
    """Exchange    (DefaultExchange)  InOut  ACD21AD4B7F9D3E-0000000000000001"""
    m = _EXCHANGE_RE.match(line)
    if not m:
        return None
    rest = m.group("rest")
    exchange_type = None
    type_match = _EXCHANGE_TYPE_RE.match(rest)
    if type_match:
        exchange_type = type_match.group("type").strip()
        rest = type_match.group("rest")

    tokens = rest.split()
    idx = find_exchange_id(tokens)
    if idx < 0:
        return ExchangeLine(exchange_id="", exchange_type=exchange_type)
    return ExchangeLine(
        exchange_id=tokens[idx],
        exchange_type=exchange_type,
        pattern=tokens[idx - 1] if idx > 0 else None,
    )


def classify_header(line: str) -> HeaderField | None:
    """Header      (String)  CamelFileName  20250415.csv"""
    m = _HEADER_FIELD_RE.match(line)
    if not m:
        return None
    kv = _KEY_VALUE_RE.match(m.group("rest"))
    if not kv:
        return None
    return HeaderField(key=kv.group("key").strip(), value=kv.group("value").strip())


def classify_endpoint(line: str) -> StructuralField | None:
    m = _ENDPOINT_RE.match(line)
    if not m:
        return None
    return StructuralField(ENDPOINT_KEY, m.group("value").strip())


def classify_service(line: str) -> StructuralField | None:
    m = _SERVICE_RE.match(line)
    if not m:
        return None
    return StructuralField(SERVICE_KEY, m.group("value").strip(), expect_continuation=True)


def classify_service_continuation(line: str) -> ServiceContinuation | None:
    """Bare '(protocol=http)' line; only meaningful right after a Service line."""
    m = _CONTINUATION_RE.match(line)
    if not m:
        return None
    return ServiceContinuation(m.group("value"))


def classify_message(line: str) -> StructuralField | None:
    m = _MESSAGE_RE.match(line)
    if not m:
        return None
    return StructuralField(MESSAGE_TYPE_KEY, m.group("value").strip())


def classify_body_marker(line: str) -> BodyMarker | None:
    """Body        (String) (bytes: 249)"""
    if not _BODY_RE.match(line):
        return None
    type_match = _BODY_TYPE_RE.search(line)
    bytes_match = _BODY_BYTES_RE.search(line)
    size_match = _BODY_SIZE_RE.search(line)
    return BodyMarker(
        content_type=type_match.group("type").strip() if type_match else None,
        byte_count=int(bytes_match.group("bytes")) if bytes_match else None,
        size=int(size_match.group("size")) if size_match else None,
    )


CONTENT_CLASSIFIERS = (
    classify_exchange,
    classify_header,
    classify_endpoint,
    classify_service,
    classify_service_continuation,
    classify_message,
    classify_body_marker,
)
