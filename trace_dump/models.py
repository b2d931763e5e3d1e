"""Exchange event model — one entry per message passing through a route step."""

from dataclasses import dataclass, field, asdict, replace
from typing import Any

# Reserved header keys carrying structural metadata rather than message headers
ENDPOINT_KEY = "Endpoint"
SERVICE_KEY = "Service"
MESSAGE_TYPE_KEY = "MessageType"
EXCHANGE_TYPE_KEY = "ExchangeType"
EXCHANGE_PATTERN_KEY = "ExchangePattern"
BODY_TYPE_KEY = "BodyType"
BODY_BYTES_KEY = "BodyBytes"
BODY_SIZE_KEY = "BodySize"


@dataclass
class ExchangeEvent:
    timestamp: str       # "YYYY-MM-DD HH:MM:SS.mmm", verbatim from the header line
    step: str            # "<node> : <index> - <status>"
    status: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    exchange_id: str = ""

    def snapshot(self) -> "ExchangeEvent":
        """Return a detached copy safe to hand to consumers."""
        return replace(self, headers=dict(self.headers))


def event_to_dict(event: ExchangeEvent) -> dict[str, Any]:
    """Convert an ExchangeEvent to the JSON shape consumed by trace viewers."""
    data = asdict(event)
    data["exchangeId"] = data.pop("exchange_id")
    return data
