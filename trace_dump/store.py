"""EventStore: consumer-side collection of emitted events, grouped by exchange id."""

import logging

from trace_dump.models import ExchangeEvent

logger = logging.getLogger(__name__)


class EventStore:
    """Keeps events per exchange id in emission order. Not persisted."""

    def __init__(self) -> None:
        self._by_exchange: dict[str, list[ExchangeEvent]] = {}
        self._total = 0

    def append(self, event: ExchangeEvent) -> bool:
        """Store an event. Events without an exchange id are ignored."""
        exchange_id = event.exchange_id.strip()
        if not exchange_id:
            return False
        self._by_exchange.setdefault(exchange_id, []).append(event)
        self._total += 1
        return True

    def exchange_ids(self) -> list[str]:
        return list(self._by_exchange)

    def events_for(self, exchange_id: str) -> list[ExchangeEvent]:
        return list(self._by_exchange.get(exchange_id, []))

    def clear(self) -> None:
        logger.info("Clearing %d events across %d exchanges", self._total, len(self._by_exchange))
        self._by_exchange.clear()
        self._total = 0

    def __len__(self) -> int:
        return self._total
