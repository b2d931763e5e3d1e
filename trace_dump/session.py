"""TraceSession: wires line sources to per-integration parsers and event stores."""

import asyncio
import logging
from typing import Callable

from trace_dump.config import TracerConfig
from trace_dump.manager import TraceManager, TraceStatus
from trace_dump.models import ExchangeEvent
from trace_dump.parser import DumpParser
from trace_dump.store import EventStore

logger = logging.getLogger(__name__)

EventHook = Callable[[str, ExchangeEvent], None]


class TraceSession:
    """Host control surface: start, stop and clear tracing per integration.

    A fresh DumpParser is created every time a source is opened for an
    integration; events it emits land in that integration's EventStore and
    are passed to on_event.
    """

    def __init__(
        self,
        config: TracerConfig,
        on_event: EventHook | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = config
        self._on_event = on_event
        self._loop = loop
        self._parsers: dict[str, DumpParser] = {}
        self._stores: dict[str, EventStore] = {}
        self.manager = TraceManager(config, self.feed, self.finish)

    def events(self, integration_id: str) -> EventStore:
        return self._stores.setdefault(integration_id, EventStore())

    def parser(self, integration_id: str) -> DumpParser | None:
        return self._parsers.get(integration_id)

    def status(self, integration_id: str) -> TraceStatus:
        return self.manager.status(integration_id)

    # ------------------------------------------------------------------
    # Line routing
    # ------------------------------------------------------------------

    def open(self, integration_id: str) -> DumpParser:
        """Start a new parsing session, finishing any previous one."""
        self.finish(integration_id)
        store = self.events(integration_id)

        def deliver(event: ExchangeEvent) -> None:
            store.append(event)
            if self._on_event:
                self._on_event(integration_id, event)

        parser = DumpParser(deliver, self._config, self._loop)
        self._parsers[integration_id] = parser
        return parser

    def feed(self, integration_id: str, line: str) -> None:
        parser = self._parsers.get(integration_id)
        if parser is None or parser.closed:
            logger.debug("Dropping line for %s: no open parser", integration_id)
            return
        parser.feed(line)

    def finish(self, integration_id: str) -> None:
        """End the stream for an integration, emitting its last pending event."""
        parser = self._parsers.pop(integration_id, None)
        if parser is None:
            return
        parser.done()
        logger.info(
            "Parsing finished for %s: %d events emitted, %d discarded",
            integration_id, parser.emitted_count, parser.discarded_count,
        )

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    async def start(self, integration_id: str) -> None:
        if self.manager.is_running(integration_id):
            return
        self.open(integration_id)
        await self.manager.start(integration_id)
        if self.manager.status(integration_id) == TraceStatus.ERROR:
            self.finish(integration_id)

    async def stop(self, integration_id: str) -> None:
        await self.manager.stop(integration_id)
        self.finish(integration_id)

    def clear(self, integration_id: str) -> None:
        """Reset the consumer-side store; the running parser is untouched."""
        self.events(integration_id).clear()

    async def close(self) -> None:
        await self.manager.close()
        for integration_id in list(self._parsers):
            self.finish(integration_id)
