"""Streaming parser for `camel trace --action=dump` output.

Usage:
    async def consume(lines):
        parser = DumpParser(on_event)
        for line in lines:
            parser.feed(line)
            await asyncio.sleep(0)
        parser.done()

Timers run on an asyncio loop. DumpParser picks up the running loop when it
is constructed inside a coroutine; outside one, pass loop= explicitly or the
constructor raises RuntimeError. Timers only fire while that loop runs.

Exactly one event is under construction at a time. It becomes visible to the
consumer through one of four triggers, whichever comes first:

  - completion timer  Exchange id seen on a Completed/Processed step with no body
  - exact size        accumulated body bytes reached the declared (bytes: N)
  - body idle timer   no further body line within the debounce window
  - flush             next header line, or done()

Each event is delivered at most once, and only once its exchange id is known.
"""

import asyncio
import logging
from typing import Callable

from trace_dump.classifiers import (
    CONTENT_CLASSIFIERS,
    BodyMarker,
    ExchangeLine,
    HeaderField,
    HeaderLine,
    ServiceContinuation,
    StructuralField,
    parse_header_line,
)
from trace_dump.config import TracerConfig
from trace_dump.models import (
    BODY_BYTES_KEY,
    BODY_SIZE_KEY,
    BODY_TYPE_KEY,
    EXCHANGE_PATTERN_KEY,
    EXCHANGE_TYPE_KEY,
    SERVICE_KEY,
    ExchangeEvent,
)
from trace_dump.preprocess import preprocess
from trace_dump.timers import EmissionTimers, TimerKind

logger = logging.getLogger(__name__)


class ParserClosedError(RuntimeError):
    """Raised when feed() is called after done()."""


class DumpParser:
    def __init__(
        self,
        on_event: Callable[[ExchangeEvent], None],
        config: TracerConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._on_event = on_event
        self._config = config or TracerConfig()
        self._timers = EmissionTimers(loop)
        self._event: ExchangeEvent | None = None
        self._terminal = False
        self._emitted = False
        self._in_body = False
        self._has_body_line = False
        self._expect_service_continuation = False
        self._expected_body_bytes: int | None = None
        self._accumulated_body_bytes = 0
        self._closed = False
        self.emitted_count = 0
        self.discarded_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_pending_event(self) -> bool:
        """True while an event is under construction and not yet delivered."""
        return self._event is not None and not self._emitted

    # ------------------------------------------------------------------
    # Stream contract
    # ------------------------------------------------------------------

    def feed(self, line: str) -> None:
        """Feed a single line (without trailing newline)."""
        if self._closed:
            raise ParserClosedError("feed() called after done()")

        clean = preprocess(line)
        header = parse_header_line(clean)
        if header:
            self._start_event(header)
            return

        # Lines before the first header carry no information
        if self._event is None:
            return

        for classifier in CONTENT_CLASSIFIERS:
            update = classifier(clean)
            if update is not None and self._apply(update):
                return

        self._expect_service_continuation = False
        if self._in_body:
            self._append_body(line)

    def done(self) -> None:
        """Signal end of stream and emit the last pending event, if any."""
        if self._closed:
            return
        self._flush()
        self._timers.cancel_all()
        self._closed = True
        logger.debug(
            "Parser done: %d emitted, %d discarded",
            self.emitted_count, self.discarded_count,
        )

    # ------------------------------------------------------------------
    # Event lifecycle
    # ------------------------------------------------------------------

    def _start_event(self, header: HeaderLine) -> None:
        if self._event is not None:
            self._flush()
        self._timers.next_generation()
        self._event = ExchangeEvent(
            timestamp=header.timestamp,
            step=header.step,
            status=header.status,
        )
        self._terminal = header.is_terminal
        self._emitted = False
        self._in_body = False
        self._has_body_line = False
        self._expect_service_continuation = False
        self._expected_body_bytes = None
        self._accumulated_body_bytes = 0

    def _flush(self) -> None:
        event = self._event
        if event is None:
            return
        self._timers.cancel_all()
        if not self._emitted:
            if event.exchange_id.strip():
                self._emit("flush")
            else:
                self.discarded_count += 1
                logger.debug("Discarding event without exchange id: %s", event.step)
        self._event = None

    def _emit(self, trigger: str) -> bool:
        event = self._event
        if event is None or self._emitted or not event.exchange_id:
            return False
        self._emitted = True
        self.emitted_count += 1
        self._timers.cancel_all()
        snapshot = event.snapshot()
        logger.debug("Emitting exchange %s at %s (%s)", snapshot.exchange_id, snapshot.step, trigger)
        try:
            self._on_event(snapshot)
        except Exception:
            logger.exception("on_event callback failed for exchange %s", snapshot.exchange_id)
        return True

    def _arm(self, kind: TimerKind, delay: float) -> None:
        self._timers.arm(kind, delay, lambda: self._emit(kind.value))

    # ------------------------------------------------------------------
    # Content updates
    # ------------------------------------------------------------------

    def _apply(self, update) -> bool:
        """Apply a classifier update to the current event. False = not accepted."""
        event = self._event
        headers = event.headers

        if isinstance(update, ServiceContinuation):
            if not self._expect_service_continuation:
                return False
            prev = headers.get(SERVICE_KEY, "")
            headers[SERVICE_KEY] = f"{prev} ({update.value})" if prev else f"({update.value})"
            self._expect_service_continuation = False
            return True

        self._expect_service_continuation = False

        if isinstance(update, ExchangeLine):
            if update.exchange_type:
                headers[EXCHANGE_TYPE_KEY] = update.exchange_type
            if update.pattern:
                headers[EXCHANGE_PATTERN_KEY] = update.pattern
            if update.exchange_id:
                self._on_exchange_id(update.exchange_id)
        elif isinstance(update, HeaderField):
            headers[update.key] = update.value
        elif isinstance(update, StructuralField):
            headers[update.key] = update.value
            self._expect_service_continuation = update.expect_continuation
        elif isinstance(update, BodyMarker):
            self._enter_body(update)
        else:
            raise TypeError(f"unsupported field update: {update!r}")
        return True

    def _on_exchange_id(self, exchange_id: str) -> None:
        self._event.exchange_id = exchange_id
        # Likely no body follows; a short delay still lets trailing structural lines land
        if (
            not self._emitted
            and not self._in_body
            and self._expected_body_bytes is None
            and self._terminal
        ):
            self._arm(TimerKind.COMPLETION, self._config.completion_delay)

    def _enter_body(self, marker: BodyMarker) -> None:
        headers = self._event.headers
        if marker.content_type:
            headers[BODY_TYPE_KEY] = marker.content_type
        if marker.byte_count is not None:
            headers[BODY_BYTES_KEY] = str(marker.byte_count)
        if marker.size is not None:
            headers[BODY_SIZE_KEY] = str(marker.size)
        self._expected_body_bytes = marker.byte_count
        self._accumulated_body_bytes = 0
        self._in_body = True
        self._timers.cancel_all()

    def _append_body(self, line: str) -> None:
        event = self._event
        line_bytes = len(line.encode("utf-8"))
        if self._has_body_line:
            event.body += "\n" + line
            self._accumulated_body_bytes += 1 + line_bytes
        else:
            event.body = line
            self._accumulated_body_bytes += line_bytes
            self._has_body_line = True

        # Debounce for bodies whose byte count is unknown or never matches exactly
        if not self._emitted:
            self._arm(TimerKind.BODY_IDLE, self._config.body_idle_delay)

        if (
            self._expected_body_bytes is not None
            and self._accumulated_body_bytes >= self._expected_body_bytes
        ):
            self._emit("exact size")
