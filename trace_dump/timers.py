"""Generation-keyed emission timers on the asyncio event loop."""

import asyncio
import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class TimerKind(Enum):
    COMPLETION = "completion"
    BODY_IDLE = "body_idle"


class EmissionTimers:
    """Delayed callbacks tied to the event currently under construction.

    Each new event bumps `generation`. A callback only runs if the generation
    it was armed for is still current, so a timer that outlives its event is
    a no-op. Timer kinds compete: arming one cancels every pending timer.

    The loop is fixed at construction: either the one passed in, or the loop
    running in the calling coroutine. Constructing without either raises
    RuntimeError.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError(
                    "EmissionTimers needs an event loop: construct it inside a "
                    "coroutine or pass loop= explicitly"
                ) from None
        self._loop = loop
        self._handles: dict[TimerKind, asyncio.TimerHandle] = {}
        self.generation = 0

    def next_generation(self) -> int:
        """Cancel everything and start tracking a new event."""
        self.cancel_all()
        self.generation += 1
        return self.generation

    def arm(self, kind: TimerKind, delay: float, callback: Callable[[], None]) -> None:
        self.cancel_all()
        generation = self.generation
        self._handles[kind] = self._loop.call_later(delay, self._fire, kind, generation, callback)

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def is_armed(self, kind: TimerKind) -> bool:
        return kind in self._handles

    @property
    def pending(self) -> int:
        return len(self._handles)

    def _fire(self, kind: TimerKind, generation: int, callback: Callable[[], None]) -> None:
        self._handles.pop(kind, None)
        if generation != self.generation:
            logger.debug("Dropping stale %s timer (generation %d)", kind.value, generation)
            return
        callback()
