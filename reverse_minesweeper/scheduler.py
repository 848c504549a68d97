"""Single-threaded event pump feeding ticks and oracle answers to a MoveSelector."""

import logging
from collections import deque
from typing import Any, Deque, List, Optional, Tuple

from .board import BoardSize
from .config import ANALYSIS_INTERVAL_MS
from .selector import MoveSelector

logger = logging.getLogger(__name__)

TICK = "tick"
ANSWER = "answer"


class GameScheduler:
    """
    Queues the two external event sources (the periodic analysis tick and the
    oracle's answer) and dispatches them to the selector one at a time.

    Resetting bumps a generation counter; events queued before the reset are
    dropped instead of being applied to the new session.
    """

    def __init__(self, selector: MoveSelector, interval_ms: int = ANALYSIS_INTERVAL_MS) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive.")
        self.selector = selector
        self.interval_ms = interval_ms
        self.generation = 0
        self._queue: Deque[Tuple[int, str, Any]] = deque()
        self._last_tick_ms: Optional[int] = None

    @property
    def pending_events(self) -> int:
        return len(self._queue)

    def post_tick(self) -> None:
        self._queue.append((self.generation, TICK, None))

    def post_answer(self, content: object) -> None:
        self._queue.append((self.generation, ANSWER, content))

    def advance_clock(self, now_ms: int) -> bool:
        """Post a tick when at least one interval has passed since the last one."""
        if self._last_tick_ms is not None and now_ms - self._last_tick_ms < self.interval_ms:
            return False
        self._last_tick_ms = now_ms
        self.post_tick()
        return True

    def reset(self, size: Optional[BoardSize] = None) -> None:
        """Reset the selector (optionally to a new size) and invalidate queued events."""
        self.generation += 1
        self._last_tick_ms = None
        self.selector.reset(size)

    def run_pending(self) -> List[Any]:
        """Dispatch every queued event in order. Returns the selector's results."""
        results: List[Any] = []
        while self._queue:
            generation, kind, payload = self._queue.popleft()
            if generation != self.generation:
                logger.debug("Dropping stale %s event from generation %d.", kind, generation)
                continue
            if kind == TICK:
                results.append(self.selector.tick())
            else:
                results.append(self.selector.answer(payload))
        return results
