"""User-facing failure notifications with a per-message cooldown."""

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = 60.0


class FailureNotifier:
    """Forward registry failures to a sink without repeating them.

    The same message is delivered at most once per ``cooldown`` seconds.
    Every delivered message is also logged as a warning.
    """

    def __init__(
        self,
        sink: Callable[[str], None] | None = None,
        cooldown: float = DEFAULT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sink = sink
        self.cooldown = cooldown
        self._clock = clock
        self._last_sent: dict[str, float] = {}

    def notify(self, message: str) -> bool:
        """Deliver ``message`` unless it was sent within the cooldown."""
        now = self._clock()
        self._prune(now)
        last = self._last_sent.get(message)
        if last is not None and now - last < self.cooldown:
            logger.debug("Suppressed repeated notification: %s", message)
            return False

        self._last_sent[message] = now
        logger.warning(message)
        if self.sink is not None:
            self.sink(message)
        return True

    def reset(self) -> None:
        self._last_sent.clear()

    @property
    def pending(self) -> int:
        """Messages still inside their cooldown window."""
        return len(self._last_sent)

    def _prune(self, now: float) -> None:
        expired = [m for m, sent in self._last_sent.items() if now - sent >= self.cooldown]
        for message in expired:
            del self._last_sent[message]
