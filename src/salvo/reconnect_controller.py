"""ReconnectController: grace-period timers for participants who lost their connection."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Dict

logger = logging.getLogger(__name__)


class ReconnectController:
    """
    Holds a seat for each unreachable identity until its grace period runs out.

    ``hold`` starts (or restarts) a timer; ``cancel`` stops it when the
    identity comes back. If the timer fires first, *on_expire* is called with
    the identity from the timer thread.
    """

    def __init__(
        self,
        timeout: float,
        on_expire: Callable[[str], None],
        *,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.timeout = timeout
        self._on_expire = on_expire
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}
        # Generation of the live timer per identity; stale timers compare unequal
        self._current: Dict[str, int] = {}
        self._generation = itertools.count()

    def hold(self, identity: str) -> None:
        """Start the grace window for *identity*."""
        with self._lock:
            previous = self._timers.pop(identity, None)
            if previous is not None:
                previous.cancel()
            gen = next(self._generation)
            timer = self._timer_factory(self.timeout, self._fire, args=(identity, gen))
            timer.daemon = True
            self._timers[identity] = timer
            self._current[identity] = gen
            timer.start()
        logger.info("Holding seat for %s for up to %ss", identity, self.timeout)

    def cancel(self, identity: str) -> bool:
        """Stop the grace window; return True if one was pending."""
        with self._lock:
            timer = self._timers.pop(identity, None)
            self._current.pop(identity, None)
        if timer is None:
            return False
        timer.cancel()
        logger.debug("Grace timer for %s cancelled", identity)
        return True

    def pending(self, identity: str) -> bool:
        with self._lock:
            return identity in self._timers

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)

    def _fire(self, identity: str, gen: int) -> None:
        with self._lock:
            if self._current.get(identity) != gen:
                # cancelled or superseded after the timer thread woke up
                return
            del self._current[identity]
            del self._timers[identity]
        logger.info("Grace period expired for %s", identity)
        self._on_expire(identity)

    def shutdown(self) -> None:
        """Cancel every pending timer without firing it."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._current.clear()
        for timer in timers:
            timer.cancel()
