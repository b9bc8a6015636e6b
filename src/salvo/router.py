"""Translate engine events into wire-protocol packets.

The router lives *outside* the sessions so that translation rules are declared
in a single place and can evolve without touching game logic. It keeps the
identity → connection table for the server and writes each event only to the
recipients that currently hold a connection; events for unreachable
participants are dropped, since they resynchronize through ``restore``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from .common import PacketType
from .events import Event

logger = logging.getLogger(__name__)


class Outbound(Protocol):
    def send(self, ptype: PacketType, obj: Any) -> bool: ...


class EventRouter:
    """Registry/session subscriber that converts ``Event`` → ``send()`` calls."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conns: dict[str, Outbound] = {}

    # ------------------------------------------------------------------
    # Connection table
    # ------------------------------------------------------------------
    def attach(self, identity: str, conn: Outbound) -> Outbound | None:
        """Route *identity*'s events to *conn*; return the connection it replaces."""
        with self._lock:
            previous = self._conns.get(identity)
            self._conns[identity] = conn
        return previous if previous is not conn else None

    def detach(self, identity: str, conn: Outbound) -> bool:
        """Forget *conn* if it is still the live one for *identity*."""
        with self._lock:
            if self._conns.get(identity) is conn:
                del self._conns[identity]
                return True
            return False

    def connection(self, identity: str) -> Outbound | None:
        with self._lock:
            return self._conns.get(identity)

    # ------------------------------------------------------------------
    # Public dispatch entry
    # ------------------------------------------------------------------
    def __call__(self, ev: Event) -> None:
        try:
            self.dispatch(ev)
        except Exception:  # noqa: BLE001
            logger.exception("Event routing failed for %s", ev)

    def dispatch(self, ev: Event) -> None:
        packet = {"event": ev.type, "data": ev.payload}
        for identity in ev.recipients:
            conn = self.connection(identity)
            if conn is None:
                logger.debug("Dropping %s for unreachable %s", ev.type, identity)
                continue
            if not conn.send(PacketType.EVENT, packet):
                logger.debug("Send of %s to %s failed", ev.type, identity)
