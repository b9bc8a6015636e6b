"""Threaded TCP server exposing the engine over the framed packet protocol.

One thread per connection. A connection opens with a ``HELLO`` packet carrying
the client's previous identity (or null); the server answers with the private
identity to use from now on plus the public handle other players see and,
when that identity holds a seat, a ``restore`` event. Outbound packets go
through a per-connection writer thread.
Every later ``EVENT`` packet is a client command (see ``salvo.commands``).
Rejected commands are answered with an ``ERROR`` packet to the sender only.
"""

from __future__ import annotations

import argparse
import contextlib
import itertools
import logging
import os
import queue
import signal
import socket
import sys
import threading
from typing import Any

from . import config as _cfg
from .commands import (
    AttackCommand,
    Command,
    CreateCommand,
    JoinCommand,
    LeaveCommand,
    RegenerateCommand,
    UploadCommand,
    parse_command,
)
from .common import FrameError, PacketType, enable_encryption, recv_pkt, send_pkt
from .errors import ProtocolError
from .registry import SessionRegistry
from .router import EventRouter

HOST = _cfg.DEFAULT_HOST
PORT = _cfg.DEFAULT_PORT

# Initialize module-level logger
logger = logging.getLogger(__name__)


class Connection:
    """One client socket with its own writer thread.

    ``send`` only enqueues, so a peer that stops reading stalls nothing but
    its own writer. Once the bounded queue fills up the connection is closed.
    """

    def __init__(self, sock: socket.socket, addr: Any = None, *, queue_size: int | None = None):
        self.sock = sock
        self.addr = addr
        self.rfile = sock.makefile("rb")
        self.wfile = sock.makefile("wb")
        self.identity: str | None = None
        self._seq = itertools.count()
        self._outbox: queue.Queue = queue.Queue(maxsize=queue_size or _cfg.SEND_QUEUE)
        self._closed = threading.Event()
        self._writer = threading.Thread(target=self._write_loop, daemon=True)
        self._writer.start()

    def send(self, ptype: PacketType, obj: Any) -> bool:
        """Queue *obj* for the writer; return False if the peer is gone or stalled."""
        if self._closed.is_set():
            return False
        try:
            self._outbox.put_nowait((ptype, obj))
        except queue.Full:
            logger.warning("%s stopped reading; dropping the connection", self.identity or self.addr)
            self.close()
            return False
        return True

    def _write_loop(self) -> None:
        while True:
            item = self._outbox.get()
            if item is None or self._closed.is_set():
                return
            ptype, obj = item
            try:
                send_pkt(self.wfile, ptype, next(self._seq) & 0xFFFFFFFF, obj)
            except FrameError as e:
                logger.error("Cannot frame %s packet for %s: %s", ptype.name, self.identity, e)
            except (OSError, ValueError):
                # ValueError: file already closed by close()
                return

    def recv(self) -> tuple[PacketType, int, Any]:
        return recv_pkt(self.rfile)

    def close(self) -> None:
        self._closed.set()
        with contextlib.suppress(queue.Full):
            self._outbox.put_nowait(None)
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        for f in (self.rfile, self.wfile):
            with contextlib.suppress(OSError, ValueError):
                f.close()
        self.sock.close()


class SalvoServer:
    """Accept loop plus per-connection command dispatch."""

    def __init__(self, registry: SessionRegistry | None = None, host: str = HOST, port: int = PORT):
        self.host = host
        self.port = port
        self.registry = registry or SessionRegistry()
        self.router = EventRouter()
        self.registry.subscribe(self.router)
        self._sock: socket.socket | None = None

    # -------------------- per-connection --------------------
    def handle_connection(self, sock: socket.socket, addr: Any = None) -> None:
        """Serve one client until it disconnects."""
        conn = Connection(sock, addr)
        try:
            try:
                ptype, _seq, obj = conn.recv()
            except (FrameError, OSError) as e:
                logger.info("Handshake from %s failed: %s", addr, e)
                return
            first = None
            token = None
            if ptype is PacketType.HELLO and isinstance(obj, dict):
                token = obj.get("token") if isinstance(obj.get("token"), str) else None
            else:
                first = obj
            identity = self.registry.identify(token)
            conn.identity = identity
            replaced = self.router.attach(identity, conn)
            if replaced is not None:
                logger.info("%s opened a new connection; dropping the old one", identity)
                replaced.close()
            conn.send(PacketType.HELLO, {"identity": identity, "player": self.registry.handle_of(identity)})
            logger.info("Connection from %s is %s", addr, identity)
            self.registry.resume(identity)

            if first is not None:
                self.dispatch(conn, first)
            while True:
                try:
                    ptype, _seq, obj = conn.recv()
                except (FrameError, OSError, ValueError) as e:
                    # ValueError: stream closed by a replacing connection
                    logger.info("%s disconnected: %s", identity, e)
                    return
                if ptype is not PacketType.EVENT:
                    logger.debug("Ignoring %s packet from %s", ptype.name, identity)
                    continue
                self.dispatch(conn, obj)
        finally:
            identity = conn.identity
            if identity is not None and self.router.detach(identity, conn):
                self.registry.disconnect(identity)
            conn.close()

    def dispatch(self, conn: Connection, obj: Any) -> None:
        """Run one command for *conn*; reject it to the sender alone on error."""
        name = obj.get("event") if isinstance(obj, dict) else None
        try:
            cmd = parse_command(obj)
            self.execute(conn.identity, cmd)
        except ProtocolError as e:
            logger.debug("Rejected %r from %s: %s", name, conn.identity, e)
            conn.send(PacketType.ERROR, {"event": name, "reason": str(e), "error": type(e).__name__})

    def execute(self, identity: str, cmd: Command) -> None:
        reg = self.registry
        if isinstance(cmd, CreateCommand):
            reg.create_room(identity)
        elif isinstance(cmd, JoinCommand):
            reg.join_room(identity, cmd.code)
        elif isinstance(cmd, AttackCommand):
            reg.attack(identity, cmd.x, cmd.y)
        elif isinstance(cmd, LeaveCommand):
            reg.leave(identity)
        elif isinstance(cmd, RegenerateCommand):
            reg.regenerate(identity)
        elif isinstance(cmd, UploadCommand):
            reg.submit_board(identity, cmd.rows)

    # -------------------- accept loop --------------------
    def serve_forever(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_sock:
            server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_sock.bind((self.host, self.port))
            server_sock.listen()
            self._sock = server_sock
            logger.info("Salvo server listening on %s:%s", self.host, self.port)
            while True:
                try:
                    conn, addr = server_sock.accept()
                except OSError:
                    # listening socket closed by shutdown()
                    break
                threading.Thread(target=self.handle_connection, args=(conn, addr), daemon=True).start()

    def shutdown(self) -> None:
        self.registry.shutdown()
        if self._sock is not None:
            with contextlib.suppress(OSError):
                self._sock.close()


def main() -> None:  # pragma: no cover – side-effect entrypoint
    parser = argparse.ArgumentParser(description="Salvo game server")
    parser.add_argument("--host", default=HOST, help="Address to bind.")
    parser.add_argument("--port", type=int, default=PORT, help="Port to listen on.")
    parser.add_argument(
        "--secure",
        nargs="?",
        const=_cfg.DEFAULT_KEY_HEX,
        default=None,
        metavar="HEXKEY",
        help="Enable AES-GCM framing (optionally with a hex key).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity.")
    parser.add_argument(
        "-s",
        "--silent",
        "-q",
        "--quiet",
        dest="silent",
        action="store_true",
        help="Suppress all output.",
    )
    args = parser.parse_args()

    if args.debug:
        os.environ["SALVO_DEBUG"] = "1"

    # Determine log level from CLI flags:
    if args.silent:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.secure is not None:
        enable_encryption(bytes.fromhex(args.secure))
        logger.warning("AES-GCM framing ENABLED")

    server = SalvoServer(host=args.host, port=args.port)

    def _shutdown(signum, frame):
        # ensure the "^C" echo doesn't get stuck on our log line
        sys.stderr.write("\n")
        logger.info("Received signal %s, shutting down", signum)
        server.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    server.serve_forever()


if __name__ == "__main__":  # pragma: no cover
    main()
