"""Local TCP server through which processes on the device reach connector services.

Each connection starts with a string tag naming the request; the handler
registered for that tag serves the rest of the connection.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, Mapping, Optional

from .protocol import SOCKET_READ_TIMEOUT_SEC, ProtocolError, ServiceStream

logger = logging.getLogger(__name__)

CONNECTOR_REQUEST_PORT = 977
LOCALHOST = "127.0.0.1"
REQUEST_TAG_TIMEOUT = 20

_LISTEN_BACKLOG = 3
_ACCEPT_POLL_SEC = 0.2

Handler = Callable[[ServiceStream], object]


def _send_error(stream: ServiceStream, message: str) -> None:
    try:
        stream.send_error(message)
    except ProtocolError as exc:
        logger.warning("Could not send error to peer: %s", exc)


class RequestServer:
    """Accepts local connections and dispatches them by request tag."""

    def __init__(self, handlers: Mapping[str, Handler], host: str = LOCALHOST,
                 port: int = CONNECTOR_REQUEST_PORT) -> None:
        self.handlers = dict(handlers)
        self.host = host
        self.port = port
        self.address = None
        self._listener: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def handle_connection(self, sock: socket.socket) -> bool:
        """Serve one connection and close it; return True if a handler was found."""
        with sock:
            stream = ServiceStream(sock, REQUEST_TAG_TIMEOUT)
            try:
                tag = stream.read_string()
            except ProtocolError as exc:
                logger.error("Error reading request tag, %s", exc)
                _send_error(stream, "Failed to read request code")
                return False
            handler = self.handlers.get(tag)
            if handler is None:
                _send_error(stream, "Invalid request type")
                return False
            stream.timeout = SOCKET_READ_TIMEOUT_SEC
            try:
                handler(stream)
            except Exception:
                logger.exception("Error handling request tagged with: '%s'", tag)
            return True

    def _serve(self, listener: socket.socket) -> None:
        try:
            while not self._stopping.is_set():
                try:
                    conn, _ = listener.accept()
                except socket.timeout:
                    continue
                except OSError as exc:
                    if not self._stopping.is_set():
                        logger.error("Failed to accept request: %s", exc)
                    break
                self.handle_connection(conn)
        finally:
            listener.close()

    def start(self) -> None:
        """Bind the listening socket and serve requests in a background thread."""
        if self.running:
            raise RuntimeError("request server already running")
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        if hasattr(socket, "SO_REUSEPORT"):
            try:
                listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except OSError as exc:
                logger.warning("Failed to set SO_REUSE* on request serversocket: %s", exc)
        try:
            listener.bind((self.host, self.port))
            listener.listen(_LISTEN_BACKLOG)
        except OSError:
            logger.error("Failed to bind to local socket")
            listener.close()
            raise
        listener.settimeout(_ACCEPT_POLL_SEC)
        self.address = listener.getsockname()
        self._stopping.clear()
        self._listener = listener
        self._thread = threading.Thread(target=self._serve, args=(listener,),
                                        name="request-server", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop accepting requests and wait for the server thread to finish."""
        if self._thread is None:
            return
        self._stopping.set()
        self._thread.join()
        self._thread = None
        self._listener = None

    def __enter__(self) -> "RequestServer":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()