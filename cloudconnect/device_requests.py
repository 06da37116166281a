"""Device requests: cloud requests delivered to local processes that registered a target.

A local process registers a target name and the TCP port it listens on.
When the cloud sends a request for that target, the payload is forwarded to
the process, and its reply goes back to the cloud. When the exchange is over,
the process also receives a status message.

The receive service is reached through a *receiver* object with two methods:

``add_target(target, data_callback, status_callback, max_request_size)``
    Registers ``target``. Raises :class:`ReceiveFailed` on failure.
``remove_target(target)``
    Unregisters ``target``. Raises :class:`ReceiveFailed` on failure.

A data callback is called as ``data_callback(target, transport, payload)``
and returns the response bytes. It raises :class:`ReceiveFailed` to refuse
the request. A status callback is called as
``status_callback(target, transport, error)``.
"""

from __future__ import annotations

import enum
import io
import logging
import socket
import struct
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Dict, Iterator, Optional

from .protocol import SOCKET_READ_TIMEOUT_SEC, ProtocolError, ServiceStream
from .strings import trim

logger = logging.getLogger(__name__)

REQ_TAG_REGISTER_DR = "register_devicerequest"
REQ_TAG_UNREGISTER_DR = "unregister_devicerequest"

TARGET_EDP_CERT_UPDATE = "builtin/edp_certificate_update"
DEVICE_REQUEST_TAG = "DEVREQ:"
LOCALHOST = "127.0.0.1"

REQUEST_CB = "request"
STATUS_CB = "status"

# Passed as the maximum request size: no limit.
NO_LIMIT = None

_PORT_MASK = 0xFFFF
_SIZE = struct.Struct("@N")
_PORT = struct.Struct("@H")


class ReceiveError(enum.IntEnum):
    """Result of a receive (device request) operation."""

    NONE = 0
    CCAPI_NOT_RUNNING = 1
    NO_RECEIVE_SUPPORT = 2
    INSUFFICIENT_MEMORY = 3
    INVALID_TARGET = 4
    TARGET_NOT_ADDED = 5
    TARGET_ALREADY_ADDED = 6
    INVALID_DATA_CB = 7
    INVALID_STATUS_CB = 8
    LOCK_FAILED = 9
    USER_REFUSED_TARGET = 10
    REQUEST_TOO_BIG = 11
    STATUS_CANCEL = 12
    STATUS_TIMEOUT = 13
    STATUS_SESSION_ERROR = 14


class Transport(enum.IntEnum):
    """Transport a request arrived on."""

    TCP = 0
    UDP = 1
    SMS = 2


_RECEIVE_ERROR_MESSAGES = {
    ReceiveError.NONE: "Success",
    ReceiveError.INVALID_TARGET: "Invalid target",
    ReceiveError.TARGET_NOT_ADDED: "Target is not registered",
    ReceiveError.TARGET_ALREADY_ADDED: "Target already registered",
    ReceiveError.INSUFFICIENT_MEMORY: "Out of memory",
    ReceiveError.STATUS_TIMEOUT: "Timeout",
}


def receive_error_message(error) -> str:
    """Return a user-facing description of a receive result."""
    try:
        return _RECEIVE_ERROR_MESSAGES[ReceiveError(error)]
    except (KeyError, ValueError):
        logger.error("%s Unknown internal connection error: receive error [%s]",
                     DEVICE_REQUEST_TAG, error)
        return "Internal connector error"


class ReceiveFailed(Exception):
    """Raised when a receive operation fails; ``error`` holds the reason."""

    def __init__(self, error) -> None:
        super().__init__(receive_error_message(error))
        self.error = error


@dataclass
class RequestData:
    """A registered target and the local port of the process serving it."""

    port: int
    target: str


class RequestRegistry:
    """Registered targets, kept in registration order."""

    def __init__(self) -> None:
        self._requests: Dict[str, RequestData] = {}

    def add(self, request: RequestData) -> None:
        """Register ``request``; raise ValueError if its target is already present."""
        if request.target in self._requests:
            raise ValueError(f"target already registered: {request.target}")
        self._requests[request.target] = request

    def find(self, target: str) -> Optional[RequestData]:
        """Return the registration of ``target``, or None."""
        return self._requests.get(target)

    def remove(self, target: str) -> RequestData:
        """Remove and return the registration of ``target``; raise KeyError if absent."""
        return self._requests.pop(target)

    def __len__(self) -> int:
        return len(self._requests)

    def __iter__(self) -> Iterator[RequestData]:
        return iter(list(self._requests.values()))

    def __contains__(self, target: object) -> bool:
        return target in self._requests


def default_accept(target: str, transport: Transport) -> bool:
    """Accept requests for unregistered targets on every enabled transport."""
    logger.debug("%s accept: target='%s' - transport='%s'",
                 DEVICE_REQUEST_TAG, target, transport)
    return True


def default_data(target: str, transport: Transport, payload: bytes) -> bytes:
    """Answer a request for a target that nobody registered."""
    logger.debug("%s not registered target - target='%s' - transport='%s'",
                 DEVICE_REQUEST_TAG, target, transport)
    request = trim(bytes(payload).decode("utf-8", errors="replace")) if payload else None
    logger.debug("%s not registered target - request='%s'", DEVICE_REQUEST_TAG, request)
    return f"Target '{target}' not registered".encode("utf-8")


def default_status(target: str, transport: Transport, error) -> None:
    """Log the outcome of a request for an unregistered target."""
    logger.debug("%s status: target='%s' - transport='%s' - error='%s'",
                 DEVICE_REQUEST_TAG, target, transport, error)


def _builtin_status(target: str, transport: Transport, error) -> None:
    logger.debug("%s builtin status: target='%s' - transport='%s'",
                 DEVICE_REQUEST_TAG, target, transport)
    if error != ReceiveError.NONE:
        logger.error("%s Error on device request response: target='%s' - "
                     "transport='%s' - error='%s'",
                     DEVICE_REQUEST_TAG, target, transport, error)


def _edp_cert_update(certificate_path, target: str, transport: Transport,
                     payload: bytes) -> bytes:
    logger.debug("%s edp certificate update: target='%s' - transport='%s'",
                 DEVICE_REQUEST_TAG, target, transport)
    if not payload:
        logger.error("%s received invalid data", DEVICE_REQUEST_TAG)
        raise ReceiveFailed(ReceiveError.INVALID_DATA_CB)
    if not certificate_path:
        logger.error("%s Invalid client certificate", DEVICE_REQUEST_TAG)
        raise ReceiveFailed(ReceiveError.INVALID_DATA_CB)
    try:
        Path(certificate_path).write_bytes(bytes(payload))
    except OSError as exc:
        logger.error("%s Unable to write certificate %s: %s",
                     DEVICE_REQUEST_TAG, certificate_path, exc)
        raise ReceiveFailed(ReceiveError.INSUFFICIENT_MEMORY) from exc
    logger.debug("%s certificate saved at %s", DEVICE_REQUEST_TAG, certificate_path)
    return b""


def _read_struct(stream: io.BytesIO, layout: struct.Struct) -> int:
    chunk = stream.read(layout.size)
    if len(chunk) < layout.size:
        raise ValueError("unexpected end of file")
    return layout.unpack(chunk)[0]


def _report_error(stream: Optional[ServiceStream], message: str) -> None:
    if stream is None:
        return
    try:
        stream.send_error(message)
    except ProtocolError as exc:
        logger.warning("%s Could not send error to peer: %s", DEVICE_REQUEST_TAG, exc)


class DeviceRequestService:
    """Registers local targets with the receiver and relays their requests."""

    def __init__(self, receiver, host: str = LOCALHOST) -> None:
        self.receiver = receiver
        self.host = host
        self.timeout = SOCKET_READ_TIMEOUT_SEC
        self.registry = RequestRegistry()

    def _read_request(self, stream: ServiceStream) -> RequestData:
        try:
            port = stream.read_uint32()
        except ProtocolError:
            _report_error(stream, "Failed to read port")
            raise
        try:
            target = stream.read_string()
        except ProtocolError:
            _report_error(stream, "Failed to read target")
            raise
        try:
            end = stream.read_uint32()
        except ProtocolError:
            _report_error(stream, "Failed to read message end")
            raise
        if end != 0:
            _report_error(stream, "Failed to read message end")
            raise ProtocolError(f"unexpected message end: {end}")
        return RequestData(port & _PORT_MASK, target)

    def _register(self, request: RequestData,
                  stream: Optional[ServiceStream] = None) -> None:
        try:
            self.receiver.add_target(request.target, self.device_request,
                                     self.request_done, NO_LIMIT)
        except ReceiveFailed as exc:
            if exc.error != ReceiveError.TARGET_ALREADY_ADDED:
                logger.error("%s Could not register device request: %s",
                             DEVICE_REQUEST_TAG, exc.error)
                _report_error(stream, receive_error_message(exc.error))
                raise
            previous = self.registry.find(request.target)
            if previous is not None:
                logger.warning("%s Target %s has been overriden by new process "
                               "listening on port %d",
                               DEVICE_REQUEST_TAG, request.target, request.port)
                previous.port = request.port
                return
            logger.error("%s Target already registered in the receiver, but not "
                         "registered here", DEVICE_REQUEST_TAG)
            _report_error(stream, "Internal connector error")
        self.registry.add(request)

    def handle_register(self, stream: ServiceStream) -> None:
        """Serve a registration request read from ``stream``.

        Failures are reported to the peer, then raised.
        """
        request = self._read_request(stream)
        self._register(request, stream)
        stream.send_ok()

    def handle_unregister(self, stream: ServiceStream) -> None:
        """Serve an unregistration request read from ``stream``.

        Failures are reported to the peer, then raised.
        """
        request = self._read_request(stream)
        try:
            self.receiver.remove_target(request.target)
        except ReceiveFailed as exc:
            _report_error(stream, receive_error_message(exc.error))
            raise
        try:
            self.registry.remove(request.target)
        except KeyError:
            logger.error("%s Could not remove registered target %s",
                         DEVICE_REQUEST_TAG, request.target)
        stream.send_ok()

    def import_requests(self, path) -> int:
        """Register the targets saved in ``path``; return how many were registered.

        Reading stops at the first malformed entry. Raises OSError if the
        file cannot be read.
        """
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            logger.error("%s Could not read registered targets from %s: %s",
                         DEVICE_REQUEST_TAG, path, exc)
            raise
        stream = io.BytesIO(data)
        try:
            count = _read_struct(stream, _SIZE)
        except ValueError:
            logger.error("%s Could not read number of registered targets",
                         DEVICE_REQUEST_TAG)
            return 0
        imported = 0
        for index in range(count):
            try:
                port = _read_struct(stream, _PORT)
                length = _read_struct(stream, _SIZE)
            except ValueError:
                logger.error("%s Could not read registered target %d",
                             DEVICE_REQUEST_TAG, index)
                break
            if length == 0 or length > len(data) - stream.tell():
                logger.error("%s Invalid length of registered target %d",
                             DEVICE_REQUEST_TAG, index)
                break
            target = stream.read(length).decode("utf-8", errors="surrogateescape")
            try:
                self._register(RequestData(port, target))
            except ReceiveFailed:
                continue
            imported += 1
        return imported

    def dump_requests(self, path) -> int:
        """Save the registered targets to ``path``; return how many were saved.

        Nothing is written when no target is registered.
        """
        requests = list(self.registry)
        if not requests:
            return 0
        parts = [_SIZE.pack(len(requests))]
        for request in requests:
            target = request.target.encode("utf-8", errors="surrogateescape")
            parts += [_PORT.pack(request.port), _SIZE.pack(len(target)), target]
        try:
            Path(path).write_bytes(b"".join(parts))
        except OSError as exc:
            logger.error("%s Could not dump registered targets to %s: %s",
                         DEVICE_REQUEST_TAG, path, exc)
            raise
        return len(requests)

    def _connect(self, target: str) -> Optional[socket.socket]:
        request = self.registry.find(target)
        if request is None:
            logger.error("%s Could not get port for registered target %s",
                         DEVICE_REQUEST_TAG, target)
            return None
        try:
            return socket.create_connection((self.host, request.port),
                                            timeout=self.timeout)
        except OSError as exc:
            logger.error("%s Could not connect to socket to deliver device "
                         "request: %s", DEVICE_REQUEST_TAG, exc)
            return None

    def device_request(self, target: str, transport: Transport,
                       payload: bytes) -> bytes:
        """Forward a request to the process serving ``target``; return its reply.

        Any failure gives an empty reply.
        """
        sock = self._connect(target)
        if sock is None:
            return b""
        with sock:
            stream = ServiceStream(sock, self.timeout)
            try:
                stream.write_string(REQUEST_CB)
                stream.write_string(target)
                stream.write_blob(payload)
                return stream.read_blob()
            except ProtocolError as exc:
                logger.error("%s Could not exchange device request: %s",
                             DEVICE_REQUEST_TAG, exc)
                return b""

    def request_done(self, target: str, transport: Transport, error) -> None:
        """Send the final status of a request to the process serving ``target``."""
        message = receive_error_message(error)
        if error != ReceiveError.NONE:
            logger.error("%s Error on device request response, target='%s' - "
                         "transport='%s' - error='%s'",
                         DEVICE_REQUEST_TAG, target, transport, error)
        sock = self._connect(target)
        if sock is None:
            return
        with sock:
            stream = ServiceStream(sock, self.timeout)
            try:
                stream.write_string(STATUS_CB)
                stream.write_string(target)
                stream.write_uint32(int(error))
                stream.write_string(message)
            except ProtocolError as exc:
                logger.error("%s Could not write device request to socket: %s",
                             DEVICE_REQUEST_TAG, exc)

    def register_builtin_requests(self, certificate_path=None) -> None:
        """Register the built-in certificate update target.

        Received certificates are written to ``certificate_path``. Raises
        ReceiveFailed if the target cannot be registered.
        """
        try:
            self.receiver.add_target(TARGET_EDP_CERT_UPDATE,
                                     partial(_edp_cert_update, certificate_path),
                                     _builtin_status, NO_LIMIT)
        except ReceiveFailed as exc:
            logger.error("%s Cannot register target '%s', error %s",
                         DEVICE_REQUEST_TAG, TARGET_EDP_CERT_UPDATE, exc.error)
            raise