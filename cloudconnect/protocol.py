"""Wire format for the local service socket.

Every value is sent as ``<type>:<value>\\n`` where the type is one character:
``i`` for an integer, ``s`` for a string and ``b`` for a binary blob. Strings
and blobs carry their length as an encoded integer before the payload::

    i:3645\\n
    s:i:11\\nHello World\\n

A response ends with the integer ``0``; an error response is the integer
``1`` followed by a blob holding the message, then the end marker.
"""

import enum
import logging
import re
import socket

logger = logging.getLogger(__name__)

TERMINATOR = b"\n"
SEPARATOR = b":"

DT_INTEGER = b"i"
DT_STRING = b"s"
DT_BLOB = b"b"

RESP_END_OF_MESSAGE = 0
RESP_ERROR = 1

# The cloud gives up on synchronous requests after 75 seconds, so there is
# no point in waiting longer for a local peer.
SOCKET_READ_TIMEOUT_SEC = 75

_UINT32_MAX = 0xFFFFFFFF
_MAX_INTEGER_LINE = 48
_RECV_CHUNK = 4096
_INTEGER_RE = re.compile(rb"[+-]?[0-9]+")


class ProtocolError(Exception):
    """Raised when a value cannot be read from or written to the peer."""


class SendError(enum.IntEnum):
    """Result of sending data to the cloud."""

    NONE = 0
    CCAPI_NOT_RUNNING = 1
    TRANSPORT_NOT_STARTED = 2
    FILESYSTEM_NOT_SUPPORTED = 3
    INVALID_CLOUD_PATH = 4
    INVALID_CONTENT_TYPE = 5
    INVALID_DATA = 6
    INVALID_LOCAL_PATH = 7
    NOT_A_FILE = 8
    ACCESSING_FILE = 9
    INVALID_HINT_POINTER = 10
    INSUFFICIENT_MEMORY = 11
    LOCK_FAILED = 12
    INITIATE_ACTION_FAILED = 13
    STATUS_CANCEL = 14
    STATUS_TIMEOUT = 15
    STATUS_SESSION_ERROR = 16
    RESPONSE_BAD_REQUEST = 17
    RESPONSE_UNAVAILABLE = 18
    RESPONSE_CLOUD_ERROR = 19


_SEND_ERROR_MESSAGES = {
    SendError.NONE: "Success",
    SendError.CCAPI_NOT_RUNNING: "CCAPI not running",
    SendError.TRANSPORT_NOT_STARTED: "Transport not started",
    SendError.FILESYSTEM_NOT_SUPPORTED: "Filesystem not supported",
    SendError.INVALID_CLOUD_PATH: "Invalid cloud path",
    SendError.INVALID_CONTENT_TYPE: "Invalid content type",
    SendError.INVALID_DATA: "Invalid data",
    SendError.INVALID_LOCAL_PATH: "Invalid local path",
    SendError.NOT_A_FILE: "Not a file",
    SendError.ACCESSING_FILE: "Error accessing file",
    SendError.INVALID_HINT_POINTER: "Invalid hint pointer",
    SendError.INSUFFICIENT_MEMORY: "Out of memory",
    SendError.LOCK_FAILED: "Lock failed",
    SendError.INITIATE_ACTION_FAILED: "Initiate action failed",
    SendError.STATUS_CANCEL: "Cancelled",
    SendError.STATUS_TIMEOUT: "Timeout",
    SendError.STATUS_SESSION_ERROR: "Session error",
    SendError.RESPONSE_BAD_REQUEST: "Bad request",
    SendError.RESPONSE_UNAVAILABLE: "Response unavailable",
    SendError.RESPONSE_CLOUD_ERROR: "Cloud error",
}


def send_error_message(error) -> str:
    """Return a user-facing description of a send result."""
    try:
        return _SEND_ERROR_MESSAGES[SendError(error)]
    except ValueError:
        logger.error("unknown internal connection error: send error [%s]", error)
        return "Internal connector error"


def encode_uint32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer."""
    if not 0 <= value <= _UINT32_MAX:
        raise ValueError(f"value out of unsigned 32-bit range: {value}")
    return DT_INTEGER + SEPARATOR + str(value).encode("ascii") + TERMINATOR


def _encode_sized(type_tag: bytes, payload: bytes) -> bytes:
    return type_tag + SEPARATOR + encode_uint32(len(payload)) + payload + TERMINATOR


def encode_string(text: str) -> bytes:
    """Encode a string as UTF-8 with its length prefix."""
    return _encode_sized(DT_STRING, text.encode("utf-8"))


def encode_blob(data) -> bytes:
    """Encode opaque binary data with its length prefix."""
    return _encode_sized(DT_BLOB, bytes(data))


class ServiceStream:
    """Reads and writes encoded values over a connected stream socket."""

    def __init__(self, sock, timeout=SOCKET_READ_TIMEOUT_SEC):
        self._sock = sock
        self.timeout = timeout
        self._buffer = bytearray()

    def _fill(self) -> None:
        self._sock.settimeout(self.timeout)
        try:
            chunk = self._sock.recv(_RECV_CHUNK)
        except socket.timeout as exc:
            raise ProtocolError("timed out waiting for data") from exc
        except OSError as exc:
            raise ProtocolError(f"read failed: {exc}") from exc
        if not chunk:
            raise ProtocolError("connection closed by peer")
        self._buffer += chunk

    def _read_exact(self, count: int) -> bytes:
        while len(self._buffer) < count:
            self._fill()
        data = bytes(self._buffer[:count])
        del self._buffer[:count]
        return data

    def _read_line(self, limit: int) -> bytes:
        while True:
            index = self._buffer.find(TERMINATOR)
            if 0 <= index <= limit:
                line = bytes(self._buffer[:index])
                del self._buffer[: index + 1]
                return line
            if index > limit or len(self._buffer) > limit:
                raise ProtocolError("line too long")
            self._fill()

    def _send(self, data: bytes) -> None:
        try:
            self._sock.sendall(data)
        except OSError as exc:
            raise ProtocolError(f"write failed: {exc}") from exc

    def _recv_sized(self, type_tag: bytes) -> bytes:
        header = self._read_exact(2)
        if header != type_tag + SEPARATOR:
            raise ProtocolError(f"expected type {type_tag!r}, got {header!r}")
        length = self.read_uint32()
        payload = self._read_exact(length + 1)
        if payload[-1:] != TERMINATOR:
            raise ProtocolError("missing terminator after payload")
        return payload[:-1]

    def read_uint32(self) -> int:
        """Read an encoded integer, reduced to 32 bits."""
        line = self._read_line(_MAX_INTEGER_LINE)
        if not line.startswith(DT_INTEGER + SEPARATOR):
            raise ProtocolError(f"not an integer value: {line!r}")
        digits = line[2:]
        if not _INTEGER_RE.fullmatch(digits):
            raise ProtocolError(f"invalid integer: {digits!r}")
        return int(digits) & _UINT32_MAX

    def read_string(self) -> str:
        """Read an encoded string."""
        payload = self._recv_sized(DT_STRING)
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("string is not valid UTF-8") from exc

    def read_blob(self) -> bytes:
        """Read an encoded binary blob."""
        return self._recv_sized(DT_BLOB)

    def write_uint32(self, value: int) -> None:
        """Write an encoded integer."""
        self._send(encode_uint32(value))

    def write_string(self, text: str) -> None:
        """Write an encoded string."""
        self._send(encode_string(text))

    def write_blob(self, data) -> None:
        """Write an encoded binary blob."""
        self._send(encode_blob(data))

    def send_ok(self) -> None:
        """Write the end-of-response marker."""
        self.write_uint32(RESP_END_OF_MESSAGE)

    def send_error(self, message: str) -> None:
        """Write an error response carrying ``message``."""
        self._send(
            encode_uint32(RESP_ERROR)
            + encode_blob(message.encode("utf-8"))
            + encode_uint32(RESP_END_OF_MESSAGE)
        )