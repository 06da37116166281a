"""Upload of data point and event files handed over by local processes.

A client sends one or more records, each an integer type followed by a blob,
and ends the exchange with the type ``0``. Every uploaded record is answered
with an OK response; the first failure is answered with an error response
and ends the exchange.
"""

from __future__ import annotations

import enum
import logging

from .protocol import ProtocolError, SendError, ServiceStream, send_error_message

logger = logging.getLogger(__name__)

REQ_TAG_DP_FILE_REQUEST = "upload_1_dp"

CONTENT_TYPE = "text/plain"
UPLOAD_TIMEOUT = 5
METRICS_PATH = "DataPoint/.csv"
EVENTS_PATH = "DeviceLog/EventLog.json"


class UploadType(enum.IntEnum):
    """Kind of record sent by the client."""

    TERMINATE = 0
    METRICS = 1
    EVENTS = 2


_CLOUD_PATHS = {
    UploadType.METRICS: METRICS_PATH,
    UploadType.EVENTS: EVENTS_PATH,
}


def _fail(stream: ServiceStream, message: str, cause: Exception = None):
    try:
        stream.send_error(message)
    except ProtocolError as exc:
        logger.warning("Could not send error to peer: %s", exc)
    raise ProtocolError(message) from cause


def _read_type(stream: ServiceStream) -> UploadType:
    try:
        raw = stream.read_uint32()
    except ProtocolError as exc:
        _fail(stream, "Failed to read data type", exc)
    try:
        return UploadType(raw)
    except ValueError:
        _fail(stream, "Invalid datapoint type")


def handle_datapoint_file_upload(stream: ServiceStream, sender) -> int:
    """Serve an upload request read from ``stream``; return the number of files uploaded.

    ``sender(cloud_path, content_type, data, timeout)`` uploads one file and
    returns a ``(SendError, hint)`` pair. Failures are reported to the peer,
    then raised as ProtocolError.
    """
    uploaded = 0
    while True:
        upload_type = _read_type(stream)
        if upload_type is UploadType.TERMINATE:
            return uploaded

        try:
            data = stream.read_blob()
        except ProtocolError as exc:
            _fail(stream, "Failed to read datapoint data", exc)

        error, hint = sender(_CLOUD_PATHS[upload_type], CONTENT_TYPE, data, UPLOAD_TIMEOUT)
        if error != SendError.NONE:
            logger.error("Send error: %s Hint: %s", error, hint)
            message = send_error_message(error)
            if hint:
                message = f"{message}, {hint}"
            _fail(stream, message)

        stream.send_ok()
        uploaded += 1