import socket

import pytest

from cloudconnect.dp_upload import handle_datapoint_file_upload
from cloudconnect.protocol import (
    ProtocolError,
    SendError,
    ServiceStream,
    encode_blob,
    encode_string,
    encode_uint32,
)


class _Sender:
    def __init__(self, result=(SendError.NONE, "")):
        self.calls = []
        self.result = result

    def __call__(self, cloud_path, content_type, data, timeout):
        self.calls.append((cloud_path, content_type, data, timeout))
        return self.result


@pytest.fixture
def pair():
    server_sock, client_sock = socket.socketpair()
    try:
        yield ServiceStream(server_sock, 2), client_sock, ServiceStream(client_sock, 2)
    finally:
        server_sock.close()
        client_sock.close()


def _read_error(client):
    assert client.read_uint32() == 1
    message = client.read_blob().decode()
    assert client.read_uint32() == 0
    return message


def test_uploads_until_terminate(pair):
    server, raw, client = pair
    raw.sendall(
        encode_uint32(1) + encode_blob(b"a,b\n")
        + encode_uint32(2) + encode_blob(b"{}")
        + encode_uint32(0)
    )
    sender = _Sender()
    assert handle_datapoint_file_upload(server, sender) == 2
    assert sender.calls == [
        ("DataPoint/.csv", "text/plain", b"a,b\n", 5),
        ("DeviceLog/EventLog.json", "text/plain", b"{}", 5),
    ]
    assert client.read_uint32() == 0
    assert client.read_uint32() == 0


def test_terminate_only_uploads_nothing(pair):
    server, raw, _ = pair
    raw.sendall(encode_uint32(0))
    sender = _Sender()
    assert handle_datapoint_file_upload(server, sender) == 0
    assert sender.calls == []


def test_invalid_type_is_reported(pair):
    server, raw, client = pair
    raw.sendall(encode_uint32(7))
    with pytest.raises(ProtocolError):
        handle_datapoint_file_upload(server, _Sender())
    assert _read_error(client) == "Invalid datapoint type"


def test_missing_type_is_reported(pair):
    server, raw, client = pair
    raw.shutdown(socket.SHUT_WR)
    with pytest.raises(ProtocolError):
        handle_datapoint_file_upload(server, _Sender())
    assert _read_error(client) == "Failed to read data type"


def test_bad_blob_is_reported(pair):
    server, raw, client = pair
    raw.sendall(encode_uint32(1) + encode_string("text"))
    sender = _Sender()
    with pytest.raises(ProtocolError):
        handle_datapoint_file_upload(server, sender)
    assert _read_error(client) == "Failed to read datapoint data"
    assert sender.calls == []


def test_send_failure_with_hint(pair):
    server, raw, client = pair
    raw.sendall(encode_uint32(1) + encode_blob(b"x") + encode_uint32(0))
    sender = _Sender((SendError.STATUS_TIMEOUT, "no reply"))
    with pytest.raises(ProtocolError):
        handle_datapoint_file_upload(server, sender)
    assert _read_error(client) == "Timeout, no reply"
    assert len(sender.calls) == 1


def test_send_failure_without_hint(pair):
    server, raw, client = pair
    raw.sendall(encode_uint32(2) + encode_blob(b"x"))
    with pytest.raises(ProtocolError):
        handle_datapoint_file_upload(server, _Sender((SendError.RESPONSE_CLOUD_ERROR, "")))
    assert _read_error(client) == "Cloud error"