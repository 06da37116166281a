import socket

import pytest

from cloudconnect.protocol import (
    RESP_END_OF_MESSAGE,
    RESP_ERROR,
    ProtocolError,
    SendError,
    ServiceStream,
    encode_blob,
    encode_string,
    encode_uint32,
    send_error_message,
)


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    try:
        yield ServiceStream(left, timeout=2), ServiceStream(right, timeout=2), right
    finally:
        left.close()
        right.close()


def test_encode_uint32_matches_documented_form():
    assert encode_uint32(3645) == b"i:3645\n"


def test_encode_string_matches_documented_form():
    assert encode_string("Hello World") == b"s:i:11\nHello World\n"


def test_encode_blob_uses_blob_tag():
    encoded = encode_blob(b"Hello World")
    assert encoded.startswith(b"b:")
    assert encoded[2:] == encode_string("Hello World")[2:]


@pytest.mark.parametrize("value", [-1, 0xFFFFFFFF + 1])
def test_encode_uint32_rejects_out_of_range(value):
    with pytest.raises(ValueError):
        encode_uint32(value)


@pytest.mark.parametrize("value", [0, 1, 3645, 0xFFFFFFFF])
def test_uint32_round_trip(pair, value):
    reader, writer, _ = pair
    writer.write_uint32(value)
    assert reader.read_uint32() == value


@pytest.mark.parametrize("text", ["", "Hello World", "line\nbreak", "caf\u00e9"])
def test_string_round_trip(pair, text):
    reader, writer, _ = pair
    writer.write_string(text)
    assert reader.read_string() == text


@pytest.mark.parametrize("data", [b"", b"\x00\x01\n\xff", bytes(range(256)) * 40])
def test_blob_round_trip(pair, data):
    reader, writer, _ = pair
    writer.write_blob(data)
    assert reader.read_blob() == data


def test_several_values_in_one_chunk(pair):
    reader, _, raw = pair
    raw.sendall(encode_uint32(7) + encode_string("target") + encode_blob(b"x") + encode_uint32(0))
    assert reader.read_uint32() == 7
    assert reader.read_string() == "target"
    assert reader.read_blob() == b"x"
    assert reader.read_uint32() == 0


def test_send_ok_writes_end_marker(pair):
    reader, writer, _ = pair
    writer.send_ok()
    assert reader.read_uint32() == RESP_END_OF_MESSAGE


def test_send_error_layout(pair):
    reader, writer, _ = pair
    writer.send_error("Invalid request type")
    assert reader.read_uint32() == RESP_ERROR
    assert reader.read_blob() == b"Invalid request type"
    assert reader.read_uint32() == RESP_END_OF_MESSAGE


def test_read_string_rejects_blob(pair):
    reader, writer, _ = pair
    writer.write_blob(b"data")
    with pytest.raises(ProtocolError):
        reader.read_string()


def test_read_blob_rejects_missing_terminator(pair):
    reader, _, raw = pair
    raw.sendall(b"b:i:2\nhiX")
    with pytest.raises(ProtocolError):
        reader.read_blob()


@pytest.mark.parametrize("line", [b"x:1\n", b"i:12a\n", b"i:\n", b"1\n"])
def test_read_uint32_rejects_malformed(pair, line):
    reader, _, raw = pair
    raw.sendall(line)
    with pytest.raises(ProtocolError):
        reader.read_uint32()


def test_read_uint32_rejects_overlong_line(pair):
    reader, _, raw = pair
    raw.sendall(b"i:" + b"1" * 100 + b"\n")
    with pytest.raises(ProtocolError):
        reader.read_uint32()


def test_read_times_out():
    left, right = socket.socketpair()
    try:
        stream = ServiceStream(left, timeout=0.05)
        with pytest.raises(ProtocolError):
            stream.read_uint32()
    finally:
        left.close()
        right.close()


def test_read_after_peer_closes(pair):
    reader, _, raw = pair
    raw.sendall(b"i:4")
    raw.shutdown(socket.SHUT_WR)
    with pytest.raises(ProtocolError):
        reader.read_uint32()


def test_send_error_message_known():
    assert send_error_message(SendError.NONE) == "Success"
    assert send_error_message(SendError.STATUS_TIMEOUT) == "Timeout"
    assert send_error_message(SendError.INSUFFICIENT_MEMORY) == "Out of memory"


def test_send_error_message_unknown():
    assert send_error_message(9999) == "Internal connector error"


def test_every_send_error_has_message():
    messages = [send_error_message(error) for error in SendError]
    assert "Internal connector error" not in messages
    assert len(set(messages)) == len(messages)