import socket

import pytest

from cloudconnect.protocol import (
    ProtocolError,
    ServiceStream,
    encode_string,
    encode_uint32,
)
from cloudconnect.services import CONNECTOR_REQUEST_PORT, RequestServer


def _echo(stream):
    text = stream.read_string()
    stream.write_string(text.upper())
    stream.send_ok()


def _boom(stream):
    raise RuntimeError("handler failed")


@pytest.fixture
def server():
    srv = RequestServer({"echo": _echo, "boom": _boom}, "127.0.0.1", 0)
    srv.start()
    try:
        yield srv
    finally:
        srv.stop()


def _connect(server):
    sock = socket.create_connection(server.address, timeout=5)
    return sock, ServiceStream(sock, 5)


def _read_error(client):
    assert client.read_uint32() == 1
    message = client.read_blob().decode()
    assert client.read_uint32() == 0
    return message


def test_default_port():
    assert CONNECTOR_REQUEST_PORT == 977
    assert RequestServer({}).port == 977


def test_dispatches_to_handler(server):
    sock, client = _connect(server)
    with sock:
        sock.sendall(encode_string("echo") + encode_string("abc"))
        assert client.read_string() == "ABC"
        assert client.read_uint32() == 0


def test_unknown_tag(server):
    sock, client = _connect(server)
    with sock:
        sock.sendall(encode_string("nothing"))
        assert _read_error(client) == "Invalid request type"


def test_malformed_tag(server):
    sock, client = _connect(server)
    with sock:
        sock.sendall(encode_uint32(5))
        assert _read_error(client) == "Failed to read request code"


def test_failing_handler_does_not_stop_server(server):
    sock, client = _connect(server)
    with sock:
        sock.sendall(encode_string("boom"))
        with pytest.raises(ProtocolError):
            client.read_uint32()
    sock, client = _connect(server)
    with sock:
        sock.sendall(encode_string("echo") + encode_string("ok"))
        assert client.read_string() == "OK"
    assert server.running


def test_handle_connection_directly():
    srv = RequestServer({"echo": _echo})
    server_sock, client_sock = socket.socketpair()
    with client_sock:
        client_sock.sendall(encode_string("echo") + encode_string("hi"))
        assert srv.handle_connection(server_sock) is True
        client = ServiceStream(client_sock, 2)
        assert client.read_string() == "HI"
        assert client.read_uint32() == 0
    assert server_sock.fileno() == -1


def test_handle_connection_unknown_tag_returns_false():
    srv = RequestServer({})
    server_sock, client_sock = socket.socketpair()
    with client_sock:
        client_sock.sendall(encode_string("x"))
        assert srv.handle_connection(server_sock) is False
        assert _read_error(ServiceStream(client_sock, 2)) == "Invalid request type"


def test_stop_closes_listener():
    srv = RequestServer({"echo": _echo}, "127.0.0.1", 0)
    srv.start()
    address = srv.address
    assert srv.running
    srv.stop()
    assert not srv.running
    with pytest.raises(OSError):
        socket.create_connection(address, timeout=2).close()


def test_start_twice_raises(server):
    with pytest.raises(RuntimeError):
        server.start()


def test_context_manager():
    with RequestServer({"echo": _echo}, "127.0.0.1", 0) as srv:
        sock, client = _connect(srv)
        with sock:
            sock.sendall(encode_string("echo") + encode_string("ctx"))
            assert client.read_string() == "CTX"
    assert not srv.running