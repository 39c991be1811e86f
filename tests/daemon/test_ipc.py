"""Tests for IPC communication."""

import json
import socket
import threading
import time

import pytest  # type: ignore[import-not-found]

from pomidoras.core.timer import Phase, TimerStatus
from pomidoras.daemon.ipc import IPCClient, IPCError, IPCServer
from pomidoras.daemon.protocol import Request, RequestType, Response


def raw_exchange(socket_path, data: bytes) -> dict:
    """Send raw bytes on a fresh connection and decode the reply."""
    client_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    client_socket.settimeout(5.0)
    try:
        client_socket.connect(str(socket_path))
        client_socket.sendall(data)

        response_data = b""
        while b"\n" not in response_data:
            chunk = client_socket.recv(4096)
            if not chunk:
                break
            response_data += chunk

        return json.loads(response_data.decode("utf-8"))
    finally:
        client_socket.close()


def status_handler(request: Request) -> Response:
    return Response.ok(status=TimerStatus(Phase.COUNTING, 90))


class TestIPCServer:
    """Test IPC server."""

    def test_create_server(self, socket_path) -> None:
        """Test creating IPC server."""
        server = IPCServer(socket_path)
        assert server.socket_path == socket_path
        assert server.running is False

    def test_register_handler(self, socket_path) -> None:
        """Test registering request handler."""
        server = IPCServer(socket_path)

        server.register_handler(RequestType.STATUS, status_handler)

        assert RequestType.STATUS in server.handlers

    def test_start_and_stop_server(self, socket_path) -> None:
        """Test starting and stopping server."""
        server = IPCServer(socket_path)

        server.start()
        assert server.running is True
        assert socket_path.exists()

        server.stop()
        assert server.running is False
        assert not socket_path.exists()

    def test_start_removes_stale_socket(self, socket_path) -> None:
        """Test a leftover socket file does not block startup."""
        stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        stale.bind(str(socket_path))
        stale.close()
        assert socket_path.exists()

        server = IPCServer(socket_path)
        server.register_handler(RequestType.STATUS, status_handler)
        server.start()

        try:
            response = raw_exchange(socket_path, b'{"type": "status"}\n')
            assert response["success"] is True
        finally:
            server.stop()

    def test_bind_failure_raises(self, tmp_path) -> None:
        """Test an unusable socket path raises IPCError."""
        server = IPCServer(tmp_path / "missing" / "test.sock")

        with pytest.raises(IPCError, match="Cannot listen"):
            server.start()

        assert server.running is False

    def test_server_handles_requests(self, socket_path) -> None:
        """Test server handles requests correctly."""
        server = IPCServer(socket_path)
        server.register_handler(RequestType.STATUS, status_handler)
        server.start()

        try:
            response = raw_exchange(socket_path, b'{"type": "status"}\n')

            assert response == {
                "success": True,
                "status": {"state": "countdown", "duration": 90},
            }
        finally:
            server.stop()

    def test_server_rejects_malformed_request(self, socket_path) -> None:
        """Test malformed bytes get a failure response and the server stays up."""
        server = IPCServer(socket_path)
        server.register_handler(RequestType.STATUS, status_handler)
        server.start()

        try:
            response = raw_exchange(socket_path, b"this is not json\n")

            assert response["success"] is False
            assert response["message"].startswith("Invalid request format")

            # Next connection is served normally
            response = raw_exchange(socket_path, b'{"type": "status"}\n')
            assert response["success"] is True
        finally:
            server.stop()

    def test_server_handles_multiline_request(self, socket_path) -> None:
        """Test a request split across lines and writes is read whole."""
        server = IPCServer(socket_path)
        server.register_handler(RequestType.STATUS, status_handler)
        server.start()

        client_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        client_socket.settimeout(5.0)
        try:
            client_socket.connect(str(socket_path))
            client_socket.sendall(b"{\n")
            time.sleep(0.1)
            client_socket.sendall(b'  "type": "status"\n}\n')

            response = json.loads(client_socket.recv(4096).decode("utf-8"))

            assert response == {
                "success": True,
                "status": {"state": "countdown", "duration": 90},
            }
        finally:
            client_socket.close()
            server.stop()

    def test_server_rejects_unknown_type(self, socket_path) -> None:
        """Test server returns a failure for unknown request types."""
        server = IPCServer(socket_path)
        server.start()

        try:
            response = raw_exchange(socket_path, b'{"type": "pause"}\n')

            assert response["success"] is False
            assert response["message"] == "Unknown request type: pause"
        finally:
            server.stop()

    def test_slow_client_does_not_block_others(self, socket_path) -> None:
        """Test a client that never sends does not stall other clients."""
        server = IPCServer(socket_path)
        server.register_handler(RequestType.STATUS, status_handler)
        server.start()

        idle_client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            idle_client.connect(str(socket_path))

            started = time.monotonic()
            response = IPCClient(socket_path, timeout=2.0).send(Request(RequestType.STATUS))

            assert response.success is True
            assert time.monotonic() - started < 2.0
        finally:
            idle_client.close()
            server.stop()

    def test_connection_timeout_closes_silent_client(self, socket_path) -> None:
        """Test a silent client is disconnected after the connection timeout."""
        server = IPCServer(socket_path, connection_timeout=0.2)
        server.start()

        idle_client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        idle_client.settimeout(5.0)
        try:
            idle_client.connect(str(socket_path))

            assert idle_client.recv(4096) == b""
        finally:
            idle_client.close()
            server.stop()


class TestDispatch:
    """Test in-process dispatch without sockets."""

    def test_dispatch_to_handler(self, socket_path) -> None:
        """Test dispatch calls the registered handler."""
        server = IPCServer(socket_path)
        server.register_handler(RequestType.STATUS, status_handler)

        response = server.dispatch(Request(RequestType.STATUS))

        assert response.status == TimerStatus(Phase.COUNTING, 90)

    def test_dispatch_without_handler(self, socket_path) -> None:
        """Test dispatch of an unregistered type fails cleanly."""
        server = IPCServer(socket_path)

        response = server.dispatch(Request(RequestType.RESET))

        assert response.success is False
        assert response.message == "Unknown request type: reset"

    def test_dispatch_handler_exception(self, socket_path) -> None:
        """Test a raising handler produces a failure response."""
        server = IPCServer(socket_path)

        def broken(request: Request) -> Response:
            raise RuntimeError("boom")

        server.register_handler(RequestType.RESET, broken)

        response = server.dispatch(Request(RequestType.RESET))

        assert response.success is False
        assert "boom" in response.message

    def test_process_message_malformed(self, socket_path) -> None:
        """Test malformed raw bytes produce a failure response."""
        server = IPCServer(socket_path)

        response = server.process_message(b"{")

        assert response.success is False
        assert response.message


class TestIPCClient:
    """Test IPC client."""

    @pytest.fixture
    def running_server(self, socket_path):
        """Create and start a test server."""
        server = IPCServer(socket_path)
        server.register_handler(RequestType.STATUS, status_handler)
        server.register_handler(
            RequestType.ADD_SECONDS,
            lambda request: Response.ok(message=f"Added {request.payload} seconds."),
        )
        server.start()

        yield server

        server.stop()

    def test_create_client(self, socket_path) -> None:
        """Test creating IPC client."""
        client = IPCClient(socket_path)
        assert client.socket_path == socket_path

    def test_client_send_status(self, socket_path, running_server) -> None:
        """Test successful status exchange."""
        client = IPCClient(socket_path)

        response = client.send(Request(RequestType.STATUS))

        assert response == Response.ok(status=TimerStatus(Phase.COUNTING, 90))

    def test_client_send_with_payload(self, socket_path, running_server) -> None:
        """Test request payload reaches the handler."""
        client = IPCClient(socket_path)

        response = client.send(Request(RequestType.ADD_SECONDS, payload="30"))

        assert response.message == "Added 30 seconds."

    def test_client_connection_refused(self, socket_path) -> None:
        """Test send when server not running."""
        client = IPCClient(socket_path, timeout=1.0)

        with pytest.raises(IPCError) as exc_info:
            client.send(Request(RequestType.STATUS))

        assert "Failed to communicate" in str(exc_info.value)

    def test_client_bad_response(self, socket_path) -> None:
        """Test an undecodable reply raises IPCError."""
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        listener.bind(str(socket_path))
        listener.listen(1)
        listener.settimeout(5.0)

        def reply_garbage() -> None:
            conn, _ = listener.accept()
            conn.recv(4096)
            conn.sendall(b"garbage\n")
            conn.close()

        thread = threading.Thread(target=reply_garbage, daemon=True)
        thread.start()

        try:
            with pytest.raises(IPCError, match="Invalid response format"):
                IPCClient(socket_path, timeout=2.0).send(Request(RequestType.STATUS))
        finally:
            thread.join(timeout=5.0)
            listener.close()

    def test_is_daemon_running_true(self, socket_path, running_server) -> None:
        """Test is_daemon_running returns True when daemon is running."""
        client = IPCClient(socket_path)

        assert client.is_daemon_running() is True

    def test_is_daemon_running_false(self, socket_path) -> None:
        """Test is_daemon_running returns False when daemon is not running."""
        client = IPCClient(socket_path, timeout=0.5)

        assert client.is_daemon_running() is False
