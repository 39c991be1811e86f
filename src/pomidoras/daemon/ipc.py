"""IPC (Inter-Process Communication) for daemon-client communication.

Exchanges one JSON request and one JSON response per connection over a Unix
domain socket.
"""

import logging
import socket
import threading
from pathlib import Path
from typing import Callable, Optional

from pomidoras.constants import (
    ACCEPT_POLL_INTERVAL,
    CLIENT_TIMEOUT,
    CONNECTION_TIMEOUT,
    MAX_MESSAGE_SIZE,
    SOCKET_RECV_BUFFER_SIZE,
)
from pomidoras.daemon.platform import get_ipc_socket_path
from pomidoras.daemon.protocol import (
    ProtocolError,
    Request,
    RequestType,
    Response,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
    message_complete,
)

logger = logging.getLogger(__name__)

RequestHandler = Callable[[Request], Response]


class IPCError(Exception):
    """IPC communication error."""

    pass


def _read_message(sock: socket.socket) -> bytes:
    """Read one complete JSON message, stopping early at EOF or the size limit."""
    data = b""
    while len(data) <= MAX_MESSAGE_SIZE:
        chunk = sock.recv(SOCKET_RECV_BUFFER_SIZE)
        if not chunk:
            break
        data += chunk
        if message_complete(data):
            break
    return data


class IPCServer:
    """IPC server for handling client requests.

    Each accepted connection is served on its own thread, so a slow client
    cannot hold up anybody else.
    """

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        connection_timeout: float = CONNECTION_TIMEOUT,
    ):
        """Initialize IPC server.

        Args:
            socket_path: Path to socket (default: well-known path)
            connection_timeout: Seconds a client may take to send its request
        """
        self.socket_path = Path(socket_path) if socket_path else get_ipc_socket_path()
        self.connection_timeout = connection_timeout
        self.socket: Optional[socket.socket] = None
        self.running = False
        self.handlers: dict[RequestType, RequestHandler] = {}
        self._server_thread: Optional[threading.Thread] = None

    def register_handler(self, request_type: RequestType, handler: RequestHandler) -> None:
        """Register a handler for a request type.

        Args:
            request_type: Request kind the handler answers
            handler: Callable taking a Request and returning a Response
        """
        self.handlers[request_type] = handler
        logger.debug(f"Registered handler for request type: {request_type.value}")

    def start(self) -> None:
        """Bind the socket and start accepting connections.

        Raises:
            IPCError: If the socket cannot be bound
        """
        if self.running:
            logger.warning("IPC server already running")
            return

        # A crashed daemon leaves its socket file behind
        try:
            if self.socket_path.exists() or self.socket_path.is_symlink():
                self.socket_path.unlink()
                logger.info(f"Removed stale socket {self.socket_path}")
        except OSError as e:
            raise IPCError(f"Cannot remove stale socket {self.socket_path}: {e}")

        server_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            server_socket.bind(str(self.socket_path))
            server_socket.listen(16)
        except OSError as e:
            server_socket.close()
            raise IPCError(f"Cannot listen on {self.socket_path}: {e}")

        # Allow periodic checks of self.running
        server_socket.settimeout(ACCEPT_POLL_INTERVAL)
        self.socket = server_socket
        self.running = True
        self._server_thread = threading.Thread(
            target=self._accept_loop, name="pomidoras-accept", daemon=True
        )
        self._server_thread.start()
        logger.info(f"IPC server started on {self.socket_path}")

    def _accept_loop(self) -> None:
        """Accept client connections until the listener is closed."""
        while self.running:
            listener = self.socket
            if listener is None:
                break

            try:
                client_socket, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self.running:
                    # Listener closed by stop()
                    break
                logger.error(f"Error in accept loop: {e}")
                continue

            client_thread = threading.Thread(
                target=self._handle_client, args=(client_socket,), daemon=True
            )
            client_thread.start()

        logger.debug("Accept loop exited")

    def _handle_client(self, client_socket: socket.socket) -> None:
        """Serve exactly one request on a client connection.

        Args:
            client_socket: Client socket
        """
        try:
            client_socket.settimeout(self.connection_timeout)
            try:
                data = _read_message(client_socket)
            except socket.timeout:
                logger.warning("Client did not send a request in time")
                return

            response = self.process_message(data)
            client_socket.sendall(encode_response(response))

        except OSError as e:
            logger.error(f"Error handling client: {e}")
        finally:
            client_socket.close()

    def process_message(self, data: bytes) -> Response:
        """Decode raw request bytes and dispatch them.

        Args:
            data: Raw bytes received from a client

        Returns:
            Response to send back
        """
        try:
            request = decode_request(data)
        except ProtocolError as e:
            logger.warning(f"Rejected request: {e}")
            return Response.error(str(e))

        return self.dispatch(request)

    def dispatch(self, request: Request) -> Response:
        """Route a request to its registered handler.

        Args:
            request: Decoded request

        Returns:
            Handler response, or a failure response
        """
        handler = self.handlers.get(request.type)
        if handler is None:
            return Response.error(f"Unknown request type: {request.type.value}")

        try:
            return handler(request)
        except Exception as e:
            logger.error(f"Error in handler for {request.type.value}: {e}")
            return Response.error(f"Internal error: {e}")

    def stop(self) -> None:
        """Stop accepting connections and remove the socket file."""
        if not self.running:
            return

        logger.info("Stopping IPC server...")
        self.running = False

        if self.socket:
            self.socket.close()
            self.socket = None

        if self._server_thread and self._server_thread is not threading.current_thread():
            self._server_thread.join(timeout=2.0)
        self._server_thread = None

        try:
            if self.socket_path.exists():
                self.socket_path.unlink()
        except OSError as e:
            logger.error(f"Failed to remove socket {self.socket_path}: {e}")

        logger.info("IPC server stopped")


class IPCClient:
    """IPC client for communicating with the daemon."""

    def __init__(self, socket_path: Optional[Path] = None, timeout: float = CLIENT_TIMEOUT):
        """Initialize IPC client.

        Args:
            socket_path: Path to socket (default: well-known path)
            timeout: Connection timeout in seconds
        """
        self.socket_path = Path(socket_path) if socket_path else get_ipc_socket_path()
        self.timeout = timeout

    def send(self, request: Request) -> Response:
        """Send one request and wait for its response.

        Args:
            request: Request to send

        Returns:
            Daemon response

        Raises:
            IPCError: If communication fails
        """
        try:
            return self._exchange(encode_request(request))
        except (OSError, ProtocolError) as e:
            raise IPCError(f"Failed to communicate with daemon: {e}")

    def _exchange(self, request_data: bytes) -> Response:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)

        try:
            sock.connect(str(self.socket_path))
            sock.sendall(request_data)
            return decode_response(_read_message(sock))
        finally:
            sock.close()

    def is_daemon_running(self) -> bool:
        """Check if daemon is running.

        Returns:
            True if daemon is accessible, False otherwise
        """
        try:
            self.send(Request(RequestType.STATUS))
            return True
        except IPCError:
            return False
