"""Constants shared by the daemon and the control client."""

APP_NAME = "Pomidoras"

# Well-known endpoint; server and client must agree on it exactly
DEFAULT_SOCKET_PATH = "/tmp/pomidoras.sock"

# Timeout constants (in seconds)
CLIENT_TIMEOUT = 5.0
CONNECTION_TIMEOUT = 10.0
ACCEPT_POLL_INTERVAL = 0.5  # Check for shutdown every half second

# Buffer sizes
SOCKET_RECV_BUFFER_SIZE = 4096
MAX_MESSAGE_SIZE = 64 * 1024

# Signal controls inherited from the standalone timer
SIGUSR1_ADD_SECONDS = 30
SIGUSR2_ADD_SECONDS = 10 * 60
