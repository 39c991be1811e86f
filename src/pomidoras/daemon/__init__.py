"""
Pomidoras Daemon - Background countdown timer service.

The daemon provides:
- A countdown timer with its own tick loop
- Desktop notification when the countdown ends
- IPC interface for the control client
"""

from pomidoras.daemon.daemon import DaemonError, TimerDaemon
from pomidoras.daemon.ipc import IPCClient, IPCError, IPCServer
from pomidoras.daemon.protocol import ProtocolError, Request, RequestType, Response

__all__ = [
    "TimerDaemon",
    "DaemonError",
    "IPCServer",
    "IPCClient",
    "IPCError",
    "ProtocolError",
    "Request",
    "RequestType",
    "Response",
]
