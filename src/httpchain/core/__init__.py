"""Socket-level plumbing: the accept loop and per-client connections."""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer

__all__ = ["Connection", "ConnectionState", "SocketServer"]
