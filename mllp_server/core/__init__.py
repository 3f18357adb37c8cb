from .connection import PeerContext
from .connection_manager import ConnectionManager
from .dispatcher import MessageDispatcher
from .server import MllpServer

__all__ = ["PeerContext", "ConnectionManager", "MessageDispatcher", "MllpServer"]
