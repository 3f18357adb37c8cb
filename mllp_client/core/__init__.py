from .connection import ConnectionState, MllpConnection
from .factory import ConnectionFactory
from .message_log import FileMessageLog, LoggingMessageLog, MessageLog, NullMessageLog

__all__ = [
    "ConnectionState",
    "MllpConnection",
    "ConnectionFactory",
    "MessageLog",
    "NullMessageLog",
    "LoggingMessageLog",
    "FileMessageLog",
]
