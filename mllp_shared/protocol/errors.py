from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Transport and dispatch error codes."""

    FRAMING = 1001
    TRANSPORT = 1002
    CONCURRENCY = 1003
    CONNECTION_CLOSED = 1004
    DISPATCH = 1005
    REGISTRY = 1006
    PARSE = 1007
    MESSAGE_LOG = 1008
    NEGATIVE_ACK = 1009


class MllpError(Exception):
    """Structured exception carrying an error code and a message."""

    code: ErrorCode = ErrorCode.TRANSPORT

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code.name} ({int(self.code)}): {message}")

    def to_payload(self) -> dict:
        """Map error into a dict suitable for logs and diagnostics."""
        return {
            "error_code": int(self.code),
            "error_name": self.code.name,
            "error_message": self.message,
        }


class FramingError(MllpError):
    """Malformed delimiter sequence on the wire."""

    code = ErrorCode.FRAMING


class TransportError(MllpError):
    """Socket or TLS failure."""

    code = ErrorCode.TRANSPORT


class ConcurrencyViolation(MllpError):
    """A send was attempted while another one is still outstanding."""

    code = ErrorCode.CONCURRENCY


class ConnectionClosed(MllpError):
    """The connection was closed or faulted; no further operations are possible."""

    code = ErrorCode.CONNECTION_CLOSED


class DispatchError(MllpError):
    code = ErrorCode.DISPATCH


class RegistryError(MllpError):
    code = ErrorCode.REGISTRY


class ParseError(MllpError):
    code = ErrorCode.PARSE


class MessageLogError(MllpError):
    code = ErrorCode.MESSAGE_LOG


class AckError(MllpError):
    """The peer answered with a negative acknowledgement."""

    code = ErrorCode.NEGATIVE_ACK

    def __init__(self, message: str = "", response: Optional[object] = None) -> None:
        self.response = response
        super().__init__(message)


__all__ = [
    "ErrorCode",
    "MllpError",
    "FramingError",
    "TransportError",
    "ConcurrencyViolation",
    "ConnectionClosed",
    "DispatchError",
    "RegistryError",
    "ParseError",
    "MessageLogError",
    "AckError",
]
