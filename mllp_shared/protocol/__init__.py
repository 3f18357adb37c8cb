"""
Shared protocol package that centralizes MLLP framing, HL7 message models,
the default pipe parser, acknowledgement helpers and the error taxonomy for
both client and server.
"""

from .acks import AckCode, ack_code, build_ack, fallback_ack
from .constants import DEFAULT_ENCODING, DEFAULT_PORT, END_BLOCK, MAX_PAYLOAD_SIZE, START_BLOCK
from .errors import (
    AckError,
    ConcurrencyViolation,
    ConnectionClosed,
    DispatchError,
    ErrorCode,
    FramingError,
    MessageLogError,
    MllpError,
    ParseError,
    RegistryError,
    TransportError,
)
from .framing import FrameDecoder, FrameReader, deframe, encode_message, frame
from .messages import Hl7Message, Message, TransactionKey
from .parser import Parser, PipeParser
from .validator import load_schema, validate_header

__all__ = [
    "AckCode",
    "ack_code",
    "build_ack",
    "fallback_ack",
    "DEFAULT_ENCODING",
    "DEFAULT_PORT",
    "END_BLOCK",
    "MAX_PAYLOAD_SIZE",
    "START_BLOCK",
    "AckError",
    "ConcurrencyViolation",
    "ConnectionClosed",
    "DispatchError",
    "ErrorCode",
    "FramingError",
    "MessageLogError",
    "MllpError",
    "ParseError",
    "RegistryError",
    "TransportError",
    "FrameDecoder",
    "FrameReader",
    "deframe",
    "encode_message",
    "frame",
    "Hl7Message",
    "Message",
    "TransactionKey",
    "Parser",
    "PipeParser",
    "load_schema",
    "validate_header",
]
