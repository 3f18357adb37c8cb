"""Wire-level constants shared by client and server."""

import ssl

START_BLOCK = b"\x0b"
END_BLOCK = b"\x1c\x0d"
DEFAULT_ENCODING = "utf-8"
DEFAULT_PORT = 2575
READ_CHUNK_SIZE = 4096
MAX_PAYLOAD_SIZE = 1024 * 1024  # 1 MiB upper bound for a single HL7 message

SEGMENT_SEPARATOR = "\r"
DEFAULT_FIELD_SEPARATOR = "|"
DEFAULT_COMPONENT_SEPARATOR = "^"

TLS_MINIMUM_VERSION = ssl.TLSVersion.TLSv1_1
TLS_MAXIMUM_VERSION = ssl.TLSVersion.TLSv1_2

__all__ = [
    "START_BLOCK",
    "END_BLOCK",
    "DEFAULT_ENCODING",
    "DEFAULT_PORT",
    "READ_CHUNK_SIZE",
    "MAX_PAYLOAD_SIZE",
    "SEGMENT_SEPARATOR",
    "DEFAULT_FIELD_SEPARATOR",
    "DEFAULT_COMPONENT_SEPARATOR",
    "TLS_MINIMUM_VERSION",
    "TLS_MAXIMUM_VERSION",
]
