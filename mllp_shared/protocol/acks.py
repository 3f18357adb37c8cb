from __future__ import annotations

from enum import StrEnum
from typing import List, Optional

from mllp_shared.utils.common import generate_control_id, hl7_timestamp

from .constants import DEFAULT_FIELD_SEPARATOR
from .messages import HEADER_SEGMENT, Hl7Message

ENCODING_CHARACTERS = "^~\\&"
DEFAULT_VERSION = "2.5"
MAX_TEXT_LENGTH = 80


class AckCode(StrEnum):
    """MSA-1 acknowledgement codes (original and enhanced mode)."""

    APPLICATION_ACCEPT = "AA"
    APPLICATION_ERROR = "AE"
    APPLICATION_REJECT = "AR"
    COMMIT_ACCEPT = "CA"
    COMMIT_ERROR = "CE"
    COMMIT_REJECT = "CR"

    @property
    def is_negative(self) -> bool:
        return self not in (AckCode.APPLICATION_ACCEPT, AckCode.COMMIT_ACCEPT)


def _sanitize(text: str) -> str:
    cleaned = "".join(" " if ch in DEFAULT_FIELD_SEPARATOR + ENCODING_CHARACTERS + "\r\n" else ch for ch in text)
    return cleaned[:MAX_TEXT_LENGTH]


def build_ack(
    request: Hl7Message,
    code: AckCode = AckCode.APPLICATION_ACCEPT,
    text: Optional[str] = None,
    sending_application: str = "",
    sending_facility: str = "",
) -> Hl7Message:
    """Build an ACK answering ``request``; sender and receiver are swapped."""
    trigger = request.trigger_event
    message_type = f"ACK^{trigger}^ACK" if trigger else "ACK"
    header = [
        HEADER_SEGMENT,
        ENCODING_CHARACTERS,
        sending_application or request.field(HEADER_SEGMENT, 5),
        sending_facility or request.field(HEADER_SEGMENT, 6),
        request.field(HEADER_SEGMENT, 3),
        request.field(HEADER_SEGMENT, 4),
        hl7_timestamp(),
        "",
        message_type,
        generate_control_id(),
        request.field(HEADER_SEGMENT, 11) or "P",
        request.version or DEFAULT_VERSION,
    ]
    msa: List[str] = ["MSA", str(code), request.control_id]
    if text:
        msa.append(_sanitize(text))
    return Hl7Message.from_segments([header, msa])


def fallback_ack(code: AckCode, text: Optional[str] = None, version: str = DEFAULT_VERSION) -> Hl7Message:
    """ACK used when the request could not be parsed at all."""
    header = [HEADER_SEGMENT, ENCODING_CHARACTERS, "", "", "", "", hl7_timestamp(), "", "ACK", generate_control_id(), "P", version]
    msa: List[str] = ["MSA", str(code), ""]
    if text:
        msa.append(_sanitize(text))
    return Hl7Message.from_segments([header, msa])


def ack_code(message: Hl7Message) -> Optional[AckCode]:
    """Read MSA-1 from a response, ``None`` when it is absent or unknown."""
    value = message.field("MSA", 1)
    try:
        return AckCode(value)
    except ValueError:
        return None


__all__ = ["AckCode", "build_ack", "fallback_ack", "ack_code", "DEFAULT_VERSION"]
