from __future__ import annotations

import re
from typing import List, Protocol, runtime_checkable

from .constants import SEGMENT_SEPARATOR
from .errors import ParseError
from .messages import HEADER_SEGMENT, Hl7Message
from .validator import validate_header

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@runtime_checkable
class Parser(Protocol):
    """Converts between HL7 wire text and structured messages."""

    def parse(self, text: str) -> Hl7Message:
        ...

    def encode(self, message: Hl7Message) -> str:
        ...


class PipeParser:
    """
    Minimal pipe-delimited parser.

    Splits segments on carriage returns and fields on the separator declared
    in MSH-1. Components and repetitions are left untouched inside the field
    strings; ``Hl7Message.field`` splits components on demand.
    """

    def __init__(self, validate: bool = True) -> None:
        self.validate = validate

    def parse(self, text: str) -> Hl7Message:
        if not text or not text.strip():
            raise ParseError("Empty message")
        if not text.startswith(HEADER_SEGMENT) or len(text) < 4:
            raise ParseError(f"Message must start with {HEADER_SEGMENT}")

        separator = text[3]
        lines = _LINE_BREAK.split(text)
        trailing = lines[-1] == ""
        if trailing:
            lines = lines[:-1]

        segments: List[List[str]] = []
        for line in lines:
            if not line:
                continue
            segments.append(line.split(separator))
        message = Hl7Message.from_segments(segments, field_separator=separator, trailing_separator=trailing)
        if self.validate:
            validate_header(message)
        return message

    def encode(self, message: Hl7Message) -> str:
        text = SEGMENT_SEPARATOR.join(message.field_separator.join(segment) for segment in message.segments)
        if message.trailing_separator:
            text += SEGMENT_SEPARATOR
        return text


__all__ = ["Parser", "PipeParser"]
