from __future__ import annotations

from typing import List, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .constants import DEFAULT_COMPONENT_SEPARATOR, DEFAULT_ENCODING, DEFAULT_FIELD_SEPARATOR

HEADER_SEGMENT = "MSH"


class TransactionKey(NamedTuple):
    """Registry key identifying which handler serves a message."""

    version: str
    structure_name: str

    def __str__(self) -> str:
        return f"{self.version}/{self.structure_name}"


class Message(BaseModel):
    """A deframed HL7 payload as received from a peer."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Decoded HL7 text without MLLP framing")
    encoding: str = Field(default=DEFAULT_ENCODING, description="Charset used on the wire")
    remote_address: str = Field(default="", description="host:port of the peer that sent it")


class Hl7Message(BaseModel):
    """
    Structured HL7 v2 message: an ordered list of segments, each a tuple of
    raw field strings with the segment id at position 0.

    Field positions follow HL7 numbering, so ``field("MSH", 9)`` is the
    message type even though MSH-1 is the field separator itself.
    """

    model_config = ConfigDict(frozen=True)

    segments: Tuple[Tuple[str, ...], ...]
    field_separator: str = DEFAULT_FIELD_SEPARATOR
    trailing_separator: bool = True

    @classmethod
    def from_segments(
        cls,
        segments: Sequence[Sequence[str]],
        field_separator: str = DEFAULT_FIELD_SEPARATOR,
        trailing_separator: bool = True,
    ) -> "Hl7Message":
        return cls(
            segments=tuple(tuple(seg) for seg in segments),
            field_separator=field_separator,
            trailing_separator=trailing_separator,
        )

    @property
    def header(self) -> Tuple[str, ...]:
        segment = self.segment(HEADER_SEGMENT)
        return segment if segment is not None else ()

    @property
    def component_separator(self) -> str:
        encoding_chars = self.field(HEADER_SEGMENT, 2)
        return encoding_chars[0] if encoding_chars else DEFAULT_COMPONENT_SEPARATOR

    def segment(self, segment_id: str) -> Optional[Tuple[str, ...]]:
        for segment in self.segments:
            if segment and segment[0] == segment_id:
                return segment
        return None

    def _index(self, segment_id: str, position: int) -> int:
        # MSH-1 is the separator, so MSH-n lives at split index n-1.
        return position - 1 if segment_id == HEADER_SEGMENT else position

    def field(self, segment_id: str, position: int, component: Optional[int] = None) -> str:
        if segment_id == HEADER_SEGMENT and position == 1:
            return self.field_separator
        segment = self.segment(segment_id)
        index = self._index(segment_id, position)
        if segment is None or index >= len(segment):
            return ""
        value = segment[index]
        if component is None:
            return value
        parts = value.split(self.component_separator)
        return parts[component - 1] if component <= len(parts) else ""

    def with_field(self, segment_id: str, position: int, value: str) -> "Hl7Message":
        """Return a copy with one field replaced; missing fields are padded."""
        index = self._index(segment_id, position)
        if index < 1:
            raise ValueError(f"{segment_id}-{position} cannot be replaced")
        segments: List[Tuple[str, ...]] = []
        replaced = False
        for segment in self.segments:
            if not replaced and segment and segment[0] == segment_id:
                fields = list(segment) + [""] * max(0, index + 1 - len(segment))
                fields[index] = value
                segment = tuple(fields)
                replaced = True
            segments.append(segment)
        if not replaced:
            raise KeyError(f"Segment {segment_id} not present")
        return self.model_copy(update={"segments": tuple(segments)})

    @property
    def version(self) -> str:
        return self.field(HEADER_SEGMENT, 12, 1)

    @property
    def message_type(self) -> str:
        return self.field(HEADER_SEGMENT, 9, 1)

    @property
    def trigger_event(self) -> str:
        return self.field(HEADER_SEGMENT, 9, 2)

    @property
    def structure_name(self) -> str:
        structure = self.field(HEADER_SEGMENT, 9, 3)
        if structure:
            return structure
        if self.trigger_event:
            return f"{self.message_type}_{self.trigger_event}"
        return self.message_type

    @property
    def control_id(self) -> str:
        return self.field(HEADER_SEGMENT, 10)

    @property
    def key(self) -> TransactionKey:
        return TransactionKey(self.version, self.structure_name)


__all__ = ["TransactionKey", "Message", "Hl7Message", "HEADER_SEGMENT"]
