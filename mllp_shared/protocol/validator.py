from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from .errors import ParseError
from .messages import HEADER_SEGMENT, Hl7Message

SCHEMA_DIR = Path(__file__).parent / "schemas"

# Mapping segment id -> schema filename (relative to SCHEMA_DIR)
SCHEMA_REGISTRY: Dict[str, str] = {
    HEADER_SEGMENT: "msh.json",
}


@lru_cache(maxsize=16)
def load_schema(segment_id: str) -> Optional[dict]:
    """Load JSON schema for a segment if present."""
    filename = SCHEMA_REGISTRY.get(segment_id)
    if not filename:
        return None
    path = SCHEMA_DIR / filename
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


def header_fields(message: Hl7Message) -> Dict[str, Any]:
    """Project the MSH segment onto the names used by the header schema."""
    header = message.header
    if not header:
        return {}
    return {
        "segment_id": header[0],
        "encoding_characters": message.field(HEADER_SEGMENT, 2),
        "message_type": message.message_type,
        "trigger_event": message.trigger_event,
        "structure_name": message.structure_name,
        "control_id": message.control_id,
        "version": message.version,
    }


def validate_header(message: Hl7Message) -> None:
    """Ensure the message carries a header that can be routed."""
    if message.segments and message.segments[0][:1] != (HEADER_SEGMENT,):
        raise ParseError(f"Message must start with {HEADER_SEGMENT}, got {message.segments[0][0]!r}")
    schema = load_schema(HEADER_SEGMENT)
    if not schema:
        return
    try:
        jsonschema.validate(instance=header_fields(message), schema=schema)
    except jsonschema.ValidationError as exc:
        raise ParseError(f"Header validation failed: {exc.message}") from exc


__all__ = ["load_schema", "header_fields", "validate_header"]
