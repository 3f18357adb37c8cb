from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


def generate_control_id(prefix: Optional[str] = None) -> str:
    """Generate a message control id (MSH-10), at most 20 characters."""
    base = uuid4().hex[:20]
    return f"{prefix}{base}"[:20] if prefix else base


def hl7_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a timestamp as HL7 DTM (YYYYMMDDHHMMSS+ZZZZ)."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.strftime("%Y%m%d%H%M%S")
    return moment.strftime("%Y%m%d%H%M%S%z")


def raise_if_cancelled(cancel: Optional[asyncio.Event]) -> None:
    """Cooperative cancellation checkpoint for an optional cancel token."""
    if cancel is not None and cancel.is_set():
        raise asyncio.CancelledError("cancellation requested")


def format_address(peername: object) -> str:
    """Render a socket peername tuple as host:port."""
    if isinstance(peername, tuple) and len(peername) >= 2:
        host, port = peername[0], peername[1]
        return f"[{host}]:{port}" if ":" in str(host) else f"{host}:{port}"
    return str(peername)


__all__ = ["generate_control_id", "hl7_timestamp", "raise_if_cancelled", "format_address"]
