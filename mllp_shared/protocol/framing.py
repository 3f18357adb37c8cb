from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque, List

from .constants import DEFAULT_ENCODING, END_BLOCK, MAX_PAYLOAD_SIZE, READ_CHUNK_SIZE, START_BLOCK
from .errors import FramingError, TransportError


def frame(payload: bytes) -> bytes:
    """Wrap payload bytes in MLLP start/end blocks."""
    return START_BLOCK + payload + END_BLOCK


def encode_message(text: str, encoding: str = DEFAULT_ENCODING) -> bytes:
    """Encode HL7 text and frame it for the wire."""
    return frame(text.encode(encoding))


def deframe(data: bytes) -> bytes:
    """Decode exactly one complete frame from ``data``."""
    decoder = FrameDecoder()
    payloads = decoder.feed(data)
    if len(payloads) != 1 or decoder.pending:
        raise FramingError(f"Expected exactly one frame, got {len(payloads)} (+{decoder.pending} trailing bytes)")
    return payloads[0]


class FrameDecoder:
    """
    Incremental MLLP deframer.

    Bytes are fed in arbitrary chunks; ``feed`` returns every payload completed
    by the new data and keeps the remainder buffered. A leading start block is
    consumed, any other start block inside a payload is a protocol violation.
    Only the exact ``0x1C 0x0D`` pair terminates a frame, even when the pair is
    split across two reads.
    """

    def __init__(self, max_payload_size: int = MAX_PAYLOAD_SIZE) -> None:
        self.max_payload_size = max_payload_size
        self._buffer = bytearray()
        # Bytes before this index hold no start block and no complete end block.
        self._scanned = 0

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()
        self._scanned = 0

    def feed(self, data: bytes) -> List[bytes]:
        self._buffer.extend(data)
        payloads: List[bytes] = []
        while self._buffer:
            offset = len(START_BLOCK) if self._buffer.startswith(START_BLOCK) else 0
            start = max(self._scanned, offset)
            # Step back one byte so an end block split across reads is found.
            end = self._buffer.find(END_BLOCK, max(start - 1, offset))
            limit = len(self._buffer) if end == -1 else end

            if self._buffer.find(START_BLOCK, start, limit) != -1:
                self.reset()
                raise FramingError("Unexpected start block before end of previous message")
            if limit - offset > self.max_payload_size:
                self.reset()
                raise FramingError(f"Payload exceeds {self.max_payload_size} bytes")
            if end == -1:
                self._scanned = len(self._buffer)
                break

            payloads.append(bytes(self._buffer[offset:end]))
            del self._buffer[: end + len(END_BLOCK)]
            self._scanned = 0
        return payloads


class FrameReader:
    """Reads whole MLLP payloads from an ``asyncio.StreamReader``."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        decoder: FrameDecoder | None = None,
        chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self.reader = reader
        self.decoder = decoder or FrameDecoder()
        self.chunk_size = chunk_size
        self._ready: Deque[bytes] = deque()

    async def read(self) -> bytes:
        """
        Return the next payload.

        Raises ``asyncio.IncompleteReadError`` when the peer closes cleanly
        between frames and ``TransportError`` when it closes mid-frame.
        """
        while not self._ready:
            try:
                chunk = await self.reader.read(self.chunk_size)
            except (ConnectionError, OSError) as exc:
                raise TransportError(f"Read failed: {exc}") from exc
            if not chunk:
                if self.decoder.pending:
                    raise TransportError(f"Connection closed mid-frame ({self.decoder.pending} bytes buffered)")
                raise asyncio.IncompleteReadError(b"", None)
            self._ready.extend(self.decoder.feed(chunk))
        return self._ready.popleft()


__all__ = ["frame", "encode_message", "deframe", "FrameDecoder", "FrameReader"]
