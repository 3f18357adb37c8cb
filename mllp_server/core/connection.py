from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class PeerContext:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    peername: str
    task: Optional[asyncio.Task] = None
    tls: bool = False
    handled: int = 0
    connected_at: float = field(default_factory=time.time)
    last_seen: float = field(default_factory=time.time)

    def touch(self) -> None:
        self.last_seen = time.time()

    def mark_handled(self) -> None:
        self.handled += 1
        self.touch()
