from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Dict, List, Optional

from .connection import PeerContext

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live peer connections so the server can shut them down together."""

    def __init__(self) -> None:
        self._by_writer: Dict[asyncio.StreamWriter, PeerContext] = {}

    def register(self, writer: asyncio.StreamWriter, ctx: PeerContext) -> None:
        self._by_writer[writer] = ctx

    def unregister(self, writer: asyncio.StreamWriter) -> Optional[PeerContext]:
        return self._by_writer.pop(writer, None)

    def get(self, writer: asyncio.StreamWriter) -> Optional[PeerContext]:
        return self._by_writer.get(writer)

    def peers(self) -> List[PeerContext]:
        return list(self._by_writer.values())

    def __len__(self) -> int:
        return len(self._by_writer)

    async def close_all(self) -> None:
        """Cancel every peer task and close its socket."""
        contexts = self.peers()
        current = asyncio.current_task()
        for ctx in contexts:
            if ctx.task is not None and ctx.task is not current and not ctx.task.done():
                ctx.task.cancel()
            ctx.writer.close()
        for ctx in contexts:
            if ctx.task is not None and ctx.task is not current:
                with contextlib.suppress(asyncio.CancelledError):
                    await ctx.task
        logger.debug("Closed %s peer connections", len(contexts))
