from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol, Union, runtime_checkable

from mllp_shared.utils.common import hl7_timestamp

logger = logging.getLogger(__name__)


@runtime_checkable
class MessageLog(Protocol):
    """Audit sink written once per outgoing send, before the network write."""

    async def write(self, text: str) -> None:
        ...


class NullMessageLog:
    async def write(self, text: str) -> None:
        return None


class LoggingMessageLog:
    """Writes outgoing messages to a standard logger."""

    def __init__(self, name: str = "mllp.audit", level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self.level = level

    async def write(self, text: str) -> None:
        self._logger.log(self.level, "outgoing %s", text.replace("\r", "\n"))


class FileMessageLog:
    """Appends timestamped records to a file; writes are serialized."""

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self.encoding = encoding
        self._lock = asyncio.Lock()

    async def write(self, text: str) -> None:
        record = f"--- {hl7_timestamp()}\n{text.replace(chr(13), chr(10))}\n"
        async with self._lock:
            await asyncio.to_thread(self._append, record)

    def _append(self, record: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding=self.encoding) as fp:
            fp.write(record)


__all__ = ["MessageLog", "NullMessageLog", "LoggingMessageLog", "FileMessageLog"]
