from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Protocol, Tuple

from mllp_shared.protocol.errors import DispatchError, RegistryError
from mllp_shared.protocol.messages import Hl7Message, TransactionKey
from mllp_shared.protocol.parser import Parser, PipeParser
from mllp_shared.utils.common import raise_if_cancelled

logger = logging.getLogger(__name__)


class Handler(Protocol):
    version: str
    handles: str

    async def handle(self, message: Hl7Message, cancel: Optional[asyncio.Event] = None) -> Hl7Message:
        ...


class MessageDispatcher:
    """Maps (version, structure name) to transaction handlers."""

    def __init__(self, handlers: Iterable[Handler], parser: Optional[Parser] = None) -> None:
        self.parser = parser or PipeParser()
        registry: Dict[TransactionKey, Handler] = {}
        for handler in handlers:
            key = TransactionKey(handler.version, handler.handles)
            if key in registry:
                raise RegistryError(f"Duplicate handler registration for {key}")
            registry[key] = handler
        self._handlers: Mapping[TransactionKey, Handler] = MappingProxyType(registry)
        logger.debug("Registered handlers: %s", ", ".join(str(key) for key in registry))

    @property
    def keys(self) -> Tuple[TransactionKey, ...]:
        return tuple(self._handlers)

    def handler_for(self, key: TransactionKey) -> Handler:
        handler = self._handlers.get(key)
        if handler is None:
            raise DispatchError(f"No handler registered for {key}")
        return handler

    async def handle(self, raw_text: str, cancel: Optional[asyncio.Event] = None) -> str:
        """Parse, route, run the handler and encode its response."""
        raise_if_cancelled(cancel)
        message = self.parser.parse(raw_text)
        handler = self.handler_for(message.key)
        logger.debug("Dispatching %s (%s) to %s", message.control_id, message.key, type(handler).__name__)
        response = await handler.handle(message, cancel)
        return self.parser.encode(response)


__all__ = ["Handler", "MessageDispatcher"]
