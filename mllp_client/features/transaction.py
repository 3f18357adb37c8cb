from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from mllp_client.core.connection import MllpConnection
from mllp_shared.protocol.acks import ack_code
from mllp_shared.protocol.errors import AckError
from mllp_shared.protocol.messages import Hl7Message
from mllp_shared.protocol.parser import Parser, PipeParser

logger = logging.getLogger(__name__)

ConnectionGetter = Callable[[], Awaitable[MllpConnection]]


class IheTransaction:
    """
    Client side of an IHE transaction.

    Every ``send`` opens a connection through ``connect``, exchanges exactly
    one request/response pair and closes the connection again, so instances
    hold no per-call state and may be shared between tasks.
    """

    def __init__(
        self,
        connect: ConnectionGetter,
        parser: Optional[Parser] = None,
        raise_on_negative_ack: bool = True,
    ) -> None:
        self.connect = connect
        self.parser = parser or PipeParser()
        self.raise_on_negative_ack = raise_on_negative_ack

    async def send(self, request: Hl7Message, cancel: Optional[asyncio.Event] = None) -> Hl7Message:
        text = self.parser.encode(request)
        connection = await self.connect()
        try:
            reply = await connection.send(text, cancel)
        finally:
            await connection.close()

        response = self.parser.parse(reply.text)
        logger.debug(
            "Transaction %s answered by %s with %s", request.control_id, reply.remote_address, response.structure_name
        )
        if self.raise_on_negative_ack:
            self.verify_response(request, response)
        return response

    def verify_response(self, request: Hl7Message, response: Hl7Message) -> None:
        code = ack_code(response)
        if code is not None and code.is_negative:
            detail = response.field("MSA", 3) or response.field("ERR", 8)
            raise AckError(f"{request.control_id} rejected with {code}: {detail}", response=response)


__all__ = ["IheTransaction", "ConnectionGetter"]
