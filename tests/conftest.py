from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import List, Optional, Union

import pytest

from mllp_server.core import MessageDispatcher, MllpServer
from mllp_server.handlers import TransactionHandler
from mllp_shared.protocol import AckCode, FrameReader, TransportError, build_ack, frame

ADT_A01 = (
    "MSH|^~\\&|SENDER|SENDFAC|RECEIVER|RECVFAC|20240101120000||ADT^A01^ADT_A01|MSG00001|P|2.5\r"
    "EVN|A01|20240101120000\r"
    "PID|1||123456^^^MRN||Doe^John\r"
)

ORU_R01 = (
    "MSH|^~\\&|LAB|LABFAC|EHR|HOSP|20240101120500||ORU^R01|MSG00002|P|2.5\r"
    "PID|1||654321^^^MRN||Roe^Jane\r"
    "OBX|1|NM|59408-5^SpO2^LN||97.2|%|||||F\r"
)

CLOSE = object()
Responder = Callable[[bytes], Awaitable[Union[bytes, None, object]]]


@pytest.fixture
def adt_text() -> str:
    return ADT_A01


@pytest.fixture
def oru_text() -> str:
    return ORU_R01


async def echo_responder(payload: bytes) -> bytes:
    return frame(b"ACK " + payload)


@contextlib.asynccontextmanager
async def scripted_server(responder: Responder = echo_responder) -> AsyncIterator["ScriptedServer"]:
    """
    Raw MLLP peer for client tests: every inbound payload is passed to
    ``responder``; bytes it returns are written back verbatim, ``None`` sends
    nothing and ``CLOSE`` hangs up.
    """
    scripted = ScriptedServer(responder)
    server = await asyncio.start_server(scripted.handle, "127.0.0.1", 0)
    scripted.port = server.sockets[0].getsockname()[1]
    try:
        yield scripted
    finally:
        server.close()
        for writer in list(scripted.writers):
            writer.close()
        await server.wait_closed()


class ScriptedServer:
    def __init__(self, responder: Responder) -> None:
        self.responder = responder
        self.port = 0
        self.received: List[bytes] = []
        self.writers: List[asyncio.StreamWriter] = []

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.writers.append(writer)
        frames = FrameReader(reader)
        try:
            while True:
                payload = await frames.read()
                self.received.append(payload)
                reply = await self.responder(payload)
                if reply is CLOSE:
                    break
                if reply is not None:
                    writer.write(reply)
                    await writer.drain()
        except (asyncio.IncompleteReadError, TransportError, ConnectionError):
            pass
        finally:
            writer.close()


def make_handler(version: str, structure: str, calls: Optional[list] = None, **overrides) -> TransactionHandler:
    """Handler answering with an AA ACK and recording each invocation."""

    async def handle_internal(message):
        if calls is not None:
            calls.append((version, structure, message.control_id))
        return build_ack(message, AckCode.APPLICATION_ACCEPT)

    return TransactionHandler(version=version, handles=structure, handle_internal=handle_internal, **overrides)


@contextlib.asynccontextmanager
async def running_server(dispatcher: MessageDispatcher, **kwargs) -> AsyncIterator[MllpServer]:
    server = MllpServer("127.0.0.1", 0, dispatcher, **kwargs)
    await server.start()
    try:
        yield server
    finally:
        await server.close()
