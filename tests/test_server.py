import asyncio

import pytest

from conftest import make_handler, running_server
from mllp_client import config as client_config
from mllp_client.core import ConnectionFactory, ConnectionState, MllpConnection
from mllp_client.features import IheTransaction
from mllp_client.main import run_client
from mllp_server.core import MessageDispatcher, MllpServer
from mllp_server.handlers import TransactionHandler, acknowledgement_handler
from mllp_shared.protocol import (
    AckCode,
    AckError,
    ConnectionClosed,
    PipeParser,
    TransportError,
    ack_code,
    build_ack,
)

parser = PipeParser()


def _dispatcher(*extra):
    return MessageDispatcher([acknowledgement_handler("2.5", "ADT_A01", "MLLP_SERVER", "MAIN"), *extra])


async def _connect(server):
    return await MllpConnection.create("127.0.0.1", server.bound_port, connect_timeout=2.0)


@pytest.mark.asyncio
async def test_end_to_end_acknowledgement(adt_text):
    async with running_server(_dispatcher(), sending_application="MLLP_SERVER") as server:
        async with await _connect(server) as conn:
            reply = await conn.send(adt_text)
        ack = parser.parse(reply.text)
        assert ack_code(ack) is AckCode.APPLICATION_ACCEPT
        assert ack.field("MSA", 2) == "MSG00001"
        assert ack.field("MSH", 3) == "MLLP_SERVER"
        assert ack.field("MSH", 5) == "SENDER"


@pytest.mark.asyncio
async def test_peers_are_served_concurrently(adt_text):
    arrived = 0
    both = asyncio.Event()

    async def rendezvous(message):
        nonlocal arrived
        arrived += 1
        if arrived == 2:
            both.set()
        await asyncio.wait_for(both.wait(), 2.0)
        return build_ack(message, AckCode.APPLICATION_ACCEPT)

    handler = TransactionHandler(version="2.5", handles="ADT_A01", handle_internal=rendezvous)
    async with running_server(MessageDispatcher([handler])) as server:
        first, second = await _connect(server), await _connect(server)
        try:
            replies = await asyncio.gather(first.send(adt_text), second.send(adt_text))
        finally:
            await first.close()
            await second.close()
    assert [ack_code(parser.parse(r.text)) for r in replies] == [AckCode.APPLICATION_ACCEPT] * 2


@pytest.mark.asyncio
async def test_unknown_structure_is_rejected_and_connection_survives(adt_text, oru_text):
    async with running_server(_dispatcher()) as server:
        async with await _connect(server) as conn:
            nak = parser.parse((await conn.send(oru_text)).text)
            assert ack_code(nak) is AckCode.APPLICATION_REJECT
            assert nak.field("MSA", 2) == "MSG00002"
            assert "ORU_R01" in nak.field("MSA", 3)
            ack = parser.parse((await conn.send(adt_text)).text)
            assert ack_code(ack) is AckCode.APPLICATION_ACCEPT


@pytest.mark.asyncio
async def test_unparseable_text_gets_fallback_reject():
    async with running_server(_dispatcher()) as server:
        async with await _connect(server) as conn:
            nak = parser.parse((await conn.send("this is not hl7")).text)
    assert ack_code(nak) is AckCode.APPLICATION_REJECT
    assert nak.structure_name == "ACK"


@pytest.mark.asyncio
async def test_handler_failure_is_application_error(adt_text):
    async def explode(message):
        raise RuntimeError("boom")

    handler = TransactionHandler(version="2.5", handles="ADT_A01", handle_internal=explode)
    async with running_server(MessageDispatcher([handler])) as server:
        async with await _connect(server) as conn:
            nak = parser.parse((await conn.send(adt_text)).text)
    assert ack_code(nak) is AckCode.APPLICATION_ERROR
    assert nak.field("MSA", 2) == "MSG00001"
    assert nak.field("MSA", 3) == "boom"


@pytest.mark.asyncio
async def test_without_negative_acks_the_server_hangs_up(oru_text):
    async with running_server(_dispatcher(), nak_on_error=False) as server:
        async with await _connect(server) as conn:
            with pytest.raises(TransportError):
                await conn.send(oru_text)
            assert conn.state is ConnectionState.FAULTED


@pytest.mark.asyncio
async def test_framing_violation_only_ends_that_peer(adt_text):
    async with running_server(_dispatcher()) as server:
        async with await _connect(server) as healthy:
            reader, writer = await asyncio.open_connection("127.0.0.1", server.bound_port)
            writer.write(b"\x0bMSH|first\x0bMSH|second\x1c\x0d")
            await writer.drain()
            assert await asyncio.wait_for(reader.read(), 2.0) == b""
            writer.close()
            reply = await healthy.send(adt_text)
            assert ack_code(parser.parse(reply.text)) is AckCode.APPLICATION_ACCEPT


@pytest.mark.asyncio
async def test_close_disposes_live_peers(adt_text):
    async with running_server(_dispatcher()) as server:
        conn = await _connect(server)
        await conn.send(adt_text)
        assert len(server.connection_manager) == 1
        await server.close()
        assert len(server.connection_manager) == 0
        with pytest.raises((TransportError, ConnectionClosed)):
            await conn.send(adt_text)
        await conn.close()


@pytest.mark.asyncio
async def test_ihe_transaction_round_trip(adt_text):
    async with running_server(_dispatcher()) as server:
        transaction = IheTransaction(ConnectionFactory("127.0.0.1", server.bound_port).get)
        response = await transaction.send(parser.parse(adt_text))
    assert ack_code(response) is AckCode.APPLICATION_ACCEPT
    assert response.field("MSA", 2) == "MSG00001"


@pytest.mark.asyncio
async def test_ihe_transaction_raises_on_negative_ack(oru_text):
    async with running_server(_dispatcher()) as server:
        factory = ConnectionFactory("127.0.0.1", server.bound_port)
        with pytest.raises(AckError) as excinfo:
            await IheTransaction(factory.get).send(parser.parse(oru_text))
        assert ack_code(excinfo.value.response) is AckCode.APPLICATION_REJECT

        lenient = IheTransaction(factory.get, raise_on_negative_ack=False)
        response = await lenient.send(parser.parse(oru_text))
    assert ack_code(response) is AckCode.APPLICATION_REJECT


@pytest.mark.asyncio
async def test_only_the_matching_handler_runs(adt_text):
    calls = []
    dispatcher = _dispatcher(make_handler("2.5", "ORU_R01", calls))
    assert len(dispatcher.keys) == 2
    async with running_server(dispatcher) as server:
        async with await _connect(server) as conn:
            await conn.send(adt_text)
    assert calls == []


@pytest.mark.asyncio
async def test_send_command_prints_acknowledgement(adt_text, tmp_path, monkeypatch, capsys):
    saved = dict(client_config.CLIENT_CONFIG)
    source = tmp_path / "adt.hl7"
    source.write_text(adt_text.replace("\r", "\n"), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    try:
        async with running_server(_dispatcher()) as server:
            monkeypatch.setenv("CLIENT_SERVER_PORT", str(server.bound_port))
            assert await run_client(str(source)) == 0
        out = capsys.readouterr().out
        assert "MSA|AA|MSG00001" in out

        assert await run_client(str(source)) == 1
    finally:
        client_config.CLIENT_CONFIG.clear()
        client_config.CLIENT_CONFIG.update(saved)


@pytest.mark.asyncio
async def test_serve_forever_starts_the_listener(adt_text):
    server = MllpServer("127.0.0.1", 0, _dispatcher())
    serving = asyncio.create_task(server.serve_forever())
    try:
        for _ in range(200):
            if server.bound_port:
                break
            await asyncio.sleep(0.01)
        async with await _connect(server) as conn:
            reply = await conn.send(adt_text)
        assert ack_code(parser.parse(reply.text)) is AckCode.APPLICATION_ACCEPT
    finally:
        serving.cancel()
        with pytest.raises(asyncio.CancelledError):
            await serving
        await server.close()
