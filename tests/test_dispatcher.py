import asyncio

import pytest

from conftest import make_handler
from mllp_server.core import MessageDispatcher
from mllp_shared.protocol import DispatchError, PipeParser, RegistryError, TransactionKey, ack_code


def _registry(calls):
    return MessageDispatcher(
        [make_handler("2.5", "ADT_A01", calls), make_handler("2.5", "ORU_R01", calls)],
        PipeParser(),
    )


@pytest.mark.asyncio
async def test_routes_to_matching_handler_only(adt_text):
    calls = []
    dispatcher = _registry(calls)
    response = await dispatcher.handle(adt_text)
    assert calls == [("2.5", "ADT_A01", "MSG00001")]
    ack = PipeParser().parse(response)
    assert ack_code(ack).value == "AA"
    assert ack.field("MSA", 2) == "MSG00001"


@pytest.mark.asyncio
async def test_unregistered_structure_is_dispatch_error(adt_text):
    calls = []
    dispatcher = _registry(calls)
    unknown = adt_text.replace("ADT^A01^ADT_A01", "ZZZ^Z01^ZZZ")
    with pytest.raises(DispatchError):
        await dispatcher.handle(unknown)
    assert calls == []


@pytest.mark.asyncio
async def test_version_is_part_of_the_key(adt_text):
    calls = []
    dispatcher = _registry(calls)
    with pytest.raises(DispatchError):
        await dispatcher.handle(adt_text.replace("|P|2.5", "|P|2.3"))
    assert calls == []


def test_duplicate_registration_fails_at_construction():
    with pytest.raises(RegistryError):
        MessageDispatcher([make_handler("2.5", "ADT_A01"), make_handler("2.5", "ADT_A01")])


def test_registry_is_read_only():
    dispatcher = _registry([])
    assert set(dispatcher.keys) == {TransactionKey("2.5", "ADT_A01"), TransactionKey("2.5", "ORU_R01")}
    with pytest.raises(TypeError):
        dispatcher._handlers[TransactionKey("2.5", "X")] = None
    with pytest.raises(DispatchError):
        dispatcher.handler_for(TransactionKey("2.4", "ADT_A01"))


@pytest.mark.asyncio
async def test_cancelled_token_fails_before_parsing():
    cancel = asyncio.Event()
    cancel.set()
    with pytest.raises(asyncio.CancelledError):
        await _registry([]).handle("not even hl7", cancel)


@pytest.mark.asyncio
async def test_concurrent_dispatch_shares_handlers(adt_text, oru_text):
    calls = []
    dispatcher = _registry(calls)
    await asyncio.gather(*(dispatcher.handle(text) for text in (adt_text, oru_text, adt_text)))
    assert sorted(call[1] for call in calls) == ["ADT_A01", "ADT_A01", "ORU_R01"]
