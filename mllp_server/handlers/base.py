"""
Transaction handlers.

A handler is a capability object: three async callables plus the
``(version, structure)`` pair it serves. :func:`run_transaction` is the only
orchestration and always runs verify, then either the canned rejection or
``handle_internal``, then ``finalize_headers`` exactly once.

Handlers are registered once and invoked concurrently from many peers, so
the callables must keep all call state local to the invocation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from mllp_shared.protocol.messages import Hl7Message, TransactionKey
from mllp_shared.utils.common import raise_if_cancelled

logger = logging.getLogger(__name__)


class TransactionState(Enum):
    RECEIVED = "received"
    VERIFYING = "verifying"
    REJECTED = "rejected"
    VERIFIED = "verified"
    HANDLING = "handling"
    FINALIZING = "finalizing"
    COMPLETED = "completed"


class Verification(NamedTuple):
    accepted: bool
    response: Optional[Hl7Message] = None


Verifier = Callable[[Hl7Message], Awaitable[Verification]]
MessageHandler = Callable[[Hl7Message], Awaitable[Hl7Message]]
HeaderFinalizer = Callable[[Hl7Message], Awaitable[Hl7Message]]


async def accept_all(message: Hl7Message) -> Verification:
    return Verification(True, None)


async def passthrough(response: Hl7Message) -> Hl7Message:
    return response


@dataclass(frozen=True)
class TransactionHandler:
    version: str
    handles: str
    handle_internal: MessageHandler
    verify: Verifier = accept_all
    finalize_headers: HeaderFinalizer = passthrough

    @property
    def key(self) -> TransactionKey:
        return TransactionKey(self.version, self.handles)

    async def handle(self, message: Hl7Message, cancel: Optional[asyncio.Event] = None) -> Hl7Message:
        return await run_transaction(self, message, cancel)


def _transition(handler: TransactionHandler, message: Hl7Message, state: TransactionState) -> TransactionState:
    logger.debug("%s %s -> %s", handler.key, message.control_id, state.name)
    return state


async def run_transaction(
    handler: TransactionHandler, message: Hl7Message, cancel: Optional[asyncio.Event] = None
) -> Hl7Message:
    """Run verify -> handle -> finalize for one message."""
    _transition(handler, message, TransactionState.RECEIVED)
    raise_if_cancelled(cancel)

    _transition(handler, message, TransactionState.VERIFYING)
    verification = await handler.verify(message)
    if verification.accepted:
        _transition(handler, message, TransactionState.VERIFIED)
        raise_if_cancelled(cancel)
        _transition(handler, message, TransactionState.HANDLING)
        response = await handler.handle_internal(message)
    else:
        _transition(handler, message, TransactionState.REJECTED)
        if verification.response is None:
            raise ValueError(f"{handler.key} rejected {message.control_id} without a response")
        response = verification.response

    _transition(handler, message, TransactionState.FINALIZING)
    response = await handler.finalize_headers(response)
    _transition(handler, message, TransactionState.COMPLETED)
    return response


__all__ = [
    "TransactionState",
    "Verification",
    "Verifier",
    "MessageHandler",
    "HeaderFinalizer",
    "accept_all",
    "passthrough",
    "TransactionHandler",
    "run_transaction",
]
