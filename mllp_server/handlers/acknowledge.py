from __future__ import annotations

from mllp_shared.protocol.acks import AckCode, build_ack
from mllp_shared.protocol.messages import HEADER_SEGMENT, Hl7Message
from mllp_shared.utils.common import hl7_timestamp

from .base import HeaderFinalizer, TransactionHandler


def stamp_headers(sending_application: str = "", sending_facility: str = "") -> HeaderFinalizer:
    """Finalizer setting MSH-7 to now and MSH-3/MSH-4 when configured."""

    async def finalize(response: Hl7Message) -> Hl7Message:
        response = response.with_field(HEADER_SEGMENT, 7, hl7_timestamp())
        if sending_application:
            response = response.with_field(HEADER_SEGMENT, 3, sending_application)
        if sending_facility:
            response = response.with_field(HEADER_SEGMENT, 4, sending_facility)
        return response

    return finalize


def acknowledgement_handler(
    version: str,
    structure_name: str,
    sending_application: str = "",
    sending_facility: str = "",
) -> TransactionHandler:
    """Handler that accepts every message of one structure with an ``AA`` ACK."""

    async def acknowledge(message: Hl7Message) -> Hl7Message:
        return build_ack(message, AckCode.APPLICATION_ACCEPT)

    return TransactionHandler(
        version=version,
        handles=structure_name,
        handle_internal=acknowledge,
        finalize_headers=stamp_headers(sending_application, sending_facility),
    )


__all__ = ["stamp_headers", "acknowledgement_handler"]
