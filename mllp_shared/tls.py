"""TLS context construction and post-handshake peer validation."""

from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import Callable
from typing import Optional

from mllp_shared.protocol.constants import TLS_MAXIMUM_VERSION, TLS_MINIMUM_VERSION
from mllp_shared.protocol.errors import TransportError

logger = logging.getLogger(__name__)

# Receives the peer's DER encoded certificate (None if it sent none) and its address.
CertificateValidator = Callable[[Optional[bytes], str], bool]


def _restrict_versions(context: ssl.SSLContext) -> ssl.SSLContext:
    context.minimum_version = TLS_MINIMUM_VERSION
    context.maximum_version = TLS_MAXIMUM_VERSION
    return context


def client_context(
    certfile: Optional[str] = None,
    keyfile: Optional[str] = None,
    cafile: Optional[str] = None,
    verify: bool = True,
) -> ssl.SSLContext:
    """Client side context, optionally presenting a certificate for mutual TLS."""
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=cafile)
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if certfile:
        context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    return _restrict_versions(context)


def server_context(
    certfile: str,
    keyfile: Optional[str] = None,
    cafile: Optional[str] = None,
    require_client_cert: bool = False,
) -> ssl.SSLContext:
    """Server side context presenting ``certfile``."""
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH, cafile=cafile)
    context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    if require_client_cert:
        context.verify_mode = ssl.CERT_REQUIRED
    elif cafile:
        context.verify_mode = ssl.CERT_OPTIONAL
    return _restrict_versions(context)


def check_peer(writer: asyncio.StreamWriter, validator: Optional[CertificateValidator], address: str) -> None:
    """Run the caller supplied validator against an established TLS stream."""
    if validator is None:
        return
    ssl_object = writer.get_extra_info("ssl_object")
    if ssl_object is None:
        raise TransportError(f"Certificate validation requested but {address} is not a TLS stream")
    certificate = ssl_object.getpeercert(binary_form=True)
    if not validator(certificate, address):
        logger.warning("Certificate of %s rejected by validator", address)
        raise TransportError(f"Remote certificate rejected for {address}")
    logger.debug("Certificate of %s accepted (%s)", address, ssl_object.version())


__all__ = ["CertificateValidator", "client_context", "server_context", "check_peer"]
