from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from collections import deque
from enum import Enum
from typing import Deque, Optional

from mllp_shared.protocol.constants import DEFAULT_ENCODING, MAX_PAYLOAD_SIZE, READ_CHUNK_SIZE
from mllp_shared.protocol.errors import (
    ConcurrencyViolation,
    ConnectionClosed,
    FramingError,
    MessageLogError,
    MllpError,
    TransportError,
)
from mllp_shared.protocol.framing import FrameDecoder, FrameReader, encode_message
from mllp_shared.protocol.messages import Message
from mllp_shared.tls import CertificateValidator, check_peer
from mllp_shared.utils.common import format_address, raise_if_cancelled

from .message_log import MessageLog, NullMessageLog

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    OPEN = "open"
    FAULTED = "faulted"
    CLOSED = "closed"


class MllpConnection:
    """
    Client side of one MLLP socket.

    At most one send may be outstanding; a second concurrent ``send`` fails
    immediately with ``ConcurrencyViolation``. A background task deframes the
    inbound stream and resolves responses in send order, so the connection can
    carry any number of sequential transactions. A framing or transport
    failure moves the connection to ``FAULTED``: the in-flight send fails with
    that error and later sends fail fast with ``ConnectionClosed``.

    Use :meth:`create` rather than the constructor.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        remote_address: str,
        message_log: Optional[MessageLog] = None,
        encoding: str = DEFAULT_ENCODING,
        max_payload_size: int = MAX_PAYLOAD_SIZE,
        read_chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._frames = FrameReader(reader, FrameDecoder(max_payload_size), read_chunk_size)
        self.remote_address = remote_address
        self.message_log: MessageLog = message_log or NullMessageLog()
        self.encoding = encoding

        self._state = ConnectionState.OPEN
        self._fault: Optional[MllpError] = None
        self._sending = False
        self._pending: Deque[asyncio.Future] = deque()
        self._read_task: Optional[asyncio.Task] = None

    @classmethod
    async def create(
        cls,
        host: str,
        port: int,
        message_log: Optional[MessageLog] = None,
        encoding: str = DEFAULT_ENCODING,
        ssl_context: Optional[ssl.SSLContext] = None,
        cert_validator: Optional[CertificateValidator] = None,
        server_hostname: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        max_payload_size: int = MAX_PAYLOAD_SIZE,
        read_chunk_size: int = READ_CHUNK_SIZE,
    ) -> "MllpConnection":
        """Open the socket, perform the TLS handshake if configured and start reading."""
        opening = asyncio.open_connection(
            host,
            port,
            ssl=ssl_context,
            server_hostname=(server_hostname or host) if ssl_context else None,
        )
        try:
            reader, writer = await asyncio.wait_for(opening, connect_timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Connect to {host}:{port} failed: {exc}") from exc

        remote_address = format_address(writer.get_extra_info("peername"))
        if ssl_context is not None:
            try:
                check_peer(writer, cert_validator, remote_address)
            except TransportError:
                writer.close()
                with contextlib.suppress(ConnectionError, OSError):
                    await writer.wait_closed()
                raise

        connection = cls(reader, writer, remote_address, message_log, encoding, max_payload_size, read_chunk_size)
        connection._read_task = asyncio.create_task(
            connection._read_loop(), name=f"mllp-client-read-{remote_address}"
        )
        logger.info("Connected to %s%s", remote_address, " (TLS)" if ssl_context else "")
        return connection

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_sending(self) -> bool:
        return self._sending

    @property
    def fault(self) -> Optional[MllpError]:
        return self._fault

    async def send(self, text: str, cancel: Optional[asyncio.Event] = None) -> Message:
        """Send one HL7 message and wait for the peer's response."""
        self._ensure_open()
        if self._sending:
            raise ConcurrencyViolation("Transaction ongoing")
        self._sending = True
        try:
            raise_if_cancelled(cancel)
            payload = encode_message(text, self.encoding)
            try:
                await self.message_log.write(text)
            except Exception as exc:
                raise MessageLogError(f"Message log write failed: {exc}") from exc

            raise_if_cancelled(cancel)
            self._ensure_open()
            response: asyncio.Future = asyncio.get_running_loop().create_future()
            self._pending.append(response)
            try:
                self._writer.write(payload)
                await self._writer.drain()
            except (ConnectionError, OSError) as exc:
                # The read loop may have faulted first and already failed this future.
                fault = response.exception() if response.done() else None
                if fault is None:
                    if response in self._pending:
                        self._pending.remove(response)
                    fault = TransportError(f"Write to {self.remote_address} failed: {exc}")
                    self._enter_fault(fault)
                raise fault from exc
            logger.debug("Sent %s bytes to %s", len(payload), self.remote_address)

            message = await response
            raise_if_cancelled(cancel)
            return message
        finally:
            self._sending = False

    async def close(self) -> None:
        """Stop the read task and release the socket. Safe to call more than once."""
        if self._state is ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED
        if self._read_task is not None and not self._read_task.done():
            self._read_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._read_task
        self._fail_pending(ConnectionClosed(f"Connection to {self.remote_address} closed"))
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError) as exc:
            logger.debug("Error during writer cleanup: %s", exc)
        logger.info("Connection to %s closed", self.remote_address)

    async def __aenter__(self) -> "MllpConnection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if self._state is ConnectionState.CLOSED:
            raise ConnectionClosed(f"Connection to {self.remote_address} is closed")
        if self._state is ConnectionState.FAULTED:
            raise ConnectionClosed(f"Connection to {self.remote_address} faulted: {self._fault}") from self._fault

    async def _read_loop(self) -> None:
        try:
            while True:
                payload = await self._frames.read()
                try:
                    text = payload.decode(self.encoding)
                except UnicodeDecodeError as exc:
                    raise FramingError(f"Payload is not valid {self.encoding}: {exc}") from exc
                self._resolve(Message(text=text, encoding=self.encoding, remote_address=self.remote_address))
        except asyncio.IncompleteReadError:
            logger.info("%s closed the connection", self.remote_address)
            self._enter_fault(TransportError(f"{self.remote_address} closed the connection"))
        except (FramingError, TransportError) as exc:
            logger.warning("Read loop for %s terminated: %s", self.remote_address, exc)
            self._enter_fault(exc)
        except Exception as exc:
            logger.exception("Unhandled error in read loop for %s: %s", self.remote_address, exc)
            self._enter_fault(TransportError(f"Read loop failed: {exc}"))

    def _resolve(self, message: Message) -> None:
        if not self._pending:
            logger.warning("Dropping unsolicited message from %s", self.remote_address)
            return
        response = self._pending.popleft()
        if response.done():
            logger.debug("Discarding response to cancelled request from %s", self.remote_address)
            return
        response.set_result(message)

    def _enter_fault(self, fault: MllpError) -> None:
        if self._state is not ConnectionState.OPEN:
            return
        self._state = ConnectionState.FAULTED
        self._fault = fault
        self._fail_pending(fault)
        self._writer.close()

    def _fail_pending(self, error: MllpError) -> None:
        while self._pending:
            response = self._pending.popleft()
            if not response.done():
                response.set_exception(error)


__all__ = ["ConnectionState", "MllpConnection"]
