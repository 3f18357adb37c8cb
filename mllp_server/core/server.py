from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Optional

from mllp_shared.protocol.acks import AckCode, build_ack, fallback_ack
from mllp_shared.protocol.constants import DEFAULT_ENCODING, MAX_PAYLOAD_SIZE, READ_CHUNK_SIZE
from mllp_shared.protocol.errors import DispatchError, FramingError, ParseError, TransportError
from mllp_shared.protocol.framing import FrameDecoder, FrameReader, encode_message
from mllp_shared.protocol.messages import Message
from mllp_shared.tls import CertificateValidator, check_peer
from mllp_shared.utils.common import format_address

from .connection import PeerContext
from .connection_manager import ConnectionManager
from .dispatcher import MessageDispatcher

logger = logging.getLogger(__name__)


class MllpServer:
    """
    MLLP listener.

    Every accepted peer gets its own task that reads frames, hands the text to
    the dispatcher and writes the framed response back, for as long as the
    peer keeps the socket open. A failure on one peer only ends that peer.
    """

    def __init__(
        self,
        host: str,
        port: int,
        dispatcher: MessageDispatcher,
        ssl_context: Optional[ssl.SSLContext] = None,
        cert_validator: Optional[CertificateValidator] = None,
        encoding: str = DEFAULT_ENCODING,
        connection_manager: Optional[ConnectionManager] = None,
        nak_on_error: bool = True,
        sending_application: str = "",
        sending_facility: str = "",
        max_payload_size: int = MAX_PAYLOAD_SIZE,
        read_chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.dispatcher = dispatcher
        self.ssl_context = ssl_context
        self.cert_validator = cert_validator
        self.encoding = encoding
        self.connection_manager = connection_manager or ConnectionManager()
        self.nak_on_error = nak_on_error
        self.sending_application = sending_application
        self.sending_facility = sending_facility
        self.max_payload_size = max_payload_size
        self.read_chunk_size = read_chunk_size
        self._server: Optional[asyncio.AbstractServer] = None
        self._stopping = asyncio.Event()

    @property
    def bound_port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._stopping.clear()
        self._server = await asyncio.start_server(self._handle_client, self.host, self.port, ssl=self.ssl_context)
        logger.info(
            "MLLP server listening on %s:%s%s", self.host, self.bound_port, " (TLS)" if self.ssl_context else ""
        )

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        server = self._server
        if server is None:
            raise RuntimeError("MLLP server was closed before serving")
        await server.serve_forever()

    async def close(self) -> None:
        """Stop accepting and close every live peer connection."""
        if self._server is None:
            return
        self._stopping.set()
        self._server.close()
        await self.connection_manager.close_all()
        await self._server.wait_closed()
        self._server = None
        logger.info("MLLP server on %s:%s stopped", self.host, self.port)

    async def __aenter__(self) -> "MllpServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = format_address(writer.get_extra_info("peername"))
        ctx = PeerContext(
            reader=reader,
            writer=writer,
            peername=peer,
            task=asyncio.current_task(),
            tls=writer.get_extra_info("ssl_object") is not None,
        )
        self.connection_manager.register(writer, ctx)
        logger.info("Peer %s connected%s", peer, " (TLS)" if ctx.tls else "")
        try:
            if self.ssl_context is not None:
                check_peer(writer, self.cert_validator, peer)
            frames = FrameReader(reader, FrameDecoder(self.max_payload_size), self.read_chunk_size)
            while True:
                payload = await frames.read()
                ctx.touch()
                message = Message(text=payload.decode(self.encoding), encoding=self.encoding, remote_address=peer)
                response = await self._dispatch(message)
                if response is None:
                    break
                writer.write(encode_message(response, self.encoding))
                await writer.drain()
                ctx.mark_handled()
        except asyncio.IncompleteReadError:
            logger.info("Peer %s disconnected after %s messages", peer, ctx.handled)
        except (FramingError, TransportError) as exc:
            logger.warning("Protocol error for %s: %s", peer, exc)
        except UnicodeDecodeError as exc:
            logger.warning("Undecodable payload from %s: %s", peer, exc)
        except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError, OSError) as exc:
            logger.info("Peer %s connection reset: %s", peer, exc)
        except Exception as exc:
            logger.exception("Unhandled error for %s: %s", peer, exc)
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug("Error during writer cleanup: %s", e)
            finally:
                self.connection_manager.unregister(writer)

    async def _dispatch(self, message: Message) -> Optional[str]:
        """Run the dispatcher; on failure answer with a negative ACK or ``None`` to hang up."""
        try:
            return await self.dispatcher.handle(message.text, self._stopping)
        except (ParseError, DispatchError) as exc:
            logger.warning("Rejecting message from %s: %s", message.remote_address, exc)
            code, detail = AckCode.APPLICATION_REJECT, exc.message
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Handler failed for message from %s: %s", message.remote_address, exc)
            code, detail = AckCode.APPLICATION_ERROR, str(exc)
        if not self.nak_on_error:
            return None
        return self._negative_ack(message.text, code, detail)

    def _negative_ack(self, request_text: str, code: AckCode, detail: str) -> str:
        parser = self.dispatcher.parser
        try:
            request = parser.parse(request_text)
        except (ParseError, ValueError):
            return parser.encode(fallback_ack(code, detail))
        return parser.encode(
            build_ack(
                request,
                code,
                detail,
                sending_application=self.sending_application,
                sending_facility=self.sending_facility,
            )
        )


__all__ = ["MllpServer"]
