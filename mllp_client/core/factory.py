from __future__ import annotations

import ssl
from typing import Any, Dict, Optional

from mllp_shared.protocol.constants import DEFAULT_ENCODING, MAX_PAYLOAD_SIZE, READ_CHUNK_SIZE
from mllp_shared.tls import CertificateValidator, client_context

from .connection import MllpConnection
from .message_log import FileMessageLog, MessageLog, NullMessageLog


class ConnectionFactory:
    """Opens fresh connections to one configured endpoint."""

    def __init__(
        self,
        host: str,
        port: int,
        message_log: Optional[MessageLog] = None,
        encoding: str = DEFAULT_ENCODING,
        ssl_context: Optional[ssl.SSLContext] = None,
        cert_validator: Optional[CertificateValidator] = None,
        connect_timeout: Optional[float] = None,
        max_payload_size: int = MAX_PAYLOAD_SIZE,
        read_chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.message_log = message_log or NullMessageLog()
        self.encoding = encoding
        self.ssl_context = ssl_context
        self.cert_validator = cert_validator
        self.connect_timeout = connect_timeout
        self.max_payload_size = max_payload_size
        self.read_chunk_size = read_chunk_size

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        cert_validator: Optional[CertificateValidator] = None,
        max_payload_size: int = MAX_PAYLOAD_SIZE,
        read_chunk_size: int = READ_CHUNK_SIZE,
    ) -> "ConnectionFactory":
        ssl_context = None
        if config.get("tls_enabled"):
            ssl_context = client_context(
                certfile=config.get("certfile") or None,
                keyfile=config.get("keyfile") or None,
                cafile=config.get("cafile") or None,
                verify=bool(config.get("verify_server", True)),
            )
        log_path = config.get("message_log_path")
        return cls(
            config["server_host"],
            int(config["server_port"]),
            message_log=FileMessageLog(log_path) if log_path else None,
            encoding=config.get("encoding", DEFAULT_ENCODING),
            ssl_context=ssl_context,
            cert_validator=cert_validator,
            connect_timeout=config.get("connect_timeout"),
            max_payload_size=max_payload_size,
            read_chunk_size=read_chunk_size,
        )

    async def get(self) -> MllpConnection:
        return await MllpConnection.create(
            self.host,
            self.port,
            message_log=self.message_log,
            encoding=self.encoding,
            ssl_context=self.ssl_context,
            cert_validator=self.cert_validator,
            connect_timeout=self.connect_timeout,
            max_payload_size=self.max_payload_size,
            read_chunk_size=self.read_chunk_size,
        )


__all__ = ["ConnectionFactory"]
