from __future__ import annotations

import asyncio
import logging

from mllp_server.config import SERVER_CONFIG, load_server_config, parse_structures
from mllp_server.core import ConnectionManager, MessageDispatcher, MllpServer
from mllp_server.handlers import acknowledgement_handler
from mllp_shared.settings import load_settings
from mllp_shared.tls import server_context


async def run_server() -> None:
    settings = load_settings()
    load_server_config()
    logging.basicConfig(level=SERVER_CONFIG["log_level"])

    handlers = [
        acknowledgement_handler(
            key.version,
            key.structure_name,
            sending_application=SERVER_CONFIG["sending_application"],
            sending_facility=SERVER_CONFIG["sending_facility"],
        )
        for key in parse_structures(SERVER_CONFIG["handled_structures"])
    ]
    dispatcher = MessageDispatcher(handlers)

    ssl_context = None
    if SERVER_CONFIG["certfile"]:
        ssl_context = server_context(
            SERVER_CONFIG["certfile"],
            keyfile=SERVER_CONFIG["keyfile"] or None,
            cafile=SERVER_CONFIG["cafile"] or None,
            require_client_cert=SERVER_CONFIG["require_client_cert"],
        )

    server = MllpServer(
        SERVER_CONFIG["host"],
        SERVER_CONFIG["port"],
        dispatcher,
        ssl_context=ssl_context,
        encoding=SERVER_CONFIG["encoding"],
        connection_manager=ConnectionManager(),
        nak_on_error=SERVER_CONFIG["nak_on_error"],
        sending_application=SERVER_CONFIG["sending_application"],
        sending_facility=SERVER_CONFIG["sending_facility"],
        max_payload_size=settings.max_payload_size,
        read_chunk_size=settings.read_chunk_size,
    )
    await server.start()
    try:
        await server.serve_forever()
    finally:
        await server.close()


def cli() -> None:
    asyncio.run(run_server())


if __name__ == "__main__":
    cli()
