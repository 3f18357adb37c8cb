from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

from mllp_client.config import CLIENT_CONFIG, load_config
from mllp_client.core import ConnectionFactory
from mllp_shared.protocol.errors import MllpError
from mllp_shared.settings import load_settings


async def run_client(source: str = "-") -> int:
    settings = load_settings()
    load_config()
    logging.basicConfig(level=CLIENT_CONFIG["log_level"])

    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding=CLIENT_CONFIG["encoding"])
    # Files on disk usually carry \n line endings; HL7 segments end in \r.
    text = text.replace("\r\n", "\r").replace("\n", "\r")

    factory = ConnectionFactory.from_config(
        CLIENT_CONFIG,
        max_payload_size=settings.max_payload_size,
        read_chunk_size=settings.read_chunk_size,
    )
    try:
        async with await factory.get() as connection:
            response = await connection.send(text)
    except MllpError as exc:
        logging.getLogger(__name__).error("Send failed: %s", exc)
        return 1
    print(response.text.replace("\r", "\n"))
    return 0


def cli() -> None:
    sys.exit(asyncio.run(run_client(sys.argv[1] if len(sys.argv) > 1 else "-")))


if __name__ == "__main__":
    cli()
