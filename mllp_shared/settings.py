from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from mllp_shared.protocol.constants import MAX_PAYLOAD_SIZE, READ_CHUNK_SIZE


@dataclass
class Settings:
    """Transport limits shared by client and server; each side configures the rest."""

    max_payload_size: int = MAX_PAYLOAD_SIZE
    read_chunk_size: int = READ_CHUNK_SIZE


SETTINGS = Settings()


def load_settings(env_path: str = ".env") -> Settings:
    """Load shared settings from env/.env."""
    if Path(env_path).exists():
        load_dotenv(env_path)
    SETTINGS.max_payload_size = int(os.getenv("MLLP_MAX_PAYLOAD_SIZE", SETTINGS.max_payload_size))
    SETTINGS.read_chunk_size = int(os.getenv("MLLP_READ_CHUNK_SIZE", SETTINGS.read_chunk_size))
    if SETTINGS.max_payload_size <= 0 or SETTINGS.read_chunk_size <= 0:
        raise ValueError("MLLP_MAX_PAYLOAD_SIZE and MLLP_READ_CHUNK_SIZE must be positive")
    return SETTINGS


__all__ = ["Settings", "SETTINGS", "load_settings"]
