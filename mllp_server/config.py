from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv

from mllp_shared.protocol.messages import TransactionKey

DEFAULT_SERVER_CONFIG: Dict[str, Any] = {
    "host": "0.0.0.0",
    "port": 2575,
    "encoding": "utf-8",
    "log_level": "INFO",
    "certfile": "",
    "keyfile": "",
    "cafile": "",
    "require_client_cert": False,
    "nak_on_error": True,
    "sending_application": "MLLP_SERVER",
    "sending_facility": "",
    "handled_structures": "2.5:ADT_A01",
}

SERVER_CONFIG = DEFAULT_SERVER_CONFIG.copy()


class ConfigError(Exception):
    """Raised when configuration values are invalid."""


def _flag(value: Any) -> bool:
    return str(value).lower() in ("1", "true", "yes", "on")


def load_server_config(env_path: str = ".env") -> Dict[str, Any]:
    if Path(env_path).exists():
        load_dotenv(env_path)
    SERVER_CONFIG["host"] = os.getenv("SERVER_HOST", SERVER_CONFIG["host"])
    try:
        SERVER_CONFIG["port"] = int(os.getenv("SERVER_PORT", SERVER_CONFIG["port"]))
    except ValueError as exc:
        raise ConfigError(f"Cannot convert SERVER_PORT to int: {exc}") from exc
    SERVER_CONFIG["encoding"] = os.getenv("SERVER_ENCODING", SERVER_CONFIG["encoding"])
    SERVER_CONFIG["log_level"] = os.getenv("SERVER_LOG_LEVEL", SERVER_CONFIG["log_level"])
    SERVER_CONFIG["certfile"] = os.getenv("SERVER_CERTFILE", SERVER_CONFIG["certfile"])
    SERVER_CONFIG["keyfile"] = os.getenv("SERVER_KEYFILE", SERVER_CONFIG["keyfile"])
    SERVER_CONFIG["cafile"] = os.getenv("SERVER_CAFILE", SERVER_CONFIG["cafile"])
    SERVER_CONFIG["require_client_cert"] = _flag(
        os.getenv("SERVER_REQUIRE_CLIENT_CERT", SERVER_CONFIG["require_client_cert"])
    )
    SERVER_CONFIG["nak_on_error"] = _flag(os.getenv("SERVER_NAK_ON_ERROR", SERVER_CONFIG["nak_on_error"]))
    SERVER_CONFIG["sending_application"] = os.getenv(
        "SERVER_SENDING_APPLICATION", SERVER_CONFIG["sending_application"]
    )
    SERVER_CONFIG["sending_facility"] = os.getenv("SERVER_SENDING_FACILITY", SERVER_CONFIG["sending_facility"])
    SERVER_CONFIG["handled_structures"] = os.getenv(
        "SERVER_HANDLED_STRUCTURES", SERVER_CONFIG["handled_structures"]
    )

    if not (0 <= SERVER_CONFIG["port"] <= 65535):
        raise ConfigError("port must be between 0 and 65535")
    if SERVER_CONFIG["require_client_cert"] and not SERVER_CONFIG["certfile"]:
        raise ConfigError("require_client_cert needs a server certfile")
    parse_structures(SERVER_CONFIG["handled_structures"])
    return SERVER_CONFIG


def parse_structures(value: str) -> List[TransactionKey]:
    """Parse ``"2.5:ADT_A01,2.5:ORU_R01"`` into transaction keys."""
    keys: List[TransactionKey] = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        version, sep, structure = item.partition(":")
        if not sep or not version or not structure:
            raise ConfigError(f"Invalid structure entry {item!r}, expected version:STRUCTURE")
        keys.append(TransactionKey(version.strip(), structure.strip()))
    return keys


__all__ = ["SERVER_CONFIG", "DEFAULT_SERVER_CONFIG", "ConfigError", "load_server_config", "parse_structures"]
