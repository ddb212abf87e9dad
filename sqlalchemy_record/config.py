"""Environment configuration for a Gateway."""

from __future__ import annotations

from dataclasses import dataclass
import os
from dotenv import find_dotenv, load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class GatewayConfig:
    path: str | None = None
    version: int = 0
    echo: bool = False


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer.") from exc


def load_config() -> GatewayConfig:
    """
    Read the gateway settings from the environment (and a ``.env`` file found from the working directory).

    SQLALCHEMY_RECORD_PATH     database file, in-memory when unset
    SQLALCHEMY_RECORD_VERSION  schema version stored in the meta table
    SQLALCHEMY_RECORD_ECHO     log every statement through SQLAlchemy
    """
    load_dotenv(find_dotenv(usecwd=True))
    path = os.getenv("SQLALCHEMY_RECORD_PATH") or None
    version = _read_int("SQLALCHEMY_RECORD_VERSION", 0)
    echo = os.getenv("SQLALCHEMY_RECORD_ECHO", "").strip().lower() in _TRUE_VALUES

    return GatewayConfig(path=path, version=version, echo=echo)
