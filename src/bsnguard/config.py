"""Configuration for the bsnguard gateway.

Reads from config/bsnguard.ini if present, environment variables override.
Loaded once at startup and handed to the backend and pipeline.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path

from bsnguard.errors import ConfigurationError

_CONFIG_FILE = Path(__file__).resolve().parent.parent.parent / "config" / "bsnguard.ini"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class GatewayConfig:
    """Gateway configuration. Immutable once loaded."""

    pseudonym_system: str = "http://fhir.nl/fhir/NamingSystem/pseudo-bsn"
    token_system: str = "http://fhir.nl/fhir/NamingSystem/bsn-transport-token"
    audience_header: str = "X-Requester-URA"
    strict_create: bool = True
    backend: str = "local"
    exchange_url: str = "http://localhost:8082"
    exchange_timeout: float = 10.0
    identifier_type: str = "ORGANISATION_PSEUDO"
    scope: str = "localization"
    organisation: str = "nvi-1"
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"


# (ini section, ini key, config field)
_INI_KEYS = [
    ("identifiers", "pseudonym_system", "pseudonym_system"),
    ("identifiers", "token_system", "token_system"),
    ("exchange", "backend", "backend"),
    ("exchange", "url", "exchange_url"),
    ("exchange", "timeout", "exchange_timeout"),
    ("exchange", "identifier_type", "identifier_type"),
    ("exchange", "scope", "scope"),
    ("exchange", "organisation", "organisation"),
    ("gateway", "audience_header", "audience_header"),
    ("gateway", "strict_create", "strict_create"),
    ("gateway", "host", "host"),
    ("gateway", "port", "port"),
    ("gateway", "log_level", "log_level"),
]

_ENV_MAP = {
    "BSNGUARD_PSEUDONYM_SYSTEM": "pseudonym_system",
    "BSNGUARD_TOKEN_SYSTEM": "token_system",
    "BSNGUARD_AUDIENCE_HEADER": "audience_header",
    "BSNGUARD_STRICT_CREATE": "strict_create",
    "BSNGUARD_BACKEND": "backend",
    "BSNGUARD_EXCHANGE_URL": "exchange_url",
    "BSNGUARD_EXCHANGE_TIMEOUT": "exchange_timeout",
    "BSNGUARD_IDENTIFIER_TYPE": "identifier_type",
    "BSNGUARD_SCOPE": "scope",
    "BSNGUARD_ORGANISATION": "organisation",
    "BSNGUARD_HOST": "host",
    "BSNGUARD_PORT": "port",
    "BSNGUARD_LOG_LEVEL": "log_level",
}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name}: expected a boolean, got {raw!r}")


def _coerce(config_key: str, raw: str):
    try:
        if config_key == "port":
            return int(raw)
        if config_key == "exchange_timeout":
            return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{config_key}: invalid number {raw!r}") from exc
    if config_key == "strict_create":
        return _parse_bool(config_key, raw)
    return raw


def load_config(config_path: Path | None = None) -> GatewayConfig:
    """Load config from INI file, then override with environment variables."""
    path = config_path or _CONFIG_FILE
    kwargs: dict = {}

    if path.exists():
        parser = configparser.ConfigParser()
        parser.read(path)
        for section, ini_key, config_key in _INI_KEYS:
            val = parser.get(section, ini_key, fallback=None)
            if val is not None:
                kwargs[config_key] = _coerce(config_key, val)

    for env_key, config_key in _ENV_MAP.items():
        val = os.getenv(env_key)
        if val is not None:
            kwargs[config_key] = _coerce(config_key, val)

    config = GatewayConfig(**kwargs)
    if config.exchange_timeout <= 0:
        raise ConfigurationError("exchange_timeout must be positive")
    if config.pseudonym_system == config.token_system:
        raise ConfigurationError("pseudonym_system and token_system must differ")
    return config
