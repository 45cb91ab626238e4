"""Pseudonym backends: the in-process codec, and the factory that picks one."""

from __future__ import annotations

import logging

from bsnguard import codec
from bsnguard.config import GatewayConfig
from bsnguard.errors import ConfigurationError
from bsnguard.exchange import RemoteExchangeClient
from bsnguard.interface import PseudonymBackend

logger = logging.getLogger(__name__)


class LocalCodecBackend(PseudonymBackend):
    """Stateless backend on top of :mod:`bsnguard.codec`."""

    name = "local"

    def to_pseudonym(self, token: str) -> str:
        return codec.token_to_pseudonym(token)

    def to_token(self, pseudonym: str, audience: str) -> str:
        return codec.pseudonym_to_token(pseudonym, audience)


def make_backend(config: GatewayConfig) -> PseudonymBackend:
    """Build the backend named by ``config.backend``."""
    if config.backend == "local":
        return LocalCodecBackend()
    if config.backend == "remote":
        logger.info("Using remote pseudonym exchange at %s", config.exchange_url)
        return RemoteExchangeClient.from_config(config)
    raise ConfigurationError(f"Unknown pseudonym backend: {config.backend!r}")
