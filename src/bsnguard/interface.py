"""The capability every pseudonym backend provides to the pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod


class PseudonymBackend(ABC):
    """Turns transport tokens into pseudonyms and back.

    ``to_pseudonym`` must be stable: the same token (or any token minted
    from the same pseudonym) always gives the same pseudonym.
    ``to_token`` mints a new token on every call.
    """

    name: str = "abstract"

    @abstractmethod
    def to_pseudonym(self, token: str) -> str:
        """Map a transport token to its stored pseudonym."""

    @abstractmethod
    def to_token(self, pseudonym: str, audience: str) -> str:
        """Mint a transport token for ``audience`` from a stored pseudonym."""

    def close(self) -> None:
        """Release resources. No-op unless the backend holds any."""
