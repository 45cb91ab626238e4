"""Client for the remote pseudonym exchange service.

The alternative to the local codec: both transforms are delegated to a
service that owns the keys. One blocking POST per transform, no retries;
the caller decides whether to retry the whole request.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from bsnguard.config import GatewayConfig
from bsnguard.errors import BackendUnavailableError, ExchangeRejectedError
from bsnguard.interface import PseudonymBackend

logger = logging.getLogger(__name__)

ENDPOINT_GET_TOKEN = "/getToken"
ENDPOINT_EXCHANGE_TOKEN = "/exchangeToken"
ENDPOINT_EXCHANGE_IDENTIFIER = "/exchangeIdentifier"


# ── Wire models ───────────────────────────────────────────────


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ExchangeIdentifier(_Wire):
    value: str
    type: str


class GetTokenRequest(_Wire):
    identifier: ExchangeIdentifier
    receiver: str
    scope: str
    sender: str


class GetTokenResponse(_Wire):
    token: str


class ExchangeTokenRequest(_Wire):
    token: str
    identifierType: str
    scope: str
    organisation: str


class ExchangeIdentifierRequest(_Wire):
    identifier: ExchangeIdentifier
    recipientIdentifierType: str
    scope: str
    organisation: str


class IdentifierResponse(_Wire):
    identifier: ExchangeIdentifier


# ── Client ────────────────────────────────────────────────────


class RemoteExchangeClient(PseudonymBackend):
    """PseudonymBackend backed by the exchange service's HTTP API.

    Args:
        base_url: Service root, trailing slash optional.
        identifier_type: Identifier type of stored pseudonyms
            (``ORGANISATION_PSEUDO``).
        scope: Exchange scope, e.g. ``localization``.
        organisation: Our own organisation id, sent as sender/organisation.
        timeout: Per-request timeout in seconds.
        session: Optional preconfigured ``requests.Session``.
    """

    name = "remote"

    def __init__(
        self,
        base_url: str,
        *,
        identifier_type: str,
        scope: str,
        organisation: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.identifier_type = identifier_type
        self.scope = scope
        self.organisation = organisation
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "RemoteExchangeClient":
        return cls(
            config.exchange_url,
            identifier_type=config.identifier_type,
            scope=config.scope,
            organisation=config.organisation,
            timeout=config.exchange_timeout,
        )

    # ── Service operations ────────────────────────────────────

    def get_token(self, identifier: ExchangeIdentifier, receiver: str) -> str:
        """Ask the service for a token for ``receiver``."""
        request = GetTokenRequest(
            identifier=identifier,
            receiver=receiver,
            scope=self.scope,
            sender=self.organisation,
        )
        logger.debug("Requesting token for receiver %s", receiver)
        body = self._post(ENDPOINT_GET_TOKEN, request)
        return self._parse(GetTokenResponse, body, ENDPOINT_GET_TOKEN).token

    def exchange_token(self, token: str) -> ExchangeIdentifier:
        """Trade a token addressed to us for our own identifier."""
        request = ExchangeTokenRequest(
            token=token,
            identifierType=self.identifier_type,
            scope=self.scope,
            organisation=self.organisation,
        )
        logger.debug("Exchanging token")
        body = self._post(ENDPOINT_EXCHANGE_TOKEN, request)
        return self._parse(IdentifierResponse, body, ENDPOINT_EXCHANGE_TOKEN).identifier

    def exchange_identifier(
        self, identifier: ExchangeIdentifier, recipient_identifier_type: str
    ) -> ExchangeIdentifier:
        """Translate an identifier into another identifier type."""
        request = ExchangeIdentifierRequest(
            identifier=identifier,
            recipientIdentifierType=recipient_identifier_type,
            scope=self.scope,
            organisation=self.organisation,
        )
        logger.debug("Exchanging identifier of type %s", identifier.type)
        body = self._post(ENDPOINT_EXCHANGE_IDENTIFIER, request)
        return self._parse(IdentifierResponse, body, ENDPOINT_EXCHANGE_IDENTIFIER).identifier

    # ── PseudonymBackend ──────────────────────────────────────

    def to_pseudonym(self, token: str) -> str:
        return self.exchange_token(token).value

    def to_token(self, pseudonym: str, audience: str) -> str:
        identifier = ExchangeIdentifier(value=pseudonym, type=self.identifier_type)
        return self.get_token(identifier, receiver=audience)

    def close(self) -> None:
        self._session.close()

    # ── Transport ─────────────────────────────────────────────

    def _post(self, endpoint: str, request: BaseModel) -> object:
        url = self.base_url + endpoint
        try:
            response = self._session.post(
                url,
                json=request.model_dump(mode="json"),
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise BackendUnavailableError(
                f"Pseudonym exchange timed out after {self.timeout}s ({endpoint})"
            ) from exc
        except requests.ConnectionError as exc:
            raise BackendUnavailableError(
                f"Pseudonym exchange unreachable at {self.base_url}"
            ) from exc
        except requests.RequestException as exc:
            raise BackendUnavailableError(f"Pseudonym exchange request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("Pseudonym exchange %s returned HTTP %d", endpoint, response.status_code)
            raise ExchangeRejectedError(
                f"Pseudonym exchange rejected {endpoint}: HTTP {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ExchangeRejectedError(
                f"Pseudonym exchange returned invalid JSON for {endpoint}"
            ) from exc

    @staticmethod
    def _parse(model: type[_Wire], body: object, endpoint: str):
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise ExchangeRejectedError(
                f"Pseudonym exchange returned an unexpected body for {endpoint}"
            ) from exc
