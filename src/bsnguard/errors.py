"""Error hierarchy for the bsnguard gateway.

Codec errors reject a single identifier, request validation errors reject
the request (client error), backend errors fail the request (server error).
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for everything the gateway raises on purpose."""


class ConfigurationError(GatewayError):
    """Invalid or inconsistent configuration."""


class NotFoundError(GatewayError):
    """Requested resource does not exist in the store."""


# ── Codec ─────────────────────────────────────────────────────


class CodecError(GatewayError):
    """An identifier could not be parsed or decoded."""


class InvalidTokenFormatError(CodecError):
    pass


class InvalidPseudonymFormatError(CodecError):
    pass


class InvalidEncodingError(CodecError):
    pass


# ── Request validation ────────────────────────────────────────


class RequestRejectedError(GatewayError):
    """The request is not acceptable as sent."""


class MissingAudienceHeaderError(RequestRejectedError):
    pass


class MissingFilterError(RequestRejectedError):
    pass


class CustodianMismatchError(RequestRejectedError):
    pass


# ── Backend ───────────────────────────────────────────────────


class BackendError(GatewayError):
    """The pseudonym backend could not complete a transform."""


class BackendUnavailableError(BackendError):
    """Backend unreachable or timed out."""


class ExchangeRejectedError(BackendError):
    """Backend answered, but with an error or an unusable body."""
