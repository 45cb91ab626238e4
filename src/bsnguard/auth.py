"""Requester audience header for the bsnguard gateway.

The header names the organisation (URA) a response is meant for. Its
absence is not an authentication failure here; the pipeline decides per
hook whether a missing audience is fatal.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Request
from fastapi.security import APIKeyHeader


@lru_cache(maxsize=None)
def audience_scheme(header_name: str) -> APIKeyHeader:
    """The header scheme for ``header_name``; a missing header yields None."""
    return APIKeyHeader(name=header_name, auto_error=False)


async def read_audience(request: Request) -> str | None:
    """FastAPI dependency: the requester audience, or None when absent or blank.

    The header name comes from the app's config, so routes can depend on
    this directly without knowing it.
    """
    scheme = audience_scheme(request.app.state.config.audience_header)
    audience = await scheme(request)
    value = audience.strip() if audience else None
    return value or None
