"""FastAPI dependencies for bsnguard routes."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from bsnguard.auth import read_audience
from bsnguard.interface import PseudonymBackend
from bsnguard.pipeline import InterceptionPipeline, RequestContext
from bsnguard.store import ResourceStore


def get_store(request: Request) -> ResourceStore:
    """Get the resource store from app state."""
    return request.app.state.store


def get_backend(request: Request) -> PseudonymBackend:
    """Get the pseudonym backend from app state."""
    return request.app.state.backend


def get_pipeline(request: Request) -> InterceptionPipeline:
    """Get the interception pipeline from app state."""
    return request.app.state.pipeline


def get_request_context(
    request: Request,
    audience: Optional[str] = Depends(read_audience),
) -> RequestContext:
    """Method and audience header of the current request."""
    return RequestContext(method=request.method, audience=audience)
