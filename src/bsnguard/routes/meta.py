"""Meta endpoints — health, version, record counts."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from bsnguard import __version__
from bsnguard.deps import get_backend, get_store
from bsnguard.interface import PseudonymBackend
from bsnguard.store import ResourceStore

router = APIRouter(prefix="/api/v1", tags=["meta"])


@router.get("/health")
def health():
    return {"status": "ok", "service": "bsnguard"}


@router.get("/version")
def version(backend: PseudonymBackend = Depends(get_backend)):
    return {
        "gateway": __version__,
        "backend": backend.name,
    }


@router.get("/counts")
def counts(store: ResourceStore = Depends(get_store)):
    return store.count_records()
