"""Shared fixtures: config, backends and a fresh gateway per test."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bsnguard import codec
from bsnguard.app import create_app
from bsnguard.backends import LocalCodecBackend
from bsnguard.config import GatewayConfig
from bsnguard.errors import BackendUnavailableError
from bsnguard.interface import PseudonymBackend
from bsnguard.pipeline import InterceptionPipeline
from bsnguard.store import ResourceStore

BSN = "123456782"
NVI = "nvi-1"
HOSPITAL = "00000666"
CLINIC = "00000777"

PSEUDO_SYSTEM = GatewayConfig.pseudonym_system
TOKEN_SYSTEM = GatewayConfig.token_system
URA_SYSTEM = "http://fhir.nl/fhir/NamingSystem/ura"


class RecordingBackend(PseudonymBackend):
    """Local codec that remembers every call; can be told to fail."""

    name = "recording"

    def __init__(self, fail: bool = False) -> None:
        self.inner = LocalCodecBackend()
        self.fail = fail
        self.calls: list[tuple] = []
        self.closed = False

    def to_pseudonym(self, token: str) -> str:
        self.calls.append(("to_pseudonym", token))
        if self.fail:
            raise BackendUnavailableError("exchange down")
        return self.inner.to_pseudonym(token)

    def to_token(self, pseudonym: str, audience: str) -> str:
        self.calls.append(("to_token", pseudonym, audience))
        if self.fail:
            raise BackendUnavailableError("exchange down")
        return self.inner.to_token(pseudonym, audience)

    def close(self) -> None:
        self.closed = True


def make_document(
    token: str | None = None,
    *,
    custodian: str | None = HOSPITAL,
    custodian_reference: str | None = None,
    subject: dict | None = None,
) -> dict:
    """A DocumentReference payload as a sending organisation would POST it."""
    doc: dict = {"resourceType": "DocumentReference", "status": "current"}
    if subject is not None:
        doc["subject"] = subject
    elif token is not None:
        doc["subject"] = {"identifier": {"system": TOKEN_SYSTEM, "value": token}}
    if custodian is not None:
        doc["custodian"] = {"identifier": {"system": URA_SYSTEM, "value": custodian}}
    elif custodian_reference is not None:
        doc["custodian"] = {"reference": custodian_reference}
    return doc


@pytest.fixture
def config() -> GatewayConfig:
    return GatewayConfig()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def pipeline(backend, config) -> InterceptionPipeline:
    return InterceptionPipeline(backend, config)


@pytest.fixture
def store() -> ResourceStore:
    return ResourceStore()


@pytest.fixture
def app(config, backend, store):
    """Fresh gateway per test."""
    return create_app(config, backend=backend, store=store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def nvi_token() -> str:
    """A token addressed to the storage audience, as sent by a source system."""
    return codec.create_token(BSN, NVI)
