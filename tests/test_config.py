"""Tests for configuration loading: defaults, INI file, environment."""

from __future__ import annotations

import os

import pytest

from bsnguard.config import GatewayConfig, load_config
from bsnguard.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("BSNGUARD_"):
            monkeypatch.delenv(key)


@pytest.fixture
def missing(tmp_path):
    return tmp_path / "absent.ini"


class TestDefaults:
    def test_defaults_without_file(self, missing):
        config = load_config(missing)
        assert config == GatewayConfig()
        assert config.audience_header == "X-Requester-URA"
        assert config.pseudonym_system == "http://fhir.nl/fhir/NamingSystem/pseudo-bsn"
        assert config.token_system == "http://fhir.nl/fhir/NamingSystem/bsn-transport-token"
        assert config.strict_create is True
        assert config.backend == "local"

    def test_immutable(self):
        config = GatewayConfig()
        with pytest.raises(AttributeError):
            config.backend = "remote"


class TestIniFile:
    def test_sections_read(self, tmp_path):
        path = tmp_path / "bsnguard.ini"
        path.write_text(
            "[identifiers]\n"
            "token_system = urn:example:token\n"
            "[exchange]\n"
            "backend = remote\n"
            "url = http://px:8082\n"
            "timeout = 2.5\n"
            "organisation = nvi-2\n"
            "[gateway]\n"
            "strict_create = off\n"
            "port = 9090\n"
        )
        config = load_config(path)
        assert config.token_system == "urn:example:token"
        assert config.backend == "remote"
        assert config.exchange_url == "http://px:8082"
        assert config.exchange_timeout == 2.5
        assert config.organisation == "nvi-2"
        assert config.strict_create is False
        assert config.port == 9090

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "bsnguard.ini"
        path.write_text("[gateway]\nport = 9090\naudience_header = X-Audience\n")
        monkeypatch.setenv("BSNGUARD_PORT", "7070")
        config = load_config(path)
        assert config.port == 7070
        assert config.audience_header == "X-Audience"


class TestEnvironment:
    def test_env_values(self, missing, monkeypatch):
        monkeypatch.setenv("BSNGUARD_BACKEND", "remote")
        monkeypatch.setenv("BSNGUARD_STRICT_CREATE", "false")
        monkeypatch.setenv("BSNGUARD_EXCHANGE_TIMEOUT", "1")
        config = load_config(missing)
        assert config.backend == "remote"
        assert config.strict_create is False
        assert config.exchange_timeout == 1.0

    @pytest.mark.parametrize(
        "key,value",
        [
            ("BSNGUARD_PORT", "eighty"),
            ("BSNGUARD_STRICT_CREATE", "maybe"),
            ("BSNGUARD_EXCHANGE_TIMEOUT", "0"),
        ],
    )
    def test_invalid_values(self, missing, monkeypatch, key, value):
        monkeypatch.setenv(key, value)
        with pytest.raises(ConfigurationError):
            load_config(missing)

    def test_systems_must_differ(self, missing, monkeypatch):
        monkeypatch.setenv("BSNGUARD_TOKEN_SYSTEM", GatewayConfig.pseudonym_system)
        with pytest.raises(ConfigurationError):
            load_config(missing)
