"""
Unit Tests for Configuration and CORS Helpers
==============================================

Tests for edge_proxy/app/config.py and edge_proxy/app/proxy/cors.py

Run tests:
----------
    pytest edge_proxy/app/tests/test_config.py -v
"""

import pytest
from pydantic import ValidationError

from edge_proxy.app.config import DEFAULT_MAX_PAYLOAD_SIZE, Settings, validate_configuration
from edge_proxy.app.proxy.cors import build_cors_headers, is_origin_allowed


UPSTREAM_URL = "https://upstream.example.com/exec"


# ============================================================================
# Settings Tests
# ============================================================================

def test_defaults():
    settings = Settings(UPSTREAM_URL=UPSTREAM_URL, ALLOWED_ORIGINS="https://djamchid.github.io")

    assert settings.MAX_PAYLOAD_SIZE == DEFAULT_MAX_PAYLOAD_SIZE == 1024 * 1024
    assert settings.UPSTREAM_USER_AGENT == "FeteVoisinsProxy/1.0"
    assert settings.upstream_url_str == UPSTREAM_URL


def test_allowed_origins_list_is_trimmed():
    settings = Settings(
        UPSTREAM_URL=UPSTREAM_URL,
        ALLOWED_ORIGINS=" https://a.example.com ,https://b.example.com,, ",
    )

    assert settings.allowed_origins_list == ["https://a.example.com", "https://b.example.com"]


@pytest.mark.parametrize(
    "origins",
    ["*", "https://a.example.com,*", "a.example.com", "https://a.example.com/", " , "],
)
def test_invalid_allowed_origins_rejected(origins):
    with pytest.raises(ValidationError):
        Settings(UPSTREAM_URL=UPSTREAM_URL, ALLOWED_ORIGINS=origins)


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("UPSTREAM_URL", UPSTREAM_URL)
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://djamchid.github.io")
    monkeypatch.setenv("MAX_PAYLOAD_SIZE", "2048")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.MAX_PAYLOAD_SIZE == 2048
    assert settings.LOG_LEVEL == "DEBUG"


def test_validate_configuration_warnings():
    settings = Settings(
        UPSTREAM_URL="http://localhost:9000/exec",
        ALLOWED_ORIGINS="http://localhost:4000,https://djamchid.github.io",
    )

    report = validate_configuration(settings)

    assert report["valid"] is True
    assert len(report["warnings"]) == 3


def test_validate_configuration_clean():
    settings = Settings(UPSTREAM_URL=UPSTREAM_URL, ALLOWED_ORIGINS="https://djamchid.github.io")

    assert validate_configuration(settings)["warnings"] == []


# ============================================================================
# CORS Helper Tests
# ============================================================================

def test_is_origin_allowed():
    allowed = ["https://djamchid.github.io"]

    assert is_origin_allowed("https://djamchid.github.io", allowed)
    assert not is_origin_allowed("https://djamchid.github.io.evil.com", allowed)
    assert not is_origin_allowed("", allowed)
    assert not is_origin_allowed(None, allowed)


def test_build_cors_headers_reflects_origin():
    headers = build_cors_headers("https://djamchid.github.io")

    assert headers["Access-Control-Allow-Origin"] == "https://djamchid.github.io"
    assert headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"
    assert headers["Access-Control-Allow-Headers"] == "Content-Type, X-Requested-With"
    assert headers["Access-Control-Max-Age"] == "86400"
    assert headers["Vary"] == "Origin"
