"""Unit tests for forum/healthcheck.py — no real API calls."""

import asyncio
from unittest.mock import AsyncMock

import forum.healthcheck as hc
from config.config_loader import ForumSettings
from forum.healthcheck import live_identities, run_health_checks
from forum.models import Identity, ResolutionMode
from forum.providers.base import BackendError, MissingCredentialError
from tests.conftest import MockClient

ROTATION = [Identity.GROK, Identity.GEMINI, Identity.OPENAI]


async def test_all_backends_pass():
    clients = {Identity.GEMINI: MockClient("Gemini", "OK"), Identity.OPENAI: MockClient("OpenAI", "OK")}
    credentials = {Identity.GEMINI: "g", Identity.OPENAI: "o"}

    results = await run_health_checks(clients, credentials, [Identity.GEMINI, Identity.OPENAI])

    assert results == {Identity.GEMINI: (True, ""), Identity.OPENAI: (True, "")}
    credential = clients[Identity.OPENAI].generate.call_args.args[0]
    assert credential == "o"


async def test_one_backend_fails():
    clients = {Identity.GEMINI: MockClient("Gemini"), Identity.GROK: MockClient("Grok")}
    clients[Identity.GROK].generate = AsyncMock(side_effect=BackendError("Grok", "403 Forbidden"))

    results = await run_health_checks(clients, {}, [Identity.GEMINI, Identity.GROK])

    assert results[Identity.GEMINI] == (True, "")
    ok, err = results[Identity.GROK]
    assert ok is False
    assert "403" in err


async def test_missing_credential_counts_as_failure():
    client = MockClient("Gemini")
    client.generate = AsyncMock(side_effect=MissingCredentialError("Gemini"))
    results = await run_health_checks({Identity.GEMINI: client}, {}, [Identity.GEMINI])
    ok, err = results[Identity.GEMINI]
    assert ok is False
    assert "API key not provided" in err


async def test_empty_targets():
    assert await run_health_checks({}, {}, []) == {}


async def test_timeout_counts_as_failure(monkeypatch):
    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    client = MockClient("Gemini")
    client.generate = AsyncMock(side_effect=hang)
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks({Identity.GEMINI: client}, {}, [Identity.GEMINI])

    ok, err = results[Identity.GEMINI]
    assert ok is False
    assert err


def test_live_identities_offline_forum_needs_only_primary():
    settings = ForumSettings(master_prompt="p")
    assert live_identities(settings, ROTATION, Identity.GEMINI) == [Identity.GEMINI]


def test_live_identities_includes_direct_modes():
    settings = ForumSettings(master_prompt="p", modes={Identity.OPENAI: ResolutionMode.DIRECT})
    assert live_identities(settings, ROTATION, Identity.GEMINI) == [Identity.GEMINI, Identity.OPENAI]


def test_live_identities_proxied_requires_primary_outside_rotation():
    settings = ForumSettings(master_prompt="p", modes={Identity.GROK: ResolutionMode.PROXIED})
    assert live_identities(settings, [Identity.GROK], Identity.GEMINI) == [Identity.GEMINI]


def test_live_identities_all_offline_without_primary():
    settings = ForumSettings(master_prompt="p")
    assert live_identities(settings, [Identity.GROK, Identity.ZAI], Identity.GEMINI) == []
