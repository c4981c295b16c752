"""Tests for forum/offline.py."""

import random

import pytest

from forum.errors import UnknownIdentityError
from forum.models import Identity
from forum.offline import CANNED_RESPONSES, OfflineResponder


async def test_reply_comes_from_identity_table(offline_responder):
    for identity in CANNED_RESPONSES:
        assert await offline_responder.reply(identity) in CANNED_RESPONSES[identity]


async def test_seeded_rng_is_deterministic():
    a = OfflineResponder(delay_range=(0, 0), rng=random.Random(42))
    b = OfflineResponder(delay_range=(0, 0), rng=random.Random(42))
    assert [await a.reply(Identity.GROK) for _ in range(5)] == [await b.reply(Identity.GROK) for _ in range(5)]


async def test_unknown_identity_raises(offline_responder):
    with pytest.raises(UnknownIdentityError):
        await offline_responder.reply(Identity.GEMINI)


def test_knows_only_configured_identities(offline_responder):
    assert offline_responder.knows(Identity.ZAI)
    assert not offline_responder.knows(Identity.USER)
    assert not offline_responder.knows(Identity.GEMINI)


def test_invalid_delay_range():
    with pytest.raises(ValueError):
        OfflineResponder(delay_range=(2.0, 1.0))
