"""Shared pytest fixtures."""

import asyncio
import random
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ForumSettings, ModelConfig
from forum.models import Identity, Message, ProjectedTurn, TuningSettings
from forum.offline import OfflineResponder
from forum.providers.base import GenerationClient
from forum.resolver import ResponseResolver
from forum.scheduler import TurnScheduler

AI_IDENTITIES = [Identity.GROK, Identity.GEMINI, Identity.OPENAI, Identity.DEEPSEEK, Identity.ZAI]


class MockClient(GenerationClient):
    """Test double GenerationClient."""

    def __init__(self, identity_name: str = "mock", reply: str = "Mock reply") -> None:
        self._name = identity_name
        self._reply = reply
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(return_value=reply)  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(  # type: ignore[override]
        self,
        credential: str,
        system_directive: str,
        history: list[ProjectedTurn],
        settings: TuningSettings,
    ) -> str:
        """Default implementation; replaced by AsyncMock in __init__."""
        return self._reply


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        identity=Identity.OPENAI,
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
    )


@pytest.fixture
def mock_clients() -> dict[Identity, MockClient]:
    return {i: MockClient(i.value, f"Reply from {i.value}") for i in AI_IDENTITIES}


@pytest.fixture
def offline_responder() -> OfflineResponder:
    return OfflineResponder(delay_range=(0.0, 0.0), rng=random.Random(7))


@pytest.fixture
def forum_settings() -> ForumSettings:
    return ForumSettings(
        master_prompt="Collaborate on the topic.",
        tuning=TuningSettings(response_delay_sec=60),
        credentials={Identity.GEMINI: "gemini-key"},
    )


@pytest.fixture
def resolver(mock_clients, offline_responder) -> ResponseResolver:
    return ResponseResolver(
        mock_clients,
        Identity.GEMINI,
        offline=offline_responder,
        timeout_sec=1.0,
        personas={Identity.GROK: "Witty and irreverent."},
    )


@pytest.fixture
def rotation() -> list[Identity]:
    return [Identity.GROK, Identity.GEMINI, Identity.OPENAI]


@pytest.fixture
async def scheduler(resolver, forum_settings, rotation):
    sched = TurnScheduler(resolver, forum_settings, rotation)
    yield sched
    await sched.shutdown()


@pytest.fixture
def sample_messages() -> list[Message]:
    return [
        Message(id="1", author=Identity.USER, content="hi"),
        Message(id="2", author=Identity.GROK, content="x"),
        Message(id="3", author=Identity.GEMINI, content="y"),
        Message(id="4", author=Identity.OPENAI, content="z"),
    ]
