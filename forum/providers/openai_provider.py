"""OpenAI-compatible chat completions client (OpenAI, xAI Grok, DeepSeek)."""

import logging
import time
from typing import Any

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from forum.models import ProjectedTurn, Role, TuningSettings
from forum.providers.base import BackendError, GenerationClient, MissingCredentialError, describe_api_error

logger = logging.getLogger(__name__)

_ROLES = {Role.SELF: "assistant", Role.OTHER: "user"}


def build_messages(system_directive: str, history: list[ProjectedTurn]) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": system_directive}]
    messages.extend({"role": _ROLES[turn.role], "content": turn.text} for turn in history)
    return messages


class OpenAIChatClient(GenerationClient):
    """Any backend speaking the OpenAI chat completions protocol.

    ``base_url`` selects the vendor; ``token_limit_param`` names the output
    limit field (``max_tokens`` for most, ``max_completion_tokens`` for OpenAI).
    top_k has no equivalent in this protocol and is not sent.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    def name(self) -> str:
        return self._config.identity.value

    def model_string(self) -> str:
        return self._config.model

    def _request(self, system_directive: str, history: list[ProjectedTurn], settings: TuningSettings) -> dict[str, Any]:
        return {
            "model": self._config.model,
            "messages": build_messages(system_directive, history),
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            self._config.token_limit_param: settings.max_output_tokens,
            "stream": False,
        }

    async def generate(
        self,
        credential: str,
        system_directive: str,
        history: list[ProjectedTurn],
        settings: TuningSettings,
    ) -> str:
        if not credential:
            raise MissingCredentialError(self.name())

        start = time.monotonic()
        try:
            async with AsyncOpenAI(api_key=credential, base_url=self._config.base_url) as client:
                response = await client.chat.completions.create(**self._request(system_directive, history, settings))
        except openai.APIStatusError as exc:
            raise BackendError(self.name(), describe_api_error(exc)) from exc
        except openai.APIConnectionError as exc:
            raise BackendError(self.name(), f"Connection failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice else None

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("%s reply: %.2fs, %s tokens", self.name(), latency, token_count)
        return content or ""
