"""Anthropic-compatible messages client (used for Z.ai's Anthropic endpoint)."""

import logging
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from forum.models import ProjectedTurn, Role, TuningSettings
from forum.providers.base import BackendError, GenerationClient, MissingCredentialError, describe_api_error

logger = logging.getLogger(__name__)

_ROLES = {Role.SELF: "assistant", Role.OTHER: "user"}


def merge_turns(history: list[ProjectedTurn]) -> list[dict[str, str]]:
    """Collapse consecutive same-role turns; the messages API requires alternation."""
    messages: list[dict[str, str]] = []
    for turn in history:
        role = _ROLES[turn.role]
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + turn.text
        else:
            messages.append({"role": role, "content": turn.text})
    return messages


class AnthropicClient(GenerationClient):
    """Messages API via anthropic SDK, with an optional vendor base_url."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    def name(self) -> str:
        return self._config.identity.value

    def model_string(self) -> str:
        return self._config.model

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
            async with anthropic_sdk.AsyncAnthropic(api_key=credential, base_url=self._config.base_url) as client:
                response = await client.messages.create(
                    model=self._config.model,
                    system=system_directive,
                    messages=merge_turns(history),
                    max_tokens=settings.max_output_tokens,
                    temperature=settings.temperature,
                    top_p=settings.top_p,
                    top_k=settings.top_k,
                )
        except anthropic_sdk.APIStatusError as exc:
            raise BackendError(self.name(), describe_api_error(exc)) from exc
        except anthropic_sdk.APIConnectionError as exc:
            raise BackendError(self.name(), f"Connection failed: {exc}") from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content if b.type == "text"]

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("%s reply: %.2fs, %s tokens", self.name(), latency, token_count)
        return "\n".join(text_blocks)
