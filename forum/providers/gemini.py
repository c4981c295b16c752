"""Gemini client using google-genai SDK with native async."""

import logging
import time

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from forum.models import ProjectedTurn, Role, TuningSettings
from forum.providers.base import BackendError, GenerationClient, MissingCredentialError

logger = logging.getLogger(__name__)

_ROLES = {Role.SELF: "model", Role.OTHER: "user"}


def _to_contents(history: list[ProjectedTurn]) -> list[genai_types.Content]:
    return [
        genai_types.Content(role=_ROLES[turn.role], parts=[genai_types.Part(text=turn.text)])
        for turn in history
    ]


def _describe_genai_error(exc: genai_errors.APIError) -> str:
    message = exc.message or ""
    if "API key not valid" in message:
        return "The provided API key is not valid. Please check the key in your settings."
    if message:
        return message
    return f"HTTP error! status: {exc.code}"


class GeminiClient(GenerationClient):
    """Google Gemini via google-genai SDK."""

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

        client = genai.Client(api_key=credential)
        start = time.monotonic()
        try:
            response = await client.aio.models.generate_content(
                model=self._config.model,
                contents=_to_contents(history),
                config=genai_types.GenerateContentConfig(
                    system_instruction=system_directive,
                    temperature=settings.temperature,
                    top_p=settings.top_p,
                    top_k=settings.top_k,
                    max_output_tokens=settings.max_output_tokens,
                ),
            )
        except genai_errors.APIError as exc:
            raise BackendError(self.name(), _describe_genai_error(exc)) from exc
        finally:
            await client.aio.aclose()

        latency = time.monotonic() - start

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini reply: %.2fs, %s tokens", latency, token_count)
        return response.text or ""
