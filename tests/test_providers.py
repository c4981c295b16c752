"""Tests for forum/providers — request shaping and error extraction, no network."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import errors as genai_errors

import forum.providers.anthropic as anthropic_module
import forum.providers.gemini as gemini_module
import forum.providers.openai_provider as openai_module
from config.config_loader import ModelConfig
from forum.models import Identity, ProjectedTurn, Role, TuningSettings
from forum.providers.anthropic import AnthropicClient, merge_turns
from forum.providers.base import BackendError, MissingCredentialError, describe_api_error
from forum.providers.gemini import GeminiClient, _to_contents
from forum.providers.openai_provider import OpenAIChatClient, build_messages

HISTORY = [
    ProjectedTurn(Role.OTHER, "Topic"),
    ProjectedTurn(Role.OTHER, "[Grok]: idea"),
    ProjectedTurn(Role.SELF, "my answer"),
    ProjectedTurn(Role.OTHER, "[DeepSeek]: detail"),
]


# --- describe_api_error ---

def test_describe_prefers_structured_body():
    exc = Exception("raw")
    exc.body = {"error": {"message": "Incorrect API key provided"}}
    assert describe_api_error(exc) == "Incorrect API key provided"


def test_describe_accepts_flat_body():
    exc = Exception("raw")
    exc.body = {"message": "flat message"}
    assert describe_api_error(exc) == "flat message"


def test_describe_falls_back_to_response_text():
    exc = Exception("raw")
    exc.body = "not json"
    exc.response = SimpleNamespace(text="Bad Gateway from upstream", status_code=502)
    assert describe_api_error(exc) == "Bad Gateway from upstream"


def test_describe_falls_back_to_status():
    exc = Exception("raw")
    exc.body = None
    exc.response = SimpleNamespace(text="", status_code=503)
    assert describe_api_error(exc) == "HTTP error! status: 503"


def test_describe_plain_exception():
    assert describe_api_error(ValueError("nope")) == "nope"
    assert describe_api_error(ValueError()) == "ValueError"


# --- request shaping ---

def test_openai_messages_start_with_system():
    messages = build_messages("Be useful.", HISTORY)
    assert messages[0] == {"role": "system", "content": "Be useful."}
    assert [m["role"] for m in messages[1:]] == ["user", "user", "assistant", "user"]
    assert messages[2]["content"] == "[Grok]: idea"


def test_anthropic_merges_consecutive_roles():
    merged = merge_turns(HISTORY)
    assert [m["role"] for m in merged] == ["user", "assistant", "user"]
    assert merged[0]["content"] == "Topic\n\n[Grok]: idea"


def test_gemini_contents_use_model_role_for_self():
    contents = _to_contents(HISTORY)
    assert [c.role for c in contents] == ["user", "user", "model", "user"]
    assert contents[1].parts[0].text == "[Grok]: idea"


# --- clients ---

@pytest.mark.parametrize("client_cls", [GeminiClient, OpenAIChatClient, AnthropicClient])
async def test_clients_require_credential(client_cls, sample_model_config):
    client = client_cls(sample_model_config)
    with pytest.raises(MissingCredentialError):
        await client.generate("", "directive", HISTORY, TuningSettings())


async def test_openai_client_maps_settings(monkeypatch, sample_model_config):
    sample_model_config.token_limit_param = "max_completion_tokens"
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Hello from OpenAI"))],
        usage=None,
    )
    sdk = MagicMock()
    sdk.__aenter__.return_value = sdk
    sdk.chat.completions.create = AsyncMock(return_value=response)
    factory = MagicMock(return_value=sdk)
    monkeypatch.setattr(openai_module, "AsyncOpenAI", factory)

    client = OpenAIChatClient(sample_model_config)
    settings = TuningSettings(temperature=0.3, top_p=0.8, max_output_tokens=100)
    text = await client.generate("oa-key", "Be useful.", HISTORY, settings)

    assert text == "Hello from OpenAI"
    factory.assert_called_once_with(api_key="oa-key", base_url=None)
    kwargs = sdk.chat.completions.create.call_args.kwargs
    assert kwargs["max_completion_tokens"] == 100
    assert "max_tokens" not in kwargs
    assert "top_k" not in kwargs
    assert kwargs["temperature"] == 0.3
    assert kwargs["top_p"] == 0.8
    assert kwargs["stream"] is False
    assert kwargs["messages"][0]["role"] == "system"
    sdk.__aexit__.assert_awaited_once()


async def test_openai_client_empty_choices(monkeypatch, sample_model_config):
    sdk = MagicMock()
    sdk.__aenter__.return_value = sdk
    sdk.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[], usage=None))
    monkeypatch.setattr(openai_module, "AsyncOpenAI", MagicMock(return_value=sdk))
    text = await OpenAIChatClient(sample_model_config).generate("k", "d", HISTORY, TuningSettings())
    assert text == ""


async def test_anthropic_client_joins_text_blocks(monkeypatch):
    config = ModelConfig(
        identity=Identity.ZAI,
        sdk="anthropic",
        model="glm-4.6",
        api_key_env="ZAI_API_KEY",
        base_url="https://api.z.ai/api/anthropic",
    )
    response = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="Part one."),
            SimpleNamespace(type="thinking", text="hidden"),
            SimpleNamespace(type="text", text="Part two."),
        ],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )
    sdk = MagicMock()
    sdk.__aenter__.return_value = sdk
    sdk.messages.create = AsyncMock(return_value=response)
    factory = MagicMock(return_value=sdk)
    monkeypatch.setattr(anthropic_module.anthropic_sdk, "AsyncAnthropic", factory)

    client = AnthropicClient(config)
    text = await client.generate("z-key", "System directive.", HISTORY, TuningSettings(top_k=20))

    assert text == "Part one.\nPart two."
    assert client.name() == "Z.ai"
    factory.assert_called_once_with(api_key="z-key", base_url="https://api.z.ai/api/anthropic")
    kwargs = sdk.messages.create.call_args.kwargs
    assert kwargs["system"] == "System directive."
    assert kwargs["top_k"] == 20
    assert kwargs["max_tokens"] == 512
    sdk.__aexit__.assert_awaited_once()


async def test_openai_client_closed_when_request_fails(monkeypatch, sample_model_config):
    sdk = MagicMock()
    sdk.__aenter__.return_value = sdk
    sdk.chat.completions.create = AsyncMock(side_effect=RuntimeError("socket closed"))
    monkeypatch.setattr(openai_module, "AsyncOpenAI", MagicMock(return_value=sdk))

    with pytest.raises(RuntimeError):
        await OpenAIChatClient(sample_model_config).generate("k", "d", HISTORY, TuningSettings())
    sdk.__aexit__.assert_awaited_once()


def _gemini_config() -> ModelConfig:
    return ModelConfig(identity=Identity.GEMINI, sdk="gemini", model="gemini-2.5-flash", api_key_env="GEMINI_API_KEY")


async def test_gemini_client_closes_after_generate(monkeypatch):
    sdk = MagicMock()
    sdk.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(text="Hello from Gemini", usage_metadata=None)
    )
    sdk.aio.aclose = AsyncMock()
    factory = MagicMock(return_value=sdk)
    monkeypatch.setattr(gemini_module.genai, "Client", factory)

    text = await GeminiClient(_gemini_config()).generate("gem-key", "Be useful.", HISTORY, TuningSettings(top_k=20))

    assert text == "Hello from Gemini"
    factory.assert_called_once_with(api_key="gem-key")
    config = sdk.aio.models.generate_content.call_args.kwargs["config"]
    assert config.system_instruction == "Be useful."
    assert config.top_k == 20
    sdk.aio.aclose.assert_awaited_once()


async def test_gemini_client_closes_on_api_error(monkeypatch):
    sdk = MagicMock()
    sdk.aio.models.generate_content = AsyncMock(
        side_effect=genai_errors.ClientError(
            400, {"error": {"code": 400, "message": "API key not valid. Please pass a valid API key.", "status": "INVALID_ARGUMENT"}}
        )
    )
    sdk.aio.aclose = AsyncMock()
    monkeypatch.setattr(gemini_module.genai, "Client", MagicMock(return_value=sdk))

    with pytest.raises(BackendError, match="provided API key is not valid"):
        await GeminiClient(_gemini_config()).generate("bad-key", "d", HISTORY, TuningSettings())
    sdk.aio.aclose.assert_awaited_once()
