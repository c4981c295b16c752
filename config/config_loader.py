"""Load settings.yaml into typed dataclasses. Reads API keys from the environment."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from forum.errors import UnknownIdentityError
from forum.models import Identity, ResolutionMode, TuningSettings

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

DEFAULT_PROXY_TEMPLATE = (
    "[SYSTEM NOTE: You are currently role-playing as the AI model named '{identity}'. "
    "Based on your training data, adopt its known persona, characteristics, and response "
    "style. Your goal is to convincingly simulate this specific AI.]\n"
    "{persona}\n"
    "The user's original master prompt for the collaboration is:\n"
    "---\n"
    "{master_prompt}\n"
    "---\n"
)


@dataclass
class ModelConfig:
    identity: Identity
    sdk: str
    model: str
    api_key_env: str
    base_url: str | None = None
    token_limit_param: str = "max_tokens"


@dataclass
class PromptsConfig:
    master: str
    proxy: str = DEFAULT_PROXY_TEMPLATE


@dataclass
class DefaultsConfig:
    rotation: list[Identity]
    primary: Identity
    timeout_sec: float = 30.0
    offline_delay_sec: tuple[float, float] = (0.5, 2.0)
    turns: int = 10
    output_dir: Path = Path("./transcripts")


@dataclass
class ForumSettings:
    """Mutable settings read by the scheduler at the start of every turn."""

    master_prompt: str
    tuning: TuningSettings = field(default_factory=TuningSettings)
    modes: dict[Identity, ResolutionMode] = field(default_factory=dict)
    credentials: dict[Identity, str] = field(default_factory=dict)

    def mode_for(self, identity: Identity) -> ResolutionMode:
        return self.modes.get(identity, ResolutionMode.OFFLINE)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[Identity, ModelConfig]
    prompts: PromptsConfig
    settings: ForumSettings
    personas: dict[Identity, str] = field(default_factory=dict)


def parse_identity(name: str) -> Identity:
    try:
        return Identity(str(name))
    except ValueError:
        raise UnknownIdentityError(str(name)) from None


def load_credentials(models: dict[Identity, ModelConfig]) -> dict[Identity, str]:
    """Read each model's API key from the environment. Missing keys are omitted."""
    credentials: dict[Identity, str] = {}
    for identity, model_cfg in models.items():
        api_key = os.environ.get(model_cfg.api_key_env, "").strip()
        if api_key:
            credentials[identity] = api_key
            logger.info("Credential available: %s", identity.value)
        else:
            logger.info(
                "No credential for %s — set %s in .env to enable live calls",
                identity.value,
                model_cfg.api_key_env,
            )
    return credentials


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, UnknownIdentityError for
    identity names outside the forum, ValueError for unknown mode names.
    Missing API keys are logged but not raised — they surface per turn.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    rotation = [parse_identity(name) for name in defaults_raw["rotation"]]
    if Identity.USER in rotation:
        raise UnknownIdentityError(Identity.USER.value, "the human cannot take an AI turn")
    primary = parse_identity(defaults_raw["primary"])
    delay_raw = defaults_raw.get("offline_delay_sec", [0.5, 2.0])
    defaults = DefaultsConfig(
        rotation=rotation,
        primary=primary,
        timeout_sec=float(defaults_raw.get("timeout_sec", 30)),
        offline_delay_sec=(float(delay_raw[0]), float(delay_raw[1])),
        turns=int(defaults_raw.get("turns", 10)),
        output_dir=Path(defaults_raw.get("output_dir", "./transcripts")),
    )

    models: dict[Identity, ModelConfig] = {}
    for name, model_raw in raw["models"].items():
        identity = parse_identity(name)
        models[identity] = ModelConfig(
            identity=identity,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            base_url=model_raw.get("base_url"),
            token_limit_param=model_raw.get("token_limit_param", "max_tokens"),
        )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        master=prompts_raw["master"].strip(),
        proxy=prompts_raw.get("proxy", DEFAULT_PROXY_TEMPLATE),
    )

    modes: dict[Identity, ResolutionMode] = {}
    for name, mode in (raw.get("modes") or {}).items():
        identity = parse_identity(name)
        if identity == primary:
            logger.warning("Ignoring mode for primary identity %s: it always generates directly", name)
            continue
        modes[identity] = ResolutionMode(mode)

    tuning_raw = raw.get("tuning") or {}
    tuning = TuningSettings(
        temperature=float(tuning_raw.get("temperature", 0.7)),
        top_k=int(tuning_raw.get("top_k", 40)),
        top_p=float(tuning_raw.get("top_p", 0.9)),
        max_output_tokens=int(tuning_raw.get("max_output_tokens", 512)),
        response_delay_sec=float(tuning_raw.get("response_delay_sec", 1)),
    )

    personas = {parse_identity(k): str(v) for k, v in (raw.get("personas") or {}).items()}

    settings = ForumSettings(
        master_prompt=prompts.master,
        tuning=tuning,
        modes=modes,
        credentials=load_credentials(models),
    )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        settings=settings,
        personas=personas,
    )
