"""Pure dataclasses and enums for the collaborative forum. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum


class Identity(str, Enum):
    USER = "User"
    GROK = "Grok"
    GEMINI = "Gemini"
    OPENAI = "OpenAI"
    DEEPSEEK = "DeepSeek"
    ZAI = "Z.ai"


class ResolutionMode(str, Enum):
    OFFLINE = "offline"    # canned lines, no network
    PROXIED = "proxied"    # primary backend role-plays the identity
    DIRECT = "direct"      # identity's own backend


class Role(str, Enum):
    SELF = "self"
    OTHER = "other"


@dataclass(frozen=True)
class Message:
    id: str
    author: Identity
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class ProjectedTurn:
    role: Role
    text: str


@dataclass
class TuningSettings:
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.9
    max_output_tokens: int = 512
    response_delay_sec: float = 1.0


@dataclass(frozen=True)
class Reply:
    identity: Identity
    mode: ResolutionMode
    content: str
    latency_sec: float


@dataclass(frozen=True)
class ChatSnapshot:
    topic: str = ""
    messages: tuple[Message, ...] = field(default_factory=tuple)
    is_running: bool = False
    resolving: Identity | None = None
    turn_pointer: int = 0
    last_error: str | None = None
