"""Abstract base for all generation clients, plus the resolution failure taxonomy."""

from abc import ABC, abstractmethod

from forum.models import ProjectedTurn, TuningSettings


class ProviderError(Exception):
    """Raised when a reply cannot be obtained from a backend."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class MissingCredentialError(ProviderError):
    """The API key required by the selected resolution mode is absent."""

    def __init__(self, provider_name: str, purpose: str = "") -> None:
        suffix = f" for {purpose}" if purpose else ""
        super().__init__(provider_name, f"{provider_name} API key not provided{suffix}.")


class ProviderTimeoutError(ProviderError):
    def __init__(self, provider_name: str, timeout_sec: float) -> None:
        self.timeout_sec = timeout_sec
        super().__init__(provider_name, f"Request timed out after {timeout_sec:g}s")


class BackendError(ProviderError):
    """Non-success response from a backend."""


def describe_api_error(exc: BaseException) -> str:
    """Best-effort human message for an SDK status error.

    Order: structured body ``error.message``, raw response text, HTTP status,
    then the exception's own text.
    """
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])

    response = getattr(exc, "response", None)
    if response is not None:
        text = getattr(response, "text", "")
        if isinstance(text, str) and text.strip():
            return text.strip()
        status = getattr(response, "status_code", None)
        if status is not None:
            return f"HTTP error! status: {status}"

    return str(exc) or exc.__class__.__name__


class GenerationClient(ABC):
    """One AI backend capable of producing a reply from projected history."""

    @abstractmethod
    def name(self) -> str:
        """Return the identity name this client speaks for (e.g. 'Gemini')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(
        self,
        credential: str,
        system_directive: str,
        history: list[ProjectedTurn],
        settings: TuningSettings,
    ) -> str:
        """Generate the next reply.

        Args:
            credential: API key for this backend.
            system_directive: System-level instruction (master prompt or
                role-play directive).
            history: Projected conversation, oldest first.
            settings: Tuning knobs, mapped 1:1 where the backend supports them.

        Returns:
            Reply text, possibly empty.

        Raises:
            ProviderError: On missing credential or any non-success response.
        """
        ...
