"""Backend health checks — ping each live identity before starting a chat."""

import asyncio
import logging
from collections.abc import Iterable, Mapping

from config.config_loader import ForumSettings
from forum.models import Identity, ProjectedTurn, ResolutionMode, Role, TuningSettings
from forum.providers.base import GenerationClient

logger = logging.getLogger(__name__)

_PING_DIRECTIVE = "You are a connectivity check."
_PING_HISTORY = [ProjectedTurn(role=Role.OTHER, text="Reply with the word OK only.")]
_PING_SETTINGS = TuningSettings(temperature=0.0, max_output_tokens=16, response_delay_sec=0)
_TIMEOUT_SEC = 15.0


def live_identities(settings: ForumSettings, rotation: Iterable[Identity], primary: Identity) -> list[Identity]:
    """Identities that will make network calls with their own credential this session."""
    rotation = list(rotation)
    needed = [i for i in rotation if i != primary and settings.mode_for(i) == ResolutionMode.DIRECT]
    uses_primary = primary in rotation or any(
        settings.mode_for(i) == ResolutionMode.PROXIED for i in rotation if i != primary
    )
    if uses_primary:
        needed.insert(0, primary)
    return needed


async def _check_one(identity: Identity, client: GenerationClient, credential: str) -> tuple[Identity, bool, str]:
    """Ping a single backend. Returns (identity, ok, error_message)."""
    try:
        await asyncio.wait_for(
            client.generate(credential, _PING_DIRECTIVE, _PING_HISTORY, _PING_SETTINGS),
            timeout=_TIMEOUT_SEC,
        )
        return identity, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", identity.value, exc)
        return identity, False, str(exc) or exc.__class__.__name__


async def run_health_checks(
    clients: Mapping[Identity, GenerationClient],
    credentials: Mapping[Identity, str],
    identities: Iterable[Identity],
) -> dict[Identity, tuple[bool, str]]:
    """Ping the given identities in parallel.

    Returns:
        Dict mapping identity -> (ok, error_message).
        error_message is "" when ok is True.
    """
    checks = [_check_one(i, clients[i], credentials.get(i, "")) for i in identities if i in clients]
    results = await asyncio.gather(*checks)
    return {identity: (ok, err) for identity, ok, err in results}
