"""Response resolution: pick a strategy per identity and mode, normalize the outcome."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping

from config.config_loader import DEFAULT_PROXY_TEMPLATE
from forum.errors import UnknownIdentityError
from forum.models import Identity, ProjectedTurn, Reply, ResolutionMode, TuningSettings
from forum.offline import OfflineResponder
from forum.providers.base import (
    BackendError,
    GenerationClient,
    MissingCredentialError,
    ProviderError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

_Strategy = Callable[
    [Identity, str, list[ProjectedTurn], Mapping[Identity, str], TuningSettings],
    Awaitable[str],
]


class ResponseResolver:
    """Turns (identity, mode) into exactly one reply or one ProviderError.

    Args:
        clients: Generation client per identity; must include the primary.
        primary: The identity that always generates directly and can proxy others.
        offline: Canned response source for offline mode.
        timeout_sec: Ceiling for generation calls. Offline mode is exempt.
        proxy_template: Role-play directive with {identity}, {persona} and
            {master_prompt} placeholders.
        personas: Optional persona hint per identity for proxied mode.
    """

    def __init__(
        self,
        clients: Mapping[Identity, GenerationClient],
        primary: Identity,
        offline: OfflineResponder | None = None,
        timeout_sec: float = 30.0,
        proxy_template: str = DEFAULT_PROXY_TEMPLATE,
        personas: Mapping[Identity, str] | None = None,
    ) -> None:
        if primary not in clients:
            raise UnknownIdentityError(primary.value, "primary identity has no generation client")
        self._clients = dict(clients)
        self._primary = primary
        self._offline = offline or OfflineResponder()
        self._timeout_sec = timeout_sec
        self._proxy_template = proxy_template
        self._personas = dict(personas or {})
        self._strategies: dict[ResolutionMode, _Strategy] = {
            ResolutionMode.DIRECT: self._direct,
            ResolutionMode.PROXIED: self._proxied,
            ResolutionMode.OFFLINE: self._offline_reply,
        }

    @property
    def primary(self) -> Identity:
        return self._primary

    def validate(self, rotation: Iterable[Identity]) -> None:
        """Fail fast on a rotation this resolver could not serve in every mode."""
        for identity in rotation:
            if identity == Identity.USER:
                raise UnknownIdentityError(identity.value, "the human cannot take an AI turn")
            if identity not in self._clients:
                raise UnknownIdentityError(identity.value, "no generation client configured")
            if identity != self._primary and not self._offline.knows(identity):
                raise UnknownIdentityError(identity.value, "no offline responses configured")

    def proxy_directive(self, identity: Identity, master_prompt: str) -> str:
        return self._proxy_template.format(
            identity=identity.value,
            persona=self._personas.get(identity, ""),
            master_prompt=master_prompt,
        )

    async def resolve(
        self,
        identity: Identity,
        mode: ResolutionMode | None,
        master_prompt: str,
        history: list[ProjectedTurn],
        credentials: Mapping[Identity, str],
        settings: TuningSettings,
    ) -> Reply | ProviderError:
        """Obtain one reply for ``identity``.

        Never raises for backend failures — returns the ProviderError instead.
        Raises UnknownIdentityError for identities outside the configuration.
        """
        if identity == self._primary:
            mode = ResolutionMode.DIRECT
        elif mode is None:
            mode = ResolutionMode.OFFLINE
        self.validate([identity])

        strategy = self._strategies[mode]
        logger.info("Resolving %s via %s", identity.value, mode.value)
        start = time.monotonic()
        try:
            content = await strategy(identity, master_prompt, history, credentials, settings)
        except ProviderError as exc:
            logger.warning("%s failed (%s): %s", identity.value, mode.value, exc)
            return exc
        except UnknownIdentityError:
            raise
        except Exception as exc:
            logger.warning("%s unexpected failure (%s): %s", identity.value, mode.value, exc)
            return BackendError(identity.value, f"Unexpected error: {exc}")

        return Reply(
            identity=identity,
            mode=mode,
            content=content,
            latency_sec=time.monotonic() - start,
        )

    async def _generate(
        self,
        client: GenerationClient,
        credential: str,
        system_directive: str,
        history: list[ProjectedTurn],
        settings: TuningSettings,
    ) -> str:
        try:
            return await asyncio.wait_for(
                client.generate(credential, system_directive, history, settings),
                timeout=self._timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderTimeoutError(client.name(), self._timeout_sec) from exc

    async def _direct(
        self,
        identity: Identity,
        master_prompt: str,
        history: list[ProjectedTurn],
        credentials: Mapping[Identity, str],
        settings: TuningSettings,
    ) -> str:
        credential = credentials.get(identity, "")
        if not credential:
            raise MissingCredentialError(identity.value)
        return await self._generate(self._clients[identity], credential, master_prompt, history, settings)

    async def _proxied(
        self,
        identity: Identity,
        master_prompt: str,
        history: list[ProjectedTurn],
        credentials: Mapping[Identity, str],
        settings: TuningSettings,
    ) -> str:
        credential = credentials.get(self._primary, "")
        if not credential:
            raise MissingCredentialError(self._primary.value, f"simulating {identity.value}")
        directive = self.proxy_directive(identity, master_prompt)
        return await self._generate(self._clients[self._primary], credential, directive, history, settings)

    async def _offline_reply(
        self,
        identity: Identity,
        master_prompt: str,
        history: list[ProjectedTurn],
        credentials: Mapping[Identity, str],
        settings: TuningSettings,
    ) -> str:
        return await self._offline.reply(identity)
