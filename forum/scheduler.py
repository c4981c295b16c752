"""Turn scheduler: the state machine that drives the round-robin forum."""

import asyncio
import logging
import uuid
from collections.abc import Sequence

from config.config_loader import ForumSettings
from forum.errors import UnknownIdentityError, ValidationError
from forum.models import ChatSnapshot, Identity, Message, Reply
from forum.output import format_transcript
from forum.projector import project_history
from forum.providers.base import ProviderError
from forum.resolver import ResponseResolver
from forum.store import ConversationStore

logger = logging.getLogger(__name__)

_EMPTY_REPLY = "(No content)"


def _new_id() -> str:
    return uuid.uuid4().hex


class TurnScheduler:
    """Owns whose turn it is and runs the resolve → append → wait cycle.

    Idle until ``start``; while running, exactly one resolution is in flight
    or one re-entry timer is pending. ``stop`` cancels the timer but never the
    in-flight backend call: its result is dropped at the append boundary.

    Every session gets a fresh epoch, so a reply that arrives after a stop or
    a restart can never land in the new log.
    """

    def __init__(
        self,
        resolver: ResponseResolver,
        settings: ForumSettings,
        rotation: Sequence[Identity],
        store: ConversationStore | None = None,
    ) -> None:
        resolver.validate(rotation)
        self._resolver = resolver
        self._settings = settings
        self._rotation = tuple(rotation)
        self._store = store or ConversationStore(len(self._rotation))
        if self._store.rotation_length != len(self._rotation):
            raise ValueError("store rotation length does not match rotation")
        self._epoch = 0
        self._timer: asyncio.Handle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def settings(self) -> ForumSettings:
        return self._settings

    @property
    def rotation(self) -> tuple[Identity, ...]:
        return self._rotation

    def snapshot(self) -> ChatSnapshot:
        return self._store.snapshot()

    # -- transitions ---------------------------------------------------------

    def start(self, topic: str) -> None:
        """Begin a new chat seeded with ``topic``. Must be called inside a running event loop.

        Raises:
            ValidationError: If the topic is empty or whitespace; state is untouched.
        """
        if not topic or not topic.strip():
            raise ValidationError("Please enter a chat topic.")

        loop = asyncio.get_running_loop()
        self._epoch += 1
        self._cancel_timer()
        self._store.reset(
            topic=topic,
            messages=(Message(id=_new_id(), author=Identity.USER, content=topic),),
            running=True,
        )
        logger.info("Chat started (%d participants): %s", len(self._rotation), topic[:80])
        self._timer = loop.call_soon(self._spawn_turn, self._epoch)

    def stop(self) -> None:
        self._epoch += 1
        self._cancel_timer()
        snapshot = self._store.snapshot()
        if snapshot.is_running:
            self._store.set_running(False)
            logger.info("Chat stopped after %d messages", len(snapshot.messages))
        if snapshot.resolving is not None:
            self._store.set_resolving(None)

    def clear(self) -> None:
        self.stop()
        self._store.reset()
        logger.info("Chat cleared")

    async def shutdown(self) -> None:
        """Stop and cancel any outstanding turn tasks. For host teardown only."""
        self.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def export_transcript(self) -> str:
        return format_transcript(self._store.snapshot(), self._settings.master_prompt)

    # -- turn cycle ----------------------------------------------------------

    async def advance(self) -> bool:
        """Run one turn for the identity at the turn pointer.

        Returns True if a message was appended. Returns False without doing
        anything when the chat is not running or a resolution is already in
        flight, and False when the result was discarded because the session
        ended while it was pending.
        """
        snapshot = self._store.snapshot()
        if not snapshot.is_running:
            return False
        if snapshot.resolving is not None:
            logger.debug("Turn trigger ignored: %s is still resolving", snapshot.resolving.value)
            return False

        self._cancel_timer()
        epoch = self._epoch
        identity = self._rotation[snapshot.turn_pointer]
        self._store.set_resolving(identity)

        settings = self._settings
        try:
            outcome = await self._resolver.resolve(
                identity,
                settings.mode_for(identity),
                settings.master_prompt,
                project_history(snapshot.messages, identity),
                dict(settings.credentials),
                settings.tuning,
            )
        except UnknownIdentityError:
            if epoch == self._epoch:
                self._store.set_resolving(None)
            raise

        if epoch != self._epoch or not self._store.snapshot().is_running:
            logger.warning("Discarding late reply from %s: chat no longer running", identity.value)
            return False

        message, error = self._turn_result(identity, outcome)
        self._store.complete_turn(message, error)
        # A listener may have stopped, cleared or restarted the chat.
        if epoch == self._epoch:
            self._schedule(max(0.0, float(self._settings.tuning.response_delay_sec)))
        return True

    @staticmethod
    def _turn_result(identity: Identity, outcome: Reply | ProviderError) -> tuple[Message, str | None]:
        if isinstance(outcome, Reply):
            return Message(id=_new_id(), author=identity, content=outcome.content or _EMPTY_REPLY), None
        description = str(outcome)
        return Message(id=_new_id(), author=identity, content=description, is_error=True), description

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        logger.debug("Next turn in %.2fs", delay)
        self._timer = loop.call_later(delay, self._spawn_turn, self._epoch)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _spawn_turn(self, epoch: int) -> None:
        self._timer = None
        if epoch != self._epoch:
            return
        task = asyncio.get_running_loop().create_task(self._run_scheduled())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_scheduled(self) -> None:
        try:
            await self.advance()
        except UnknownIdentityError as exc:
            logger.error("Configuration error, stopping chat: %s", exc)
            self.stop()
            self._store.set_error(str(exc))
