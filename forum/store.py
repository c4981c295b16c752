"""Conversation store: the message log plus chat-level state, as immutable snapshots."""

import logging
from collections.abc import Callable
from dataclasses import replace

from forum.models import ChatSnapshot, Identity, Message

logger = logging.getLogger(__name__)

Listener = Callable[[ChatSnapshot], None]


class ConversationStore:
    """Single source of truth for one chat session.

    Every mutation swaps in a new frozen ChatSnapshot, so a reader holding a
    snapshot never observes a half-applied change. Listeners are called with
    the new snapshot after each mutation.
    """

    def __init__(self, rotation_length: int) -> None:
        if rotation_length < 1:
            raise ValueError("rotation must contain at least one identity")
        self._rotation_length = rotation_length
        self._snapshot = ChatSnapshot()
        self._listeners: list[Listener] = []

    @property
    def rotation_length(self) -> int:
        return self._rotation_length

    def snapshot(self) -> ChatSnapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, snapshot: ChatSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def append_message(self, message: Message) -> None:
        self._commit(replace(self._snapshot, messages=self._snapshot.messages + (message,)))

    def set_running(self, running: bool) -> None:
        self._commit(replace(self._snapshot, is_running=running))

    def set_resolving(self, identity: Identity | None) -> None:
        self._commit(replace(self._snapshot, resolving=identity))

    def set_topic(self, topic: str) -> None:
        self._commit(replace(self._snapshot, topic=topic))

    def set_error(self, error: str | None) -> None:
        self._commit(replace(self._snapshot, last_error=error))

    def advance_pointer(self) -> int:
        pointer = (self._snapshot.turn_pointer + 1) % self._rotation_length
        self._commit(replace(self._snapshot, turn_pointer=pointer))
        return pointer

    def complete_turn(self, message: Message, error: str | None) -> int:
        """Record a finished turn in one commit: append, set the error, advance, clear resolving.

        Returns the new turn pointer.
        """
        pointer = (self._snapshot.turn_pointer + 1) % self._rotation_length
        self._commit(
            replace(
                self._snapshot,
                messages=self._snapshot.messages + (message,),
                last_error=error,
                turn_pointer=pointer,
                resolving=None,
            )
        )
        return pointer

    def reset(self, topic: str = "", messages: tuple[Message, ...] = (), running: bool = False) -> None:
        self._commit(ChatSnapshot(topic=topic, messages=messages, is_running=running))
