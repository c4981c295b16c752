"""Per-identity view of the shared message log."""

from collections.abc import Sequence

from forum.models import Identity, Message, ProjectedTurn, Role


def _project_one(message: Message, target: Identity) -> ProjectedTurn:
    if message.author == target:
        return ProjectedTurn(role=Role.SELF, text=message.content)
    if message.author == Identity.USER:
        return ProjectedTurn(role=Role.OTHER, text=message.content)
    return ProjectedTurn(role=Role.OTHER, text=f"[{message.author.value}]: {message.content}")


def project_history(messages: Sequence[Message], target: Identity) -> list[ProjectedTurn]:
    """Reshape the log so ``target`` sees its own turns as SELF and everything else as OTHER.

    Third-party AI turns are prefixed with the author's name so the target can
    tell them apart from the human. The last entry is always presented as
    OTHER: a backend must never be asked to continue from its own turn.
    """
    projected = [_project_one(m, target) for m in messages]
    if projected and projected[-1].role == Role.SELF:
        projected[-1] = ProjectedTurn(role=Role.OTHER, text=projected[-1].text)
    return projected
