"""Errors raised outside the backend call path."""


class ValidationError(Exception):
    """Raised when a chat cannot start because its input is invalid."""


class UnknownIdentityError(Exception):
    """Raised for identities the forum is not configured to resolve.

    This is a configuration fault: it is surfaced before a session starts and
    never recorded as a transcript entry.
    """

    def __init__(self, identity: str, reason: str = "not a known forum participant") -> None:
        self.identity = identity
        super().__init__(f"Unknown identity '{identity}': {reason}")
