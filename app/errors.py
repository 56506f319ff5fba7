"""
Error taxonomy for the comment pipeline.

These never leave ``CommentService``: each public operation catches them
at its boundary and turns them into a ``RestResponse``.
"""


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(CommentError):
    """The inbound payload failed one or more checks."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class NotFoundError(CommentError):
    """A referenced post or comment does not exist, or a lookup was empty."""


class DependencyError(CommentError):
    """The data store raised or returned nothing where a record was expected."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)
