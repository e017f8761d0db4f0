"""Errors raised by Pomoflow operations.

Every failure a caller can see is one of the classes below. Reads never raise
``Unauthenticated``; they return empty results instead.
"""

from contextlib import contextmanager
from typing import Iterator

from pydantic import ValidationError


class PomoflowError(Exception):
    """Base class for all Pomoflow errors."""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(PomoflowError):
    """A write was attempted without an identity."""

    code = "unauthenticated"


class PermissionDenied(PomoflowError):
    """The caller is not the owner of the record."""

    code = "permission_denied"


class NotFound(PomoflowError):
    """A referenced id does not resolve to a record."""

    code = "not_found"


class InvalidArgument(PomoflowError):
    """Malformed input such as an empty name or an out-of-range rating."""

    code = "invalid_argument"


class InvalidTransition(PomoflowError):
    """A state-machine rule was violated."""

    code = "invalid_transition"


class InvalidState(PomoflowError):
    """The operation is not allowed in the parent's current phase."""

    code = "invalid_state"


@contextmanager
def validating() -> Iterator[None]:
    """Report pydantic validation failures as InvalidArgument."""
    try:
        yield
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'value'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidArgument(details) from e
