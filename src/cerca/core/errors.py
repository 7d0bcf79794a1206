"""Error taxonomy for the moderation core.

Every error carries an *environ*: a short description of the operation that
produced it (for example ``"propose mod action"``), so the originating site
can be recovered from logs. ``str(err)`` renders ``"<environ>: <message>"``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class CercaError(RuntimeError):
    """Base exception for all moderation core failures."""

    def __init__(self, message: str, *, environ: str | None = None) -> None:
        self.message = message
        self.environ = environ
        super().__init__(f"{environ}: {message}" if environ else message)


class NotFoundError(CercaError):
    """Raised when a user, proposal, or row does not exist."""


class PreconditionFailedError(CercaError):
    """Raised when an operation is not valid for the current state."""


class InvariantViolationError(CercaError):
    """Raised on programming errors or states that must never occur."""


class MigrationAlreadyAppliedError(InvariantViolationError):
    """Raised when a migration finds its schema version already recorded."""


class StorageError(CercaError):
    """Raised when the database fails to begin, execute, or commit."""


class MalformedRecordError(CercaError):
    """Raised when a stored value matches no known format."""


@dataclass(frozen=True)
class ErrorDescriber:
    """Tag errors raised inside an operation with its environ."""

    environ: str

    def error(self, kind: type[CercaError], message: str) -> CercaError:
        """Build an error of ``kind`` tagged with this environ."""
        return kind(message, environ=self.environ)

    @contextmanager
    def step(self, message: str) -> Iterator[None]:
        """Convert database failures inside the block into ``StorageError``."""
        try:
            yield
        except SQLAlchemyError as exc:
            raise StorageError(f"{message} ({exc.__class__.__name__})", environ=self.environ) from exc


def describe(environ: str) -> ErrorDescriber:
    """Return an ``ErrorDescriber`` for the given operation."""
    return ErrorDescriber(environ)
