"""Domain error taxonomy.

Managers and infrastructure components raise these, never HTTP exceptions --
the app's exception handler maps them to responses.  Every error carries a
short, fixed user-facing message; internal detail goes to the log.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger


class WorkspaceServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(WorkspaceServiceError, LookupError):
    """Record absent, or owned by someone else."""

    status_code = 404
    default_message = "Workspace not found"


class ConflictError(WorkspaceServiceError):
    """Duplicate name for the owner, or workspace in the wrong state."""

    status_code = 409
    default_message = "Workspace already exists"


class UnauthorizedError(WorkspaceServiceError):
    status_code = 401
    default_message = "Unauthorized"


class InternalError(WorkspaceServiceError):
    status_code = 500
    default_message = "Internal Server Error"


@contextmanager
def infrastructure_errors(action: str) -> Iterator[None]:
    """Translate any non-domain exception raised inside the block to ``InternalError``.

    Domain errors pass through untouched.  Everything else (boto3 client
    errors, waiter failures, template errors) is logged with its traceback
    and replaced by a bare ``InternalError``.
    """
    try:
        yield
    except WorkspaceServiceError:
        raise
    except Exception as exc:
        logger.exception("Error {}", action)
        raise InternalError from exc
