"""Per-operation capabilities shared by every authenticated request.

``OperationScope`` bundles what each workspace operation needs besides the
reconciler itself: turning a credential into an identity, binding a
correlation id for the duration of a call, and scoping records to their
owner.  Handlers and the reconciler hold a scope instead of inheriting
these behaviours.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from loguru import logger

from dave.user_api.auth import TokenVerifier, strip_bearer
from dave.user_api.errors import NotFoundError, UnauthorizedError
from dave.user_api.models.auth import UserInfo
from dave.user_api.models.workspace import Workspace

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def current_request_id() -> str | None:
    return request_id_var.get()


class OperationScope:
    def __init__(self, verifier: TokenVerifier) -> None:
        self._verifier = verifier

    def authenticate(self, credential: str | None) -> UserInfo:
        """Verify ``Bearer <token>`` (or a bare token) and return the caller."""
        if not credential or not credential.strip():
            logger.warning("Request without credentials")
            raise UnauthorizedError
        token = strip_bearer(credential)
        if not token:
            raise UnauthorizedError
        return self._verifier.verify(token)

    @staticmethod
    @contextmanager
    def with_request_context(request_id: str | None = None) -> Iterator[str]:
        """Bind a correlation id to logs and ``request_id_var`` until the block exits."""
        request_id = request_id or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            with logger.contextualize(request_id=request_id):
                yield request_id
        finally:
            request_id_var.reset(token)

    @staticmethod
    def check_ownership(workspace: Workspace | None, owner: str) -> Workspace:
        """Return the record if ``owner`` owns it; foreign and missing records look the same."""
        if workspace is None:
            raise NotFoundError
        if workspace.owner != owner:
            logger.warning("User {} requested workspace {} owned by another user", owner, workspace.id)
            raise NotFoundError
        return workspace
