"""FastAPI dependency injection for the reconciler and the caller identity.

Usage in route handlers::

    @router.get("/things/list")
    async def list_things(reconciler: Reconciler, user: CurrentUser) -> ...:
        ...

Everything is constructed in the app lifespan and read from ``app.state``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from dave.user_api.context import OperationScope
from dave.user_api.managers.workspaces import WorkspaceReconciler
from dave.user_api.models.auth import UserInfo
from dave.user_api.settings import DaveSettings


def get_reconciler(request: Request) -> WorkspaceReconciler:
    reconciler: WorkspaceReconciler | None = getattr(request.app.state, "reconciler", None)
    if reconciler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workspace service not initialised.",
        )
    return reconciler


def get_scope(request: Request) -> OperationScope:
    scope: OperationScope | None = getattr(request.app.state, "scope", None)
    if scope is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workspace service not initialised.",
        )
    return scope


def get_app_settings(request: Request) -> DaveSettings:
    return request.app.state.settings


def get_current_user(
    scope: Annotated[OperationScope, Depends(get_scope)],
    authorization: Annotated[str | None, Header()] = None,
) -> UserInfo:
    """Resolve the caller from the ``Authorization`` header.  Raises ``UnauthorizedError``."""
    return scope.authenticate(authorization)


Reconciler = Annotated[WorkspaceReconciler, Depends(get_reconciler)]
CurrentUser = Annotated[UserInfo, Depends(get_current_user)]
Settings = Annotated[DaveSettings, Depends(get_app_settings)]
