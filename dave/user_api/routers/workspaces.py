"""Workspace endpoints (RPC-style).

All write operations use POST; reads use GET.  Thin HTTP adapter --
delegates to the reconciler, which raises domain errors that the app maps
to responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from dave.user_api.deps import CurrentUser, Reconciler, Settings
from dave.user_api.models.api import ListWorkspacesResponse, WorkspaceCreate, WorkspaceResponse, WorkspaceUpdate
from dave.user_api.models.enums import SortOrder

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.post("/create", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(body: WorkspaceCreate, reconciler: Reconciler, user: CurrentUser) -> WorkspaceResponse:
    """Create a workspace and block until its instance is running."""
    return await reconciler.create_workspace(user.username, body)


@router.get("/list", response_model=ListWorkspacesResponse)
async def list_workspaces(
    reconciler: Reconciler,
    user: CurrentUser,
    settings: Settings,
    page_size: int | None = Query(None, ge=1, description="Defaults to DAVE_DEFAULT_PAGE_SIZE."),
    next_token: str | None = Query(None, description="Opaque token from the previous page."),
    sort_order: SortOrder = Query(SortOrder.ASC),
) -> ListWorkspacesResponse:
    """List the caller's workspaces, ordered by name."""
    size = min(page_size or settings.default_page_size, settings.max_page_size)
    return await reconciler.list_workspaces(user.username, size, next_token, sort_order)


@router.get("/by-id/{workspace_id}/get", response_model=WorkspaceResponse)
async def get_workspace_by_id(workspace_id: str, reconciler: Reconciler, user: CurrentUser) -> WorkspaceResponse:
    return await reconciler.get_workspace_by_id(user.username, workspace_id)


@router.post("/by-id/{workspace_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace_by_id(workspace_id: str, reconciler: Reconciler, user: CurrentUser) -> None:
    """Terminate the instance and delete the record."""
    await reconciler.delete_workspace_by_id(user.username, workspace_id)


@router.get("/{name}/get", response_model=WorkspaceResponse)
async def get_workspace(name: str, reconciler: Reconciler, user: CurrentUser) -> WorkspaceResponse:
    return await reconciler.get_workspace_by_name(user.username, name)


@router.post("/{name}/update", response_model=WorkspaceResponse)
async def update_workspace(
    name: str,
    body: WorkspaceUpdate,
    reconciler: Reconciler,
    user: CurrentUser,
) -> WorkspaceResponse:
    """Partially update a running workspace."""
    return await reconciler.update_workspace(user.username, name, body)


@router.post("/{name}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(name: str, reconciler: Reconciler, user: CurrentUser) -> None:
    """Terminate the instance and delete the record."""
    await reconciler.delete_workspace_by_name(user.username, name)
