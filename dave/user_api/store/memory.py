"""In-process workspace store.

Keeps records in a dict for local development (``DAVE_WORKSPACE_STORE=memory``)
and tests.  Records are lost on restart.

Cursors have the same shape as the DynamoDB ``owner-index`` keys so that
callers cannot tell the backends apart::

    {"id": {"S": ...}, "name": {"S": ...}, "owner": {"S": ...}}
"""

from __future__ import annotations

from typing import Any

from dave.user_api.models.workspace import Workspace
from dave.user_api.store.base import WorkspacePage


def _key_for(workspace: Workspace) -> dict[str, Any]:
    return {
        "id": {"S": workspace.id},
        "name": {"S": workspace.name},
        "owner": {"S": workspace.owner},
    }


class MemoryWorkspaceStore:
    """Dict-backed implementation of the WorkspaceStore protocol."""

    def __init__(self) -> None:
        self._items: dict[str, Workspace] = {}

    # -- Read ------------------------------------------------------------------

    async def get_by_id(self, workspace_id: str) -> Workspace | None:
        workspace = self._items.get(workspace_id)
        return workspace.model_copy(deep=True) if workspace else None

    async def get_by_name_and_owner(self, name: str, owner: str) -> Workspace | None:
        for workspace in self._items.values():
            if workspace.name == name and workspace.owner == owner:
                return workspace.model_copy(deep=True)
        return None

    async def list_by_owner(
        self,
        owner: str,
        page_size: int,
        cursor: dict[str, Any] | None = None,
        ascending: bool = True,
    ) -> WorkspacePage:
        owned = sorted(
            (w for w in self._items.values() if w.owner == owner),
            key=lambda w: (w.name, w.id),
            reverse=not ascending,
        )
        if cursor is not None:
            start = (cursor["name"]["S"], cursor["id"]["S"])
            if ascending:
                owned = [w for w in owned if (w.name, w.id) > start]
            else:
                owned = [w for w in owned if (w.name, w.id) < start]

        page = owned[:page_size]
        last_key = _key_for(page[-1]) if len(owned) > page_size else None
        return WorkspacePage(items=[w.model_copy(deep=True) for w in page], last_evaluated_key=last_key)

    # -- Write -----------------------------------------------------------------

    async def put(self, workspace: Workspace) -> None:
        self._items[workspace.id] = workspace.model_copy(deep=True)

    async def delete(self, workspace: Workspace) -> None:
        self._items.pop(workspace.id, None)
