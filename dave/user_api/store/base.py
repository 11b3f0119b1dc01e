"""Workspace store interface.

The store holds workspace records and serves three lookup paths: by id, by
``(name, owner)`` and by owner (paged).  The interface is async so that the
DynamoDB backend can push its blocking boto3 calls into the thread pool.

``put`` is an unconditional upsert: there is no version check, so concurrent
writers to the same record race and the last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from dave.user_api.models.workspace import Workspace


@dataclass
class WorkspacePage:
    """One page of an owner query.

    ``last_evaluated_key`` is set only when more items may remain; pass it
    back as ``cursor`` to continue.
    """

    items: list[Workspace] = field(default_factory=list)
    last_evaluated_key: dict[str, Any] | None = None


@runtime_checkable
class WorkspaceStore(Protocol):
    """Async protocol for workspace record persistence."""

    async def get_by_id(self, workspace_id: str) -> Workspace | None:
        """Return the record with this id, or ``None``."""
        ...

    async def get_by_name_and_owner(self, name: str, owner: str) -> Workspace | None:
        """Return the owner's record with this name, or ``None``."""
        ...

    async def list_by_owner(
        self,
        owner: str,
        page_size: int,
        cursor: dict[str, Any] | None = None,
        ascending: bool = True,
    ) -> WorkspacePage:
        """Return at most ``page_size`` of the owner's records, ordered by name."""
        ...

    async def put(self, workspace: Workspace) -> None:
        """Insert or overwrite the record keyed by ``workspace.id``."""
        ...

    async def delete(self, workspace: Workspace) -> None:
        """Delete the record.  No-op if not found."""
        ...
