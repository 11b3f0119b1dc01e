"""Workspace store implementations."""

from dave.user_api.store.base import WorkspacePage, WorkspaceStore
from dave.user_api.store.dynamodb import DynamoWorkspaceStore
from dave.user_api.store.memory import MemoryWorkspaceStore

__all__ = ["DynamoWorkspaceStore", "MemoryWorkspaceStore", "WorkspacePage", "WorkspaceStore"]
