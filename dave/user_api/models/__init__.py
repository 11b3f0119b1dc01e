"""Data models for the user API."""

from dave.user_api.models.api import (
    AuthenticationInformation,
    ListWorkspacesResponse,
    WorkspaceCreate,
    WorkspaceResponse,
    WorkspaceUpdate,
)
from dave.user_api.models.auth import UserInfo
from dave.user_api.models.enums import (
    CpuArchitecture,
    InstanceState,
    SortOrder,
    WorkspaceStatus,
    WorkspaceType,
)
from dave.user_api.models.policy import FederatedPolicyDocument, Statement
from dave.user_api.models.workspace import Workspace

__all__ = [
    # API schemas
    "AuthenticationInformation",
    # Enums
    "CpuArchitecture",
    # Policy
    "FederatedPolicyDocument",
    "InstanceState",
    "ListWorkspacesResponse",
    "SortOrder",
    "Statement",
    # Auth
    "UserInfo",
    # Workspace
    "Workspace",
    "WorkspaceCreate",
    "WorkspaceResponse",
    "WorkspaceStatus",
    "WorkspaceType",
    "WorkspaceUpdate",
]
