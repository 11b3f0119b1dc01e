"""API request / response schemas for the workspace endpoints.

These thin schemas sit between HTTP and the reconciler.  They are separate
from the persisted ``Workspace`` record because they serve a different
purpose:

- **Create** schemas validate user input and provide defaults.
- **Update** schemas allow partial updates via ``exclude_unset``.
- **Response** schemas add the derived ``status``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from dave.user_api.models.enums import CpuArchitecture, WorkspaceStatus, WorkspaceType
from dave.user_api.models.workspace import PackageName, Workspace, normalize_language_runtimes

WORKSPACE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9-]{0,62}$"

# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceCreate(BaseModel):
    """Input for creating a new workspace."""

    name: str = Field(pattern=WORKSPACE_NAME_PATTERN)
    workspace_type: WorkspaceType = WorkspaceType.MICRO
    cpu_architecture: CpuArchitecture = CpuArchitecture.ARM64
    description: str | None = None
    language_runtimes: list[str] = Field(default_factory=list, description="name@version pairs, e.g. python@3.12")
    packages_to_install: list[PackageName] = Field(default_factory=list, description="dnf package names, e.g. htop")

    @field_validator("language_runtimes")
    @classmethod
    def _normalize_runtimes(cls, value: list[str]) -> list[str]:
        return normalize_language_runtimes(value)


class WorkspaceUpdate(BaseModel):
    """Partial update -- only fields explicitly set by the caller are applied.

    ``name`` renames the workspace.  Changing ``workspace_type``,
    ``cpu_architecture``, ``language_runtimes`` or ``packages_to_install``
    replaces the backing instance.
    """

    name: str | None = Field(default=None, pattern=WORKSPACE_NAME_PATTERN)
    workspace_type: WorkspaceType | None = None
    cpu_architecture: CpuArchitecture | None = None
    description: str | None = None
    language_runtimes: list[str] | None = None
    packages_to_install: list[PackageName] | None = None

    @field_validator("language_runtimes")
    @classmethod
    def _normalize_runtimes(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else normalize_language_runtimes(value)


class WorkspaceResponse(BaseModel):
    """Serialized workspace returned to clients."""

    id: str
    name: str
    owner: str
    cloud_identifier: str
    workspace_type: WorkspaceType
    cpu_architecture: CpuArchitecture
    description: str | None = None
    language_runtimes: list[str]
    packages_to_install: list[str]
    status: WorkspaceStatus

    @classmethod
    def from_record(cls, workspace: Workspace, status: WorkspaceStatus) -> WorkspaceResponse:
        return cls(**workspace.model_dump(), status=status)


class ListWorkspacesResponse(BaseModel):
    items: list[WorkspaceResponse] = Field(default_factory=list)
    has_next_page: bool = False
    next_token: str | None = None


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class AuthenticationInformation(BaseModel):
    """Everything a client needs to run an authorization-code + PKCE flow."""

    authorize_url: str
    token_url: str
    client_id: str
    verifier: str
