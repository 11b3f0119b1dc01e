"""Workspace data model.

A workspace is a user-owned development environment: a persisted record
(this model) plus a backing EC2 instance, an EBS volume and an IAM role that
are correlated with it through a deterministic name.
"""

from __future__ import annotations

import re
import uuid
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, field_validator

from dave.user_api.models.enums import CpuArchitecture, WorkspaceType

LANGUAGE_RUNTIME_PATTERN = re.compile(r"^[A-Za-z0-9_.+-]+@[A-Za-z0-9_.+-]+$")

# Rendered unquoted into the bootstrap script: no shell metacharacters.
PACKAGE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.+:-]{0,127}$"
PackageName = Annotated[str, StringConstraints(pattern=PACKAGE_NAME_PATTERN)]


def normalize_language_runtimes(values: list[str]) -> list[str]:
    """Validate ``name@version`` entries and drop duplicates, keeping first occurrence."""
    seen: dict[str, None] = {}
    for value in values:
        if not LANGUAGE_RUNTIME_PATTERN.match(value):
            msg = f"Language runtime must look like 'name@version', got {value!r}"
            raise ValueError(msg)
        seen.setdefault(value, None)
    return list(seen)


def split_language_runtime(value: str) -> tuple[str, str]:
    """Split ``name@version`` into ``(name, version)``."""
    language, _, version = value.partition("@")
    return language, version


class Workspace(BaseModel):
    """Workspace record (DynamoDB item)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    owner: str
    cloud_identifier: str
    workspace_type: WorkspaceType
    cpu_architecture: CpuArchitecture = CpuArchitecture.ARM64
    description: str | None = None
    language_runtimes: list[str] = Field(default_factory=list, description="Ordered set of name@version pairs")
    packages_to_install: list[PackageName] = Field(default_factory=list)

    @field_validator("language_runtimes")
    @classmethod
    def _normalize_runtimes(cls, value: list[str]) -> list[str]:
        return normalize_language_runtimes(value)
