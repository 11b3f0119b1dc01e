"""Shared enumerations used across the user API."""

from __future__ import annotations

from enum import StrEnum

# -- Workspace ---------------------------------------------------------------


class WorkspaceType(StrEnum):
    """Sizing tier; determines the volume size."""

    MICRO = "Micro"
    STANDARD = "Standard"


class CpuArchitecture(StrEnum):
    """Determines the machine image and the instance family."""

    ARM64 = "ARM64"
    X86_64 = "X86_64"


class WorkspaceStatus(StrEnum):
    """Derived from the backing instance state on every read.  Never persisted."""

    STARTING = "Starting"
    RUNNING = "Running"
    OFF = "Off"
    SHUTTING_DOWN = "ShuttingDown"
    TERMINATED = "Terminated"


# -- Listing -----------------------------------------------------------------


class SortOrder(StrEnum):
    ASC = "ASC"
    DESC = "DESC"


# -- Infrastructure ----------------------------------------------------------


class InstanceState(StrEnum):
    """EC2 instance state names as reported by DescribeInstances."""

    PENDING = "pending"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    STOPPING = "stopping"
    STOPPED = "stopped"
