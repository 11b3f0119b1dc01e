"""Fixtures for user API tests.

The reconciler runs against the in-memory store and recording fakes of the
compute and identity components, so every scenario can inspect which cloud
calls were made without touching AWS.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from dave.user_api.aws import AwsContext
from dave.user_api.context import OperationScope
from dave.user_api.errors import InternalError, UnauthorizedError
from dave.user_api.managers.workspaces import WorkspaceReconciler
from dave.user_api.models.auth import UserInfo
from dave.user_api.models.enums import CpuArchitecture
from dave.user_api.pagination import PaginationCodec
from dave.user_api.provisioning.compute import Instance, Volume
from dave.user_api.provisioning.user_data import UserDataRenderer
from dave.user_api.settings import DaveSettings
from dave.user_api.store.memory import MemoryWorkspaceStore

AWS = AwsContext(partition="aws", region="eu-west-1", account_id="123456789012")


class FakeVerifier:
    """Accepts ``<username>-token`` for the known users."""

    def __init__(self, *usernames: str) -> None:
        self._tokens = {f"{u}-token": u for u in usernames}

    def verify(self, token: str) -> UserInfo:
        username = self._tokens.get(token)
        if username is None:
            raise UnauthorizedError
        return UserInfo(username=username, email=f"{username}@example.com", email_verified=True)


class FakeCompute:
    """In-memory stand-in for ComputeProvisioner that records every call."""

    availability_zone = "eu-west-1a"

    def __init__(self) -> None:
        self.instances: dict[str, str] = {}
        self.volumes: dict[str, Volume] = {}
        self.user_data: dict[str, str] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.fail_terminate = False
        self.fail_resize = False
        self._next_id = 0

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == method]

    def ensure_security_group(self, name: str) -> str:
        self.calls.append(("ensure_security_group", name))
        return f"sg-{name}"

    def launch(self, name: str, architecture: CpuArchitecture, security_group_id: str, user_data: str) -> Instance:
        self._next_id += 1
        instance_id = f"i-{self._next_id:04d}"
        self.calls.append(("launch", name, architecture, security_group_id))
        self.instances[instance_id] = "running"
        self.user_data[instance_id] = user_data
        return Instance(instance_id=instance_id, state="running")

    def terminate_and_await(self, instance_id: str) -> None:
        self.calls.append(("terminate_and_await", instance_id))
        if self.fail_terminate:
            raise InternalError
        self.instances[instance_id] = "terminated"

    def describe_status(self, instance_id: str) -> str:
        return self.instances[instance_id]

    def describe_statuses(self, instance_ids: list[str]) -> dict[str, str]:
        return {i: self.instances[i] for i in instance_ids if i in self.instances}

    def retag(self, resource_ids: list[str], name: str) -> None:
        self.calls.append(("retag", tuple(resource_ids), name))
        for tagged_name, volume in list(self.volumes.items()):
            if volume.volume_id in resource_ids:
                self.volumes[name] = self.volumes.pop(tagged_name)

    def find_volume(self, tagged_name: str) -> Volume | None:
        return self.volumes.get(tagged_name)

    def provision_volume(self, size_gib: int, availability_zone: str, tagged_name: str) -> Volume:
        self.calls.append(("provision_volume", size_gib, tagged_name))
        existing = self.volumes.get(tagged_name)
        if existing and existing.size != size_gib and self.fail_resize:
            raise InternalError
        volume_id = existing.volume_id if existing else f"vol-{len(self.volumes) + 1:04d}"
        self.volumes[tagged_name] = Volume(volume_id=volume_id, size=size_gib)
        return self.volumes[tagged_name]

    def attach_volume(self, instance_id: str, volume_id: str) -> None:
        self.calls.append(("attach_volume", instance_id, volume_id))

    def await_volume_available(self, volume_id: str) -> None:
        self.calls.append(("await_volume_available", volume_id))


class FakeIdentity:
    """In-memory stand-in for IdentityRoleSynchronizer."""

    def __init__(self) -> None:
        self.instance_roles: list[str] = []
        self.policies: dict[str, list[str]] = {}

    def ensure_instance_role(self, name: str) -> None:
        self.instance_roles.append(name)

    def grant_instance_access(self, owner: str, instance_arn: str) -> None:
        resources = self.policies.setdefault(owner, [])
        if instance_arn not in resources:
            resources.append(instance_arn)

    def replace_instance_access(self, owner: str, old_instance_arn: str, new_instance_arn: str) -> None:
        if owner not in self.policies:
            raise InternalError
        self.policies[owner] = [r for r in self.policies[owner] if not r.endswith(old_instance_arn)]
        self.policies[owner].append(new_instance_arn)

    def revoke_instance_access(self, owner: str, instance_arn: str) -> None:
        if owner not in self.policies:
            return
        remaining = [r for r in self.policies[owner] if not r.endswith(instance_arn)]
        if remaining:
            self.policies[owner] = remaining


# ---------------------------------------------------------------------------
# Reconciler wiring
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> MemoryWorkspaceStore:
    return MemoryWorkspaceStore()


@pytest.fixture
def compute() -> FakeCompute:
    return FakeCompute()


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def scope() -> OperationScope:
    return OperationScope(FakeVerifier("alice", "bob"))


@pytest.fixture
def reconciler(
    store: MemoryWorkspaceStore,
    compute: FakeCompute,
    identity: FakeIdentity,
    scope: OperationScope,
) -> WorkspaceReconciler:
    return WorkspaceReconciler(
        store=store,
        compute=compute,  # type: ignore[arg-type]
        identity=identity,  # type: ignore[arg-type]
        renderer=UserDataRenderer(),
        codec=PaginationCodec(),
        scope=scope,
        aws=AWS,
        user_data_template="workspace-user-data.sh.j2",
    )


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> DaveSettings:
    return DaveSettings(
        auth_domain="auth.example.com",
        auth_audience="https://dave.example.com",
        auth_client_id="client-123",
        default_page_size=20,
        max_page_size=50,
    )


@pytest.fixture
async def client(
    reconciler: WorkspaceReconciler,
    scope: OperationScope,
    settings: DaveSettings,
) -> AsyncIterator[AsyncClient]:
    """httpx client bound to the app, with ``app.state`` populated directly.

    ASGITransport does not run the lifespan, so nothing talks to AWS.
    """
    from dave.user_api.app import app

    app.state.settings = settings
    app.state.scope = scope
    app.state.reconciler = reconciler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.state.reconciler = None
    app.state.scope = None
