"""Workspace reconciliation.

``WorkspaceReconciler`` drives a workspace's cloud resources and its
persisted record into agreement for the six user-facing operations.  Cloud
work is synchronous boto3 with blocking waiters, so each provisioning phase
runs as one unit in the anyio worker thread pool.  The record is written
last: if provisioning fails nothing is persisted, and the resources created
so far are left in place (there is no rollback).
"""

from __future__ import annotations

from functools import partial

from anyio import to_thread
from loguru import logger

from dave.user_api.aws import AwsContext
from dave.user_api.context import OperationScope
from dave.user_api.errors import ConflictError, InternalError, infrastructure_errors
from dave.user_api.models.api import ListWorkspacesResponse, WorkspaceCreate, WorkspaceResponse, WorkspaceUpdate
from dave.user_api.models.enums import InstanceState, SortOrder, WorkspaceStatus, WorkspaceType
from dave.user_api.models.workspace import Workspace
from dave.user_api.pagination import PaginationCodec
from dave.user_api.provisioning.compute import ComputeProvisioner, Instance, deterministic_name
from dave.user_api.provisioning.identity import IdentityRoleSynchronizer
from dave.user_api.provisioning.user_data import UserDataRenderer, user_data_context
from dave.user_api.store.base import WorkspaceStore

WORKSPACE_VOLUME_SIZES: dict[WorkspaceType, int] = {
    WorkspaceType.MICRO: 8,
    WorkspaceType.STANDARD: 100,
}

# Any difference in these fields means the instance has to be rebuilt.
REPLACEMENT_FIELDS = ("cpu_architecture", "workspace_type", "language_runtimes", "packages_to_install")

_STATUS_BY_STATE: dict[InstanceState, WorkspaceStatus] = {
    InstanceState.PENDING: WorkspaceStatus.STARTING,
    InstanceState.RUNNING: WorkspaceStatus.RUNNING,
    InstanceState.STOPPED: WorkspaceStatus.OFF,
    InstanceState.STOPPING: WorkspaceStatus.SHUTTING_DOWN,
    InstanceState.SHUTTING_DOWN: WorkspaceStatus.SHUTTING_DOWN,
    InstanceState.TERMINATED: WorkspaceStatus.TERMINATED,
}


def status_for_instance_state(state: str) -> WorkspaceStatus:
    """Map an EC2 state name to a workspace status.  Unknown states are an ``InternalError``."""
    try:
        return _STATUS_BY_STATE[InstanceState(state)]
    except (ValueError, KeyError):
        logger.error("Unmapped instance state {!r}", state)
        raise InternalError from None


def needs_replacement(current: Workspace, updated: Workspace) -> bool:
    return any(getattr(current, field) != getattr(updated, field) for field in REPLACEMENT_FIELDS)


class WorkspaceReconciler:
    """Orchestrates store, compute and identity for each workspace operation."""

    def __init__(
        self,
        *,
        store: WorkspaceStore,
        compute: ComputeProvisioner,
        identity: IdentityRoleSynchronizer,
        renderer: UserDataRenderer,
        codec: PaginationCodec,
        scope: OperationScope,
        aws: AwsContext,
        user_data_template: str,
    ) -> None:
        self._store = store
        self._compute = compute
        self._identity = identity
        self._renderer = renderer
        self._codec = codec
        self._scope = scope
        self._aws = aws
        self._user_data_template = user_data_template

    # -- Create ----------------------------------------------------------------

    async def create_workspace(self, owner: str, body: WorkspaceCreate) -> WorkspaceResponse:
        """Provision instance, volume and roles, then persist a new record.

        Raises ``ConflictError`` if the owner already has a workspace with
        this name.
        """
        with infrastructure_errors("creating workspace"):
            if await self._store.get_by_name_and_owner(body.name, owner) is not None:
                raise ConflictError

            logger.info("Creating workspace {} for user {}", body.name, owner)
            instance = await to_thread.run_sync(partial(self._provision, owner, body))
            workspace = Workspace(
                name=body.name,
                owner=owner,
                cloud_identifier=instance.instance_id,
                workspace_type=body.workspace_type,
                cpu_architecture=body.cpu_architecture,
                description=body.description,
                language_runtimes=body.language_runtimes,
                packages_to_install=body.packages_to_install,
            )
            await self._store.put(workspace)
            logger.info("Workspace {} created with instance {}", workspace.id, instance.instance_id)
            return WorkspaceResponse.from_record(workspace, status_for_instance_state(instance.state))

    def _provision(self, owner: str, body: WorkspaceCreate) -> Instance:
        name = deterministic_name(owner, body.name)
        security_group_id = self._compute.ensure_security_group(name)
        self._identity.ensure_instance_role(name)
        volume = self._compute.provision_volume(
            WORKSPACE_VOLUME_SIZES[body.workspace_type],
            self._compute.availability_zone,
            name,
        )
        user_data = self._render_user_data(owner, body.name, body.language_runtimes, body.packages_to_install)
        instance = self._compute.launch(name, body.cpu_architecture, security_group_id, user_data)
        self._compute.attach_volume(instance.instance_id, volume.volume_id)
        self._identity.grant_instance_access(owner, self._aws.instance_arn(instance.instance_id))
        return instance

    # -- Read ------------------------------------------------------------------

    async def get_workspace_by_id(self, owner: str, workspace_id: str) -> WorkspaceResponse:
        with infrastructure_errors("getting workspace"):
            workspace = self._scope.check_ownership(await self._store.get_by_id(workspace_id), owner)
            return WorkspaceResponse.from_record(workspace, await self._status_of(workspace))

    async def get_workspace_by_name(self, owner: str, name: str) -> WorkspaceResponse:
        with infrastructure_errors("getting workspace"):
            workspace = self._scope.check_ownership(await self._store.get_by_name_and_owner(name, owner), owner)
            return WorkspaceResponse.from_record(workspace, await self._status_of(workspace))

    async def list_workspaces(
        self,
        owner: str,
        page_size: int,
        next_token: str | None = None,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> ListWorkspacesResponse:
        """One page of the owner's workspaces, ordered by name.

        Records whose instance no longer exists are left out of the page.
        """
        cursor = self._codec.decode(next_token)
        with infrastructure_errors("listing workspaces"):
            page = await self._store.list_by_owner(
                owner,
                page_size,
                cursor=cursor,
                ascending=sort_order == SortOrder.ASC,
            )
            if not page.items:
                return ListWorkspacesResponse()

            states = await to_thread.run_sync(
                partial(self._compute.describe_statuses, [w.cloud_identifier for w in page.items])
            )
            items = []
            for workspace in page.items:
                state = states.get(workspace.cloud_identifier)
                if state is None:
                    logger.warning("Instance {} of workspace {} not found", workspace.cloud_identifier, workspace.id)
                    continue
                items.append(WorkspaceResponse.from_record(workspace, status_for_instance_state(state)))

        token = self._codec.encode(page.last_evaluated_key)
        return ListWorkspacesResponse(items=items, has_next_page=token is not None, next_token=token)

    # -- Update ----------------------------------------------------------------

    async def update_workspace(self, owner: str, name: str, body: WorkspaceUpdate) -> WorkspaceResponse:
        """Apply a partial update to a running workspace.

        Changing architecture, type, runtimes or packages replaces the
        instance (the volume is kept and resized).  A plain rename only
        retags.  Fields left out of ``body`` keep their stored values.  A type
        change that would shrink the volume is refused up front.
        """
        with infrastructure_errors("updating workspace"):
            current = self._scope.check_ownership(await self._store.get_by_name_and_owner(name, owner), owner)
            status = await self._status_of(current)
            if status != WorkspaceStatus.RUNNING:
                logger.info("Refusing to update workspace {} in status {}", current.id, status)
                raise ConflictError("Workspace is not running")

            changes = {
                key: value
                for key, value in body.model_dump(exclude_unset=True).items()
                if value is not None or key == "description"
            }
            updated = Workspace.model_validate({**current.model_dump(), **changes})

            renamed = updated.name != current.name
            if renamed and await self._store.get_by_name_and_owner(updated.name, owner) is not None:
                raise ConflictError

            if WORKSPACE_VOLUME_SIZES[updated.workspace_type] < WORKSPACE_VOLUME_SIZES[current.workspace_type]:
                logger.info("Refusing to shrink volume of workspace {} to {}", current.id, updated.workspace_type)
                raise ConflictError("Workspace volume cannot shrink")

            if needs_replacement(current, updated):
                logger.info("Replacing instance {} of workspace {}", current.cloud_identifier, current.id)
                instance = await to_thread.run_sync(partial(self._replace, current, updated))
                updated.cloud_identifier = instance.instance_id
                status = status_for_instance_state(instance.state)
            elif renamed:
                await to_thread.run_sync(partial(self._retag, current, updated))

            await self._store.put(updated)
            return WorkspaceResponse.from_record(updated, status)

    def _replace(self, current: Workspace, updated: Workspace) -> Instance:
        owner = current.owner
        old_name = deterministic_name(owner, current.name)
        new_name = deterministic_name(owner, updated.name)

        # The old instance must outlive a failed resize.
        volume = self._compute.provision_volume(
            WORKSPACE_VOLUME_SIZES[updated.workspace_type],
            self._compute.availability_zone,
            old_name,
        )
        security_group_id = self._compute.ensure_security_group(new_name)
        self._compute.terminate_and_await(current.cloud_identifier)
        self._compute.await_volume_available(volume.volume_id)
        self._identity.ensure_instance_role(new_name)
        if new_name != old_name:
            self._compute.retag([volume.volume_id], new_name)

        user_data = self._render_user_data(owner, updated.name, updated.language_runtimes, updated.packages_to_install)
        instance = self._compute.launch(new_name, updated.cpu_architecture, security_group_id, user_data)
        self._compute.attach_volume(instance.instance_id, volume.volume_id)
        self._identity.replace_instance_access(
            owner,
            self._aws.instance_arn(current.cloud_identifier),
            self._aws.instance_arn(instance.instance_id),
        )
        return instance

    def _retag(self, current: Workspace, updated: Workspace) -> None:
        new_name = deterministic_name(updated.owner, updated.name)
        resource_ids = [current.cloud_identifier]
        volume = self._compute.find_volume(deterministic_name(current.owner, current.name))
        if volume is not None:
            resource_ids.append(volume.volume_id)
        logger.info("Renaming resources {} to {}", resource_ids, new_name)
        self._compute.retag(resource_ids, new_name)

    # -- Delete ----------------------------------------------------------------

    async def delete_workspace_by_id(self, owner: str, workspace_id: str) -> None:
        with infrastructure_errors("deleting workspace"):
            workspace = self._scope.check_ownership(await self._store.get_by_id(workspace_id), owner)
            await self._delete(workspace)

    async def delete_workspace_by_name(self, owner: str, name: str) -> None:
        with infrastructure_errors("deleting workspace"):
            workspace = self._scope.check_ownership(await self._store.get_by_name_and_owner(name, owner), owner)
            await self._delete(workspace)

    async def _delete(self, workspace: Workspace) -> None:
        logger.info("Deleting workspace {} (instance {})", workspace.id, workspace.cloud_identifier)
        await to_thread.run_sync(partial(self._teardown, workspace))
        await self._store.delete(workspace)

    def _teardown(self, workspace: Workspace) -> None:
        self._compute.terminate_and_await(workspace.cloud_identifier)
        self._identity.revoke_instance_access(workspace.owner, self._aws.instance_arn(workspace.cloud_identifier))

    # -- Helpers ---------------------------------------------------------------

    async def _status_of(self, workspace: Workspace) -> WorkspaceStatus:
        state = await to_thread.run_sync(partial(self._compute.describe_status, workspace.cloud_identifier))
        return status_for_instance_state(state)

    def _render_user_data(
        self,
        owner: str,
        workspace_name: str,
        language_runtimes: list[str],
        packages_to_install: list[str],
    ) -> str:
        context = user_data_context(owner, workspace_name, language_runtimes, packages_to_install)
        return self._renderer.render(self._user_data_template, context)
