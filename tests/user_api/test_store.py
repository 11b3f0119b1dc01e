"""Tests for the workspace stores.

The DynamoDB store is exercised with ``botocore.stub.Stubber`` so the exact
request shapes are checked without a table.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import boto3
import pytest
from botocore.stub import Stubber

from dave.user_api.models.enums import CpuArchitecture, WorkspaceType
from dave.user_api.models.workspace import Workspace
from dave.user_api.store.base import WorkspaceStore
from dave.user_api.store.dynamodb import DynamoWorkspaceStore
from dave.user_api.store.memory import MemoryWorkspaceStore


def _workspace(name: str = "dev", owner: str = "alice", **kwargs) -> Workspace:
    return Workspace(
        name=name,
        owner=owner,
        cloud_identifier=kwargs.pop("cloud_identifier", "i-0001"),
        workspace_type=WorkspaceType.MICRO,
        **kwargs,
    )


def _item(workspace: Workspace) -> dict:
    item = {
        "id": {"S": workspace.id},
        "name": {"S": workspace.name},
        "owner": {"S": workspace.owner},
        "cloud_identifier": {"S": workspace.cloud_identifier},
        "workspace_type": {"S": workspace.workspace_type.value},
        "cpu_architecture": {"S": workspace.cpu_architecture.value},
        "language_runtimes": {"L": [{"S": r} for r in workspace.language_runtimes]},
        "packages_to_install": {"L": [{"S": p} for p in workspace.packages_to_install]},
    }
    if workspace.description is not None:
        item["description"] = {"S": workspace.description}
    return item


# -- Memory store --------------------------------------------------------------


def test_memory_store_satisfies_protocol() -> None:
    assert isinstance(MemoryWorkspaceStore(), WorkspaceStore)


async def test_memory_store_crud() -> None:
    store = MemoryWorkspaceStore()
    workspace = _workspace()
    await store.put(workspace)

    assert await store.get_by_id(workspace.id) == workspace
    assert await store.get_by_name_and_owner("dev", "alice") == workspace
    assert await store.get_by_name_and_owner("dev", "bob") is None

    await store.delete(workspace)
    assert await store.get_by_id(workspace.id) is None
    await store.delete(workspace)  # idempotent


async def test_memory_store_returns_copies() -> None:
    store = MemoryWorkspaceStore()
    workspace = _workspace()
    await store.put(workspace)

    loaded = await store.get_by_id(workspace.id)
    assert loaded is not None
    loaded.packages_to_install.append("htop")

    again = await store.get_by_id(workspace.id)
    assert again is not None
    assert again.packages_to_install == []


async def test_memory_store_pages_by_name() -> None:
    store = MemoryWorkspaceStore()
    for name in ("charlie", "alpha", "bravo"):
        await store.put(_workspace(name))
    await store.put(_workspace("zulu", owner="bob"))

    first = await store.list_by_owner("alice", 2)
    assert [w.name for w in first.items] == ["alpha", "bravo"]
    assert first.last_evaluated_key is not None
    assert first.last_evaluated_key["name"] == {"S": "bravo"}

    second = await store.list_by_owner("alice", 2, cursor=first.last_evaluated_key)
    assert [w.name for w in second.items] == ["charlie"]
    assert second.last_evaluated_key is None

    descending = await store.list_by_owner("alice", 10, ascending=False)
    assert [w.name for w in descending.items] == ["charlie", "bravo", "alpha"]


# -- DynamoDB store ------------------------------------------------------------


@pytest.fixture
def dynamodb() -> Iterator[tuple[Any, Stubber]]:
    client = boto3.client(
        "dynamodb",
        region_name="eu-west-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",  # noqa: S106
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


async def test_dynamodb_get_by_id(dynamodb) -> None:
    client, stubber = dynamodb
    workspace = _workspace(description="notes", language_runtimes=["python@3.12"])
    stubber.add_response(
        "get_item",
        {"Item": _item(workspace)},
        {"TableName": "workspaces", "Key": {"id": {"S": workspace.id}}, "ConsistentRead": True},
    )

    loaded = await DynamoWorkspaceStore(client).get_by_id(workspace.id)
    assert loaded == workspace


async def test_dynamodb_get_by_id_missing(dynamodb) -> None:
    client, stubber = dynamodb
    stubber.add_response(
        "get_item",
        {},
        {"TableName": "workspaces", "Key": {"id": {"S": "nope"}}, "ConsistentRead": True},
    )
    assert await DynamoWorkspaceStore(client).get_by_id("nope") is None


async def test_dynamodb_get_by_name_and_owner(dynamodb) -> None:
    client, stubber = dynamodb
    workspace = _workspace()
    stubber.add_response(
        "query",
        {"Items": [_item(workspace)], "Count": 1},
        {
            "TableName": "workspaces",
            "IndexName": "name-owner-index",
            "KeyConditionExpression": "#name = :name AND #owner = :owner",
            "ExpressionAttributeNames": {"#name": "name", "#owner": "owner"},
            "ExpressionAttributeValues": {":name": {"S": "dev"}, ":owner": {"S": "alice"}},
        },
    )
    assert await DynamoWorkspaceStore(client).get_by_name_and_owner("dev", "alice") == workspace


async def test_dynamodb_list_by_owner_passes_cursor(dynamodb) -> None:
    client, stubber = dynamodb
    workspace = _workspace(cpu_architecture=CpuArchitecture.X86_64)
    cursor = {"id": {"S": "prev"}, "name": {"S": "a"}, "owner": {"S": "alice"}}
    last_key = {"id": {"S": workspace.id}, "name": {"S": "dev"}, "owner": {"S": "alice"}}
    stubber.add_response(
        "query",
        {"Items": [_item(workspace)], "Count": 1, "LastEvaluatedKey": last_key},
        {
            "TableName": "workspaces",
            "IndexName": "owner-index",
            "KeyConditionExpression": "#owner = :owner",
            "ExpressionAttributeNames": {"#owner": "owner"},
            "ExpressionAttributeValues": {":owner": {"S": "alice"}},
            "Limit": 1,
            "ScanIndexForward": False,
            "ExclusiveStartKey": cursor,
        },
    )

    page = await DynamoWorkspaceStore(client).list_by_owner("alice", 1, cursor=cursor, ascending=False)
    assert page.items == [workspace]
    assert page.last_evaluated_key == last_key


async def test_dynamodb_put_and_delete(dynamodb) -> None:
    client, stubber = dynamodb
    workspace = _workspace(packages_to_install=["htop"])
    stubber.add_response("put_item", {}, {"TableName": "workspaces", "Item": _item(workspace)})
    stubber.add_response("delete_item", {}, {"TableName": "workspaces", "Key": {"id": {"S": workspace.id}}})

    store = DynamoWorkspaceStore(client)
    await store.put(workspace)
    await store.delete(workspace)


def test_dynamodb_ensure_table_skips_existing(dynamodb) -> None:
    client, stubber = dynamodb
    stubber.add_response(
        "describe_table",
        {"Table": {"TableName": "workspaces", "TableStatus": "ACTIVE"}},
        {"TableName": "workspaces"},
    )
    assert DynamoWorkspaceStore(client).ensure_table() is False
