"""DynamoDB workspace store.

Table layout::

    workspaces            PK id
      name-owner-index    HASH name,  RANGE owner   (lookup by name)
      owner-index         HASH owner, RANGE name    (paged listing, ordered by name)

Uses ``anyio.to_thread.run_sync`` to run boto3 calls in the thread pool, and
boto3's ``TypeSerializer`` / ``TypeDeserializer`` to move between plain
Python values and DynamoDB AttributeValues.
"""

from __future__ import annotations

from functools import partial
from typing import Any

from anyio import to_thread
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError
from loguru import logger

from dave.user_api.models.workspace import Workspace
from dave.user_api.store.base import WorkspacePage

NAME_OWNER_INDEX = "name-owner-index"
OWNER_INDEX = "owner-index"

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _serialize(workspace: Workspace) -> dict[str, Any]:
    data = workspace.model_dump(mode="json", exclude_none=True)
    return {k: _serializer.serialize(v) for k, v in data.items()}


def _deserialize(item: dict[str, Any]) -> Workspace:
    return Workspace.model_validate({k: _deserializer.deserialize(v) for k, v in item.items()})


class DynamoWorkspaceStore:
    """DynamoDB implementation of the WorkspaceStore protocol."""

    def __init__(self, client: Any, table_name: str = "workspaces") -> None:
        self._client = client
        self._table = table_name

    # -- Read ------------------------------------------------------------------

    async def get_by_id(self, workspace_id: str) -> Workspace | None:
        resp = await to_thread.run_sync(
            partial(
                self._client.get_item,
                TableName=self._table,
                Key={"id": {"S": workspace_id}},
                ConsistentRead=True,
            )
        )
        item = resp.get("Item")
        return _deserialize(item) if item else None

    async def get_by_name_and_owner(self, name: str, owner: str) -> Workspace | None:
        resp = await to_thread.run_sync(
            partial(
                self._client.query,
                TableName=self._table,
                IndexName=NAME_OWNER_INDEX,
                KeyConditionExpression="#name = :name AND #owner = :owner",
                ExpressionAttributeNames={"#name": "name", "#owner": "owner"},
                ExpressionAttributeValues={":name": {"S": name}, ":owner": {"S": owner}},
            )
        )
        items = resp.get("Items", [])
        return _deserialize(items[0]) if items else None

    async def list_by_owner(
        self,
        owner: str,
        page_size: int,
        cursor: dict[str, Any] | None = None,
        ascending: bool = True,
    ) -> WorkspacePage:
        kwargs: dict[str, Any] = {
            "TableName": self._table,
            "IndexName": OWNER_INDEX,
            "KeyConditionExpression": "#owner = :owner",
            "ExpressionAttributeNames": {"#owner": "owner"},
            "ExpressionAttributeValues": {":owner": {"S": owner}},
            "Limit": page_size,
            "ScanIndexForward": ascending,
        }
        if cursor is not None:
            kwargs["ExclusiveStartKey"] = cursor
        resp = await to_thread.run_sync(partial(self._client.query, **kwargs))
        return WorkspacePage(
            items=[_deserialize(item) for item in resp.get("Items", [])],
            last_evaluated_key=resp.get("LastEvaluatedKey"),
        )

    # -- Write -----------------------------------------------------------------

    async def put(self, workspace: Workspace) -> None:
        await to_thread.run_sync(
            partial(self._client.put_item, TableName=self._table, Item=_serialize(workspace))
        )

    async def delete(self, workspace: Workspace) -> None:
        # DynamoDB delete is idempotent -- no error if the key doesn't exist.
        await to_thread.run_sync(
            partial(self._client.delete_item, TableName=self._table, Key={"id": {"S": workspace.id}})
        )

    # -- Schema ----------------------------------------------------------------

    def ensure_table(self) -> bool:
        """Create the table and its indexes if missing.  Returns ``True`` if created.

        Blocking; meant for the CLI and process bootstrap, not request handling.
        """
        try:
            self._client.describe_table(TableName=self._table)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceNotFoundException":
                raise
        else:
            return False

        logger.info("Creating DynamoDB table {}", self._table)
        self._client.create_table(
            TableName=self._table,
            BillingMode="PAY_PER_REQUEST",
            TableClass="STANDARD",
            AttributeDefinitions=[
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "name", "AttributeType": "S"},
                {"AttributeName": "owner", "AttributeType": "S"},
            ],
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": NAME_OWNER_INDEX,
                    "KeySchema": [
                        {"AttributeName": "name", "KeyType": "HASH"},
                        {"AttributeName": "owner", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
                {
                    "IndexName": OWNER_INDEX,
                    "KeySchema": [
                        {"AttributeName": "owner", "KeyType": "HASH"},
                        {"AttributeName": "name", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
        )
        self._client.get_waiter("table_exists").wait(TableName=self._table)
        logger.info("DynamoDB table {} is active", self._table)
        return True
