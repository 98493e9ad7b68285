"""Conversation context stored in a DynamoDB table keyed by context key."""

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from relay.app.port.out import ContextRepository
from relay_common.environments import get_dynamodb_client


class DynamoContextRepository(ContextRepository):
    """Repository for storing and retrieving conversation context from DynamoDB.

    One item per conversation: pk is the context key, the context itself is
    kept as a JSON string so arbitrary nesting survives DynamoDB typing.
    """

    def __init__(self, table_name: str, dynamodb_client=None):
        self.table_name = table_name
        self.dynamodb = dynamodb_client or get_dynamodb_client()

    def load(self, key: str) -> dict:
        response = self.dynamodb.get_item(TableName=self.table_name, Key={"pk": {"S": key}})
        item = response.get("Item")
        if not item or "context" not in item:
            return {}
        return json.loads(item["context"]["S"])

    def save(self, key: str, context: Mapping[str, Any]) -> None:
        updated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        self.dynamodb.put_item(
            TableName=self.table_name,
            Item={
                "pk": {"S": key},
                "context": {"S": json.dumps(context)},
                "updated_at": {"S": updated_at},
            },
        )
