from decimal import Decimal

from boto3.dynamodb.conditions import Attr, Key

from .base_client import AWSBaseClient
from .exceptions import translate_errors


class DynamoDBClient(AWSBaseClient):
    def __init__(self, **kwargs):
        super().__init__("dynamodb", **kwargs)

    def _deserialize(self, value):
        """
        Convert DynamoDB data into plain Python types.
        Whole numbers become int, everything else stays Decimal so money
        amounts keep their exact value.
        """
        if isinstance(value, dict):
            return {k: self._deserialize(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._deserialize(v) for v in value]
        if isinstance(value, Decimal):
            return int(value) if value % 1 == 0 else value
        return value

# CRUD

    @translate_errors
    def put(self, table, item, unique_on=None):
        """
        Write a full item. With ``unique_on`` set to the partition key name
        the write fails with ConditionFailed if the item already exists.
        """
        tbl = self.resource.Table(table)
        kwargs = {"Item": self._convert_to_decimal(item)}
        if unique_on:
            kwargs["ConditionExpression"] = Attr(unique_on).not_exists()
        return tbl.put_item(**kwargs)

    @translate_errors
    def get(self, table, key):
        tbl = self.resource.Table(table)
        resp = tbl.get_item(Key=self._convert_to_decimal(key))
        item = resp.get("Item")
        return self._deserialize(item) if item else {}

    @translate_errors
    def scan(self, table, filters=None):
        """Full table scan, following pagination. ``filters`` is a dict of equality tests."""
        tbl = self.resource.Table(table)
        kwargs = {}
        condition = self._equals(filters)
        if condition is not None:
            kwargs["FilterExpression"] = condition

        items = []
        while True:
            resp = tbl.scan(**kwargs)
            items.extend(resp.get("Items", []))
            if "LastEvaluatedKey" not in resp:
                break
            kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        return [self._deserialize(i) for i in items]

    @translate_errors
    def query(self, table, key_name, value):
        """All items sharing a partition key, in sort key order."""
        tbl = self.resource.Table(table)
        kwargs = {"KeyConditionExpression": Key(key_name).eq(value)}

        items = []
        while True:
            resp = tbl.query(**kwargs)
            items.extend(resp.get("Items", []))
            if "LastEvaluatedKey" not in resp:
                break
            kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        return [self._deserialize(i) for i in items]

    @translate_errors
    def update(self, table, key, fields=None, increment=None, expected=None):
        """
        Partial update of an existing item.

        ``fields`` are SET, ``increment`` names a numeric attribute bumped by 1
        and ``expected`` is a dict of attribute values the stored item must
        still have. The item must already exist. Returns the updated item.
        """
        tbl = self.resource.Table(table)
        fields = self._convert_to_decimal(fields or {})

        names, values, clauses = {}, {}, []
        for i, (name, value) in enumerate(fields.items()):
            names[f"#f{i}"] = name
            values[f":v{i}"] = value
            clauses.append(f"#f{i} = :v{i}")

        expression = ""
        if clauses:
            expression = "SET " + ", ".join(clauses)
        if increment:
            names["#inc"] = increment
            values[":one"] = Decimal(1)
            expression += " ADD #inc :one"

        condition = None
        for key_name in key:
            test = Attr(key_name).exists()
            condition = test if condition is None else condition & test
        expected_condition = self._equals(expected)
        if expected_condition is not None:
            condition = condition & expected_condition

        kwargs = {
            "Key": self._convert_to_decimal(key),
            "UpdateExpression": expression.strip(),
            "ConditionExpression": condition,
            "ReturnValues": "ALL_NEW",
        }
        if names:
            kwargs["ExpressionAttributeNames"] = names
        if values:
            kwargs["ExpressionAttributeValues"] = values

        resp = tbl.update_item(**kwargs)
        return self._deserialize(resp.get("Attributes", {}))

    @translate_errors
    def batch_put(self, table, items):
        tbl = self.resource.Table(table)
        with tbl.batch_writer() as batch:
            for item in items:
                batch.put_item(Item=self._convert_to_decimal(item))

    @translate_errors
    def delete(self, table, key):
        """
        Delete an item from the DynamoDB table.
        """
        tbl = self.resource.Table(table)
        return tbl.delete_item(Key=self._convert_to_decimal(key))

# number to decimal
    def _convert_to_decimal(self, data):
        """Recursively convert ints and floats to Decimal for DynamoDB writes."""
        if isinstance(data, dict):
            return {k: self._convert_to_decimal(v) for k, v in data.items()}
        if isinstance(data, list):
            return [self._convert_to_decimal(v) for v in data]
        if isinstance(data, bool):
            return data
        if isinstance(data, int):
            return Decimal(data)
        if isinstance(data, float):
            return Decimal(str(data))
        return data

    def _equals(self, filters):
        condition = None
        for name, value in (filters or {}).items():
            test = Attr(name).eq(self._convert_to_decimal(value))
            condition = test if condition is None else condition & test
        return condition
