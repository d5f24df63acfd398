import copy
import itertools
from decimal import Decimal

import pytest
from django.apps import apps

import aws_config
from aws_lib.exceptions import AWSError, ConditionFailed
from kitchen.context import build_context
from kitchen.metrics import StoreMetricsProvider


def _normalize(value):
    """What a DynamoDB write followed by a read hands back through DynamoDBClient."""
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, float):
        value = Decimal(str(value))
    if isinstance(value, (int, Decimal)):
        value = Decimal(value)
        return int(value) if value % 1 == 0 else value
    return value


class FakeDynamoDB:
    """In-memory stand-in for aws_lib.dynamodb_client.DynamoDBClient."""

    def __init__(self):
        self.tables = {}
        self.failures = {}
        self.calls = []

    def fail(self, method, table=None, error=None):
        self.failures[(method, table)] = error or AWSError(f"{method} failed", code="InternalServerError")

    def _check(self, method, table):
        self.calls.append((method, table))
        error = self.failures.get((method, table)) or self.failures.get((method, None))
        if error:
            raise error

    def _keys(self, table):
        return aws_config.TABLE_KEYS.get(table, ("id", None))

    def _key_of(self, table, item):
        pk, sk = self._keys(table)
        return (_normalize(item[pk]), _normalize(item[sk]) if sk else None)

    def _rows(self, table):
        return self.tables.setdefault(table, {})

    def put(self, table, item, unique_on=None):
        self._check("put", table)
        key = self._key_of(table, item)
        if unique_on and key in self._rows(table):
            raise ConditionFailed("The conditional request failed", code="ConditionalCheckFailedException")
        self._rows(table)[key] = _normalize(copy.deepcopy(item))

    def get(self, table, key):
        self._check("get", table)
        row = self._rows(table).get(self._key_of(table, key))
        return copy.deepcopy(row) if row else {}

    def scan(self, table, filters=None):
        self._check("scan", table)
        wanted = _normalize(filters or {})
        return [
            copy.deepcopy(row) for row in self._rows(table).values()
            if all(row.get(k) == v for k, v in wanted.items())
        ]

    def query(self, table, key_name, value):
        self._check("query", table)
        _, sk = self._keys(table)
        rows = [copy.deepcopy(r) for r in self._rows(table).values() if r.get(key_name) == _normalize(value)]
        return sorted(rows, key=lambda r: r.get(sk) or 0) if sk else rows

    def update(self, table, key, fields=None, increment=None, expected=None):
        self._check("update", table)
        row = self._rows(table).get(self._key_of(table, key))
        if row is None or any(row.get(k) != v for k, v in _normalize(expected or {}).items()):
            raise ConditionFailed("The conditional request failed", code="ConditionalCheckFailedException")
        row.update(_normalize(copy.deepcopy(fields or {})))
        if increment:
            row[increment] = row.get(increment, 0) + 1
        return copy.deepcopy(row)

    def batch_put(self, table, items):
        self._check("batch_put", table)
        for item in items:
            self._rows(table)[self._key_of(table, item)] = _normalize(copy.deepcopy(item))

    def delete(self, table, key):
        self._check("delete", table)
        self._rows(table).pop(self._key_of(table, key), None)

    def items(self, table):
        return list(self._rows(table).values())


class FakeSQS:
    def __init__(self):
        self.messages = []
        self._ids = itertools.count(1)
        self.fail_receive = None

    def send_message(self, queue_url, body):
        n = next(self._ids)
        self.messages.append({"MessageId": f"msg-{n}", "ReceiptHandle": f"rh-{n}", "Body": body, "inflight": False})
        return {"MessageId": f"msg-{n}"}

    def receive_messages(self, queue_url, max_messages=1, wait_seconds=5):
        if self.fail_receive:
            raise self.fail_receive
        batch = [m for m in self.messages if not m["inflight"]][:max_messages]
        for m in batch:
            m["inflight"] = True
        return [{k: m[k] for k in ("MessageId", "ReceiptHandle", "Body")} for m in batch]

    def delete_message(self, queue_url, receipt_handle):
        self.messages = [m for m in self.messages if m["ReceiptHandle"] != receipt_handle]


class FakeSNS:
    def __init__(self):
        self.published = []

    def publish(self, topic_arn, message, subject=None):
        self.published.append({"topic": topic_arn, "message": message, "subject": subject})
        return {"MessageId": f"sns-{len(self.published)}"}


class FakeS3:
    def __init__(self):
        self.objects = {}

    def upload_fileobj(self, bucket, key, fileobj, content_type=None):
        self.objects[(bucket, key)] = fileobj.read()
        return f"https://{bucket}.s3.us-east-1.amazonaws.com/{key}"


class FakeSES:
    def __init__(self):
        self.sent = []
        self.fail_for = {}

    def send_html(self, sender, to, subject, html):
        for address in to:
            if address in self.fail_for:
                raise self.fail_for[address]
        self.sent.append({"from": sender, "to": list(to), "subject": subject, "html": html})
        return f"ses-{len(self.sent)}"


@pytest.fixture
def ddb():
    return FakeDynamoDB()


@pytest.fixture
def ses():
    return FakeSES()


@pytest.fixture
def kitchen(ddb, ses):
    """A KitchenContext wired to in-memory fakes, installed on the kitchen app."""
    ctx = build_context(
        ddb=ddb,
        sqs=FakeSQS(),
        sns=FakeSNS(),
        s3=FakeS3(),
        ses=ses,
        metrics=StoreMetricsProvider(ddb),
    )
    ctx.change_queue_url = "https://sqs.test/zedbites-order-changes"
    ctx.alert_topic_arn = "arn:aws:sns:us-east-1:000000000000:zedbites-stock-alerts"
    config = apps.get_app_config("kitchen")
    previous = config.context
    config.context = ctx
    yield ctx
    config.context = previous


@pytest.fixture
def staff_user(django_user_model):
    return django_user_model.objects.create_user("manager", "manager@zedbites.test", "s3cret-pass", is_staff=True)


@pytest.fixture
def plain_user(django_user_model):
    return django_user_model.objects.create_user("cook", "cook@zedbites.test", "s3cret-pass")


@pytest.fixture
def staff_client(client, staff_user):
    client.force_login(staff_user)
    return client


@pytest.fixture
def sample_items():
    return [
        {"item_name": "Nshima with Chicken", "quantity": 2, "price": "5.00"},
        {"item_name": "Chips", "quantity": 1, "price": "10.00"},
    ]
