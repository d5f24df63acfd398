import json

import pytest

import aws_config
import lambda_order_processor
from kitchen.changes import ChangeEvent

STREAM_ARN = "arn:aws:dynamodb:us-east-1:000000000000:table/{}/stream/2024-05-01T00:00:00.000"


class RecordingSQS:
    def __init__(self):
        self.sent = []

    def send_message(self, QueueUrl, MessageBody):
        self.sent.append((QueueUrl, MessageBody))
        return {"MessageId": str(len(self.sent))}


@pytest.fixture
def relay(monkeypatch):
    sqs = RecordingSQS()
    monkeypatch.setattr(lambda_order_processor, "sqs", sqs)
    monkeypatch.setattr(lambda_order_processor, "_queue_url", "https://sqs.test/changes")
    return sqs


def stream_record(table, event, keys, new=None, old=None):
    data = {"Keys": keys}
    if new:
        data["NewImage"] = new
    if old:
        data["OldImage"] = old
    return {"eventName": event, "eventSourceARN": STREAM_ARN.format(table), "dynamodb": data}


def test_order_stream_records_are_relayed(relay):
    event = {"Records": [
        stream_record(aws_config.ORDERS_TABLE, "MODIFY", {"order_id": {"S": "o-1"}},
                      new={"order_id": {"S": "o-1"}, "status": {"S": "cooking"}, "revision": {"N": "2"},
                           "total_amount": {"N": "20.5"}}),
        stream_record(aws_config.ORDER_ITEMS_TABLE, "REMOVE", {"order_id": {"S": "o-1"}, "line_no": {"N": "2"}},
                      old={"order_id": {"S": "o-1"}, "line_no": {"N": "2"}}),
    ]}

    result = lambda_order_processor.lambda_handler(event, None)

    assert result["statusCode"] == 200
    assert json.loads(result["body"]) == {"relayed": 2}
    first = ChangeEvent.from_json(relay.sent[0][1])
    assert first.table == "orders"
    assert first.new == {"order_id": "o-1", "status": "cooking", "revision": 2, "total_amount": 20.5}
    second = ChangeEvent.from_json(relay.sent[1][1])
    assert (second.table, second.event, second.keys) == ("order_items", "REMOVE", {"order_id": "o-1", "line_no": 2})
    assert second.new is None


def test_other_tables_are_skipped(relay):
    event = {"Records": [stream_record("Inventory", "INSERT", {"item_id": {"S": "i1"}})]}
    assert json.loads(lambda_order_processor.lambda_handler(event, None)["body"]) == {"relayed": 0}
    assert relay.sent == []


def test_table_from_arn():
    assert lambda_order_processor.table_from_arn(STREAM_ARN.format("Orders")) == "Orders"
    assert lambda_order_processor.table_from_arn("garbage") is None
    assert lambda_order_processor.table_from_arn(None) is None


@pytest.mark.django_db
def test_report_handler(kitchen, ses):
    import lambda_function

    kitchen.recipients.create("daily", "ops@zedbites.test")

    result = lambda_function.lambda_handler({"report": "daily", "scheduled": True}, None)

    assert result["statusCode"] == 200
    assert json.loads(result["body"])["successful"] == 1
    assert len(ses.sent) == 1


def test_report_handler_rejects_unknown_report(kitchen):
    import lambda_function

    result = lambda_function.lambda_handler({"report": "hourly"}, None)
    assert result["statusCode"] == 400


def test_report_handler_infrastructure_failure(kitchen, ddb):
    import lambda_function

    ddb.fail("scan")
    result = lambda_function.lambda_handler({"report": "weekly", "scheduled": True}, None)
    assert result["statusCode"] == 500
    assert "error" in json.loads(result["body"])
