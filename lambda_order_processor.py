"""
DynamoDB stream -> SQS relay for order changes.

Attach to the streams of the Orders and OrderItems tables (NEW_AND_OLD_IMAGES).
Each stream record becomes one change message on the order changes queue,
which ``ChangeFeed`` consumes.
"""
import json
import logging
import os
from decimal import Decimal

from boto3.dynamodb.types import TypeDeserializer

from aws_config import ORDER_ITEMS_TABLE, ORDERS_TABLE, get_sqs_url, sqs_client
from kitchen.changes import ORDER_ITEMS, ORDERS, ChangeEvent

logger = logging.getLogger()
logger.setLevel(logging.INFO)

sqs = sqs_client()
deserializer = TypeDeserializer()

TABLE_FEEDS = {
    ORDERS_TABLE: ORDERS,
    ORDER_ITEMS_TABLE: ORDER_ITEMS,
}

_queue_url = os.getenv("ORDER_CHANGES_QUEUE_URL")


def queue_url():
    global _queue_url
    if not _queue_url:
        _queue_url = get_sqs_url()
    return _queue_url


def table_from_arn(arn):
    # arn:aws:dynamodb:<region>:<account>:table/<name>/stream/<label>
    try:
        return arn.split(":table/", 1)[1].split("/", 1)[0]
    except (AttributeError, IndexError):
        return None


def plain(value):
    """Deserialized DynamoDB values to JSON-friendly ones."""
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [plain(v) for v in value]
    return value


def image(raw):
    if not raw:
        return None
    return {k: plain(deserializer.deserialize(v)) for k, v in raw.items()}


def to_change(record):
    feed = TABLE_FEEDS.get(table_from_arn(record.get("eventSourceARN")))
    if feed is None:
        return None
    data = record["dynamodb"]
    return ChangeEvent(
        table=feed,
        event=record["eventName"],
        keys=image(data.get("Keys")) or {},
        new=image(data.get("NewImage")),
        old=image(data.get("OldImage")),
    )


def lambda_handler(event, context):
    records = event.get("Records", [])
    logger.info("Received %d stream records", len(records))

    relayed = 0
    for record in records:
        change = to_change(record)
        if change is None:
            logger.warning("Skipping record from %s", record.get("eventSourceARN"))
            continue
        sqs.send_message(QueueUrl=queue_url(), MessageBody=change.to_json())
        relayed += 1

    logger.info("Relayed %d order changes", relayed)
    return {"statusCode": 200, "body": json.dumps({"relayed": relayed})}
