# aws_config.py
import os

import boto3
from botocore.config import Config

# -----------------------------
# AWS region & boto3 config
# -----------------------------
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

boto3_config = Config(
    region_name=AWS_REGION,
    retries={"max_attempts": 3, "mode": "standard"}
)

# -----------------------------
# DynamoDB tables
# -----------------------------
ORDERS_TABLE = os.getenv("DDB_ORDERS_TABLE", "Orders")
ORDER_ITEMS_TABLE = os.getenv("DDB_ORDER_ITEMS_TABLE", "OrderItems")
EMAIL_SETTINGS_TABLE = os.getenv("DDB_EMAIL_SETTINGS_TABLE", "EmailSettings")
EMAIL_LOGS_TABLE = os.getenv("DDB_EMAIL_LOGS_TABLE", "EmailLogs")
INVENTORY_TABLE = os.getenv("DDB_INVENTORY_TABLE", "Inventory")
RECIPES_TABLE = os.getenv("DDB_RECIPES_TABLE", "Recipes")
EXPENSES_TABLE = os.getenv("DDB_EXPENSES_TABLE", "Expenses")
SALES_TABLE = os.getenv("DDB_SALES_TABLE", "Sales")

# table name -> (partition key, sort key)
TABLE_KEYS = {
    ORDERS_TABLE: ("order_id", None),
    ORDER_ITEMS_TABLE: ("order_id", "line_no"),
    EMAIL_SETTINGS_TABLE: ("id", None),
    EMAIL_LOGS_TABLE: ("id", None),
    INVENTORY_TABLE: ("item_id", None),
    RECIPES_TABLE: ("recipe_id", None),
    EXPENSES_TABLE: ("expense_id", None),
    SALES_TABLE: ("sale_id", None),
}

# Tables whose stream feeds the order change queue
STREAMED_TABLES = (ORDERS_TABLE, ORDER_ITEMS_TABLE)

# -----------------------------
# SQS, SNS, S3 & SES configuration
# -----------------------------
ORDER_CHANGES_QUEUE_NAME = os.getenv("SQS_ORDER_CHANGES_QUEUE_NAME", "zedbites-order-changes")
ALERT_TOPIC_NAME = os.getenv("SNS_ALERT_TOPIC_NAME", "zedbites-stock-alerts")
MEDIA_BUCKET_NAME = os.getenv("S3_MEDIA_BUCKET", "zedbites-meal-images")
REPORT_SENDER = os.getenv("REPORT_SENDER", "ZedBites Reports <zedbites@gmail.com>")


# -----------------------------
# AWS clients/resources
# -----------------------------
def dynamodb_resource():
    return boto3.resource("dynamodb", region_name=AWS_REGION, config=boto3_config)

def sqs_client():
    return boto3.client("sqs", region_name=AWS_REGION, config=boto3_config)

def sns_client():
    return boto3.client("sns", region_name=AWS_REGION, config=boto3_config)


def get_sqs_url(queue_name=ORDER_CHANGES_QUEUE_NAME):
    sqs = sqs_client()
    try:
        resp = sqs.get_queue_url(QueueName=queue_name)
        return resp["QueueUrl"]
    except sqs.exceptions.QueueDoesNotExist:
        # Queue does not exist → create it
        resp = sqs.create_queue(
            QueueName=queue_name,
            Attributes={
                "DelaySeconds": "0",
                "MessageRetentionPeriod": "86400"  # 1 day
            }
        )
        return resp["QueueUrl"]


def get_sns_topic_arn(topic_name=ALERT_TOPIC_NAME):
    """
    Look the topic up by name, following list_topics pagination.
    Creates the topic when it does not exist yet.
    """
    sns = sns_client()
    next_token = None
    while True:
        if next_token:
            response = sns.list_topics(NextToken=next_token)
        else:
            response = sns.list_topics()

        for topic in response.get("Topics", []):
            if topic["TopicArn"].endswith(f":{topic_name}"):
                return topic["TopicArn"]

        next_token = response.get("NextToken")
        if not next_token:
            break

    # Topic does not exist → create it
    resp = sns.create_topic(Name=topic_name)
    return resp["TopicArn"]
