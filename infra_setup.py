# infra_setup.py
import os

import boto3
from botocore.exceptions import ClientError

from aws_config import (
    ALERT_TOPIC_NAME,
    AWS_REGION,
    MEDIA_BUCKET_NAME,
    ORDER_CHANGES_QUEUE_NAME,
    REPORT_SENDER,
    STREAMED_TABLES,
    TABLE_KEYS,
    boto3_config,
    dynamodb_resource,
    sns_client,
    sqs_client,
)

# Attribute types of key attributes; everything else is a string key
NUMERIC_KEYS = {"line_no"}

ddb = dynamodb_resource()
sqs = sqs_client()
sns = sns_client()
s3 = boto3.client("s3", region_name=AWS_REGION, config=boto3_config)
ses = boto3.client("ses", region_name=AWS_REGION, config=boto3_config)


# --- DynamoDB Tables ---
def create_table(table_name, partition_key, sort_key=None, stream=False):
    """Create a DynamoDB table if it doesn't exist."""
    try:
        table = ddb.Table(table_name)
        table.load()
        print(f"Table '{table_name}' already exists.")
        return table
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise

    keys = [(partition_key, "HASH")]
    if sort_key:
        keys.append((sort_key, "RANGE"))

    params = {
        "TableName": table_name,
        "AttributeDefinitions": [
            {"AttributeName": name, "AttributeType": "N" if name in NUMERIC_KEYS else "S"}
            for name, _ in keys
        ],
        "KeySchema": [{"AttributeName": name, "KeyType": kind} for name, kind in keys],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if stream:
        params["StreamSpecification"] = {"StreamEnabled": True, "StreamViewType": "NEW_AND_OLD_IMAGES"}

    table = ddb.create_table(**params)
    table.wait_until_exists()
    print(f"Created table '{table_name}' successfully.")
    return table


# --- SQS Queue ---
def create_queue(queue_name):
    resp = sqs.create_queue(
        QueueName=queue_name,
        Attributes={"MessageRetentionPeriod": "86400"},
    )
    print(f"Created queue '{queue_name}': {resp['QueueUrl']}")
    return resp['QueueUrl']


# --- SNS Topic ---
def create_topic(topic_name):
    resp = sns.create_topic(Name=topic_name)
    print(f"Created SNS topic '{topic_name}': {resp['TopicArn']}")
    return resp['TopicArn']


# --- S3 Bucket ---
def create_bucket(bucket_name, region=AWS_REGION):
    existing_buckets = [b['Name'] for b in s3.list_buckets().get('Buckets', [])]
    if bucket_name in existing_buckets:
        print(f"S3 bucket '{bucket_name}' already exists.")
        return bucket_name

    if region == "us-east-1":
        s3.create_bucket(Bucket=bucket_name)
    else:
        s3.create_bucket(
            Bucket=bucket_name,
            CreateBucketConfiguration={'LocationConstraint': region}
        )
    print(f"Created S3 bucket '{bucket_name}' in region '{region}'.")
    return bucket_name


# --- SES sender ---
def verify_sender(sender):
    address = sender.rsplit("<", 1)[-1].rstrip(">").strip()
    ses.verify_email_identity(EmailAddress=address)
    print(f"Verification email sent to '{address}'.")
    return address


# --- Main setup ---
if __name__ == "__main__":
    for name, (partition_key, sort_key) in TABLE_KEYS.items():
        create_table(name, partition_key, sort_key, stream=name in STREAMED_TABLES)

    QUEUE_URL = create_queue(ORDER_CHANGES_QUEUE_NAME)
    TOPIC_ARN = create_topic(ALERT_TOPIC_NAME)
    BUCKET_NAME = create_bucket(MEDIA_BUCKET_NAME)
    if os.getenv("SES_VERIFY_SENDER", "true").lower() == "true":
        verify_sender(REPORT_SENDER)

    print("\nInfrastructure setup completed successfully.")
    print(f"Order changes Queue URL: {QUEUE_URL}")
    print(f"SNS Topic ARN: {TOPIC_ARN}")
    print(f"S3 Bucket Name: {BUCKET_NAME}")
