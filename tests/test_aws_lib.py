from decimal import Decimal

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from aws_lib.dynamodb_client import DynamoDBClient
from aws_lib.exceptions import AWSError, ConditionFailed, translate_errors
from aws_lib.s3_client import S3Client


def client_error(code, message="boom"):
    return ClientError({"Error": {"Code": code, "Message": message}}, "UpdateItem")


def test_conditional_failures_are_distinguished():
    @translate_errors
    def write():
        raise client_error("ConditionalCheckFailedException", "The conditional request failed")

    with pytest.raises(ConditionFailed) as excinfo:
        write()
    assert excinfo.value.code == "ConditionalCheckFailedException"


def test_client_errors_become_aws_errors():
    @translate_errors
    def read():
        raise client_error("ResourceNotFoundException", "Requested resource not found")

    with pytest.raises(AWSError) as excinfo:
        read()
    assert not isinstance(excinfo.value, ConditionFailed)
    assert str(excinfo.value) == "Requested resource not found"


def test_connection_errors_become_aws_errors():
    @translate_errors
    def read():
        raise EndpointConnectionError(endpoint_url="https://dynamodb.test")

    with pytest.raises(AWSError):
        read()


def test_numbers_are_converted_for_writes():
    ddb = DynamoDBClient()
    converted = ddb._convert_to_decimal({"qty": 3, "price": 12.5, "flag": True, "tags": [1, "a"]})
    assert converted == {"qty": Decimal(3), "price": Decimal("12.5"), "flag": True, "tags": [Decimal(1), "a"]}
    assert converted["flag"] is True


def test_reads_keep_money_exact():
    ddb = DynamoDBClient()
    item = ddb._deserialize({"qty": Decimal("4"), "total": Decimal("19.99"), "nested": {"n": Decimal("2")}})
    assert item == {"qty": 4, "total": Decimal("19.99"), "nested": {"n": 2}}
    assert isinstance(item["qty"], int)


def test_public_url():
    s3 = S3Client(region_name="af-south-1")
    assert s3.public_url("zedbites-meal-images", "recipes/r1/dish.png") == (
        "https://zedbites-meal-images.s3.af-south-1.amazonaws.com/recipes/r1/dish.png"
    )
