from functools import wraps

from botocore.exceptions import BotoCoreError, ClientError


class AWSError(Exception):
    """A call to an AWS service failed."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class ConditionFailed(AWSError):
    """A DynamoDB conditional write found the item in an unexpected state."""


def translate_errors(func):
    """Re-raise botocore failures as AWSError so callers never import botocore."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            message = e.response.get("Error", {}).get("Message") or str(e)
            if code == "ConditionalCheckFailedException":
                raise ConditionFailed(message, code=code) from e
            raise AWSError(message, code=code) from e
        except BotoCoreError as e:
            raise AWSError(str(e)) from e

    return wrapper
