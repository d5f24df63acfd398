from .base_client import AWSBaseClient
from .exceptions import translate_errors


class SQSClient(AWSBaseClient):
    def __init__(self, **kwargs):
        super().__init__("sqs", **kwargs)

    @translate_errors
    def send_message(self, queue_url, body):
        return self.client.send_message(
            QueueUrl=queue_url,
            MessageBody=body
        )

    @translate_errors
    def receive_messages(self, queue_url, max_messages=1, wait_seconds=5):
        resp = self.client.receive_message(
            QueueUrl=queue_url,
            MaxNumberOfMessages=max_messages,
            WaitTimeSeconds=wait_seconds
        )
        return resp.get("Messages", [])

    @translate_errors
    def delete_message(self, queue_url, receipt_handle):
        return self.client.delete_message(
            QueueUrl=queue_url,
            ReceiptHandle=receipt_handle
        )
