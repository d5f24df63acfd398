from .base_client import AWSBaseClient
from .exceptions import translate_errors


class SNSClient(AWSBaseClient):
    def __init__(self, **kwargs):
        super().__init__("sns", **kwargs)

    @translate_errors
    def publish(self, topic_arn, message, subject=None):
        kwargs = {"TopicArn": topic_arn, "Message": message}
        if subject:
            kwargs["Subject"] = subject
        return self.client.publish(**kwargs)
