from .base_client import AWSBaseClient
from .exceptions import translate_errors


class SESClient(AWSBaseClient):
    def __init__(self, **kwargs):
        super().__init__("ses", **kwargs)

    @translate_errors
    def send_html(self, sender, to, subject, html):
        """Send one HTML email. Returns the SES message id."""
        resp = self.client.send_email(
            Source=sender,
            Destination={"ToAddresses": list(to)},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Html": {"Data": html, "Charset": "UTF-8"}},
            },
        )
        return resp["MessageId"]
