from .base_client import AWSBaseClient
from .exceptions import translate_errors


class S3Client(AWSBaseClient):
    def __init__(self, **kwargs):
        super().__init__("s3", **kwargs)

    @translate_errors
    def upload_fileobj(self, bucket, key, fileobj, content_type=None):
        """Upload a file object under ``key`` and return its public URL."""
        extra = {"ContentType": content_type} if content_type else None
        self.client.upload_fileobj(fileobj, bucket, key, ExtraArgs=extra)
        return self.public_url(bucket, key)

    def public_url(self, bucket, key):
        return f"https://{bucket}.s3.{self.region_name}.amazonaws.com/{key}"
