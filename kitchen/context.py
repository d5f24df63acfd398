"""
Per-process wiring of AWS clients and kitchen services.

``build_context`` runs once when the kitchen app is ready; views and
commands reach the result through ``kitchen_context()`` instead of
module-level client handles. Tests install their own context.
"""
from dataclasses import dataclass
from typing import Any, Optional

from django.apps import apps
from django.conf import settings

import aws_config
from aws_lib.dynamodb_client import DynamoDBClient
from aws_lib.s3_client import S3Client
from aws_lib.ses_client import SESClient
from aws_lib.sns_client import SNSClient
from aws_lib.sqs_client import SQSClient

from .changes import ChangeFeed
from .metrics import build_provider
from .orders import OrderSync
from .recipients import EmailLogStore, RecipientStore, ReportType
from .reports import JOBS
from .tracking import TrackerRegistry


@dataclass
class KitchenContext:
    ddb: Any
    sqs: Any
    sns: Any
    s3: Any
    ses: Any
    orders: OrderSync
    trackers: TrackerRegistry
    recipients: RecipientStore
    email_logs: EmailLogStore
    metrics: Any
    change_queue_url: Optional[str] = None
    alert_topic_arn: Optional[str] = None
    media_bucket: str = aws_config.MEDIA_BUCKET_NAME
    report_sender: str = aws_config.REPORT_SENDER
    _feed: Optional[ChangeFeed] = None

    def report_job(self, report_type):
        job_class = JOBS[ReportType.parse(report_type)]
        return job_class(self.recipients, self.email_logs, self.ses, self.metrics, from_address=self.report_sender)

    def change_feed(self):
        """The order change feed, attached to ``orders`` on first use."""
        if self._feed is None:
            url = self.change_queue_url or aws_config.get_sqs_url()
            self._feed = ChangeFeed(self.sqs, url)
            self.orders.attach(self._feed)
        return self._feed

    def topic_arn(self):
        if self.alert_topic_arn is None:
            self.alert_topic_arn = aws_config.get_sns_topic_arn()
        return self.alert_topic_arn


def build_context(ddb=None, sqs=None, sns=None, s3=None, ses=None, metrics=None):
    ddb = ddb or DynamoDBClient()
    orders = OrderSync(ddb, resync_seconds=settings.ORDER_RESYNC_SECONDS)
    return KitchenContext(
        ddb=ddb,
        sqs=sqs or SQSClient(),
        sns=sns or SNSClient(),
        s3=s3 or S3Client(),
        ses=ses or SESClient(),
        orders=orders,
        trackers=TrackerRegistry(orders),
        recipients=RecipientStore(ddb),
        email_logs=EmailLogStore(ddb),
        metrics=metrics or build_provider(settings.REPORT_METRICS_PROVIDER, ddb),
    )


def kitchen_context():
    return apps.get_app_config("kitchen").context
