"""
Daily and weekly report emails.

A run loads the active recipients of its report type, takes one metrics
snapshot, then renders, sends and logs one email per recipient. A failed
send is logged as a failed EmailLog row and never stops the other
recipients, and neither does a failed log write. Only failures outside
the per-recipient loop abort the run.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from django.template.loader import render_to_string

from aws_config import REPORT_SENDER
from aws_lib.exceptions import AWSError

from .models import EmailLog
from .recipients import ReportType

logger = logging.getLogger(__name__)


@dataclass
class ReportResult:
    message: str
    successful: int = 0
    failed: int = 0
    data: Optional[Dict] = None
    errors: Dict[str, str] = field(default_factory=dict)

    def to_json(self):
        body = {"message": self.message}
        if self.data is not None:
            body.update(successful=self.successful, failed=self.failed, data=self.data)
        return body


class ReportJob:
    report_type = None
    template_name = None

    def __init__(self, recipients, logs, sender, metrics, from_address=REPORT_SENDER):
        self.recipients = recipients
        self.logs = logs
        self.sender = sender
        self.metrics = metrics
        self.from_address = from_address

    def run(self, scheduled=False, manual=False, today=None):
        trigger = "scheduled" if scheduled else "manual" if manual else "unflagged"
        logger.info("%s report job started (%s)", self.report_type.value.capitalize(), trigger)

        recipients = self.recipients.active(self.report_type)
        if not recipients:
            logger.info("No active recipients found for %s reports", self.report_type.value)
            return ReportResult(message="No active recipients found")

        snapshot = self.collect(today)
        data = snapshot.to_snapshot()
        subject = self.subject(snapshot)
        logger.info("%s report data: %s", self.report_type.value.capitalize(), data)

        result = ReportResult(message=f"{self.report_type.value.capitalize()} report emails processed", data=data)
        for recipient in recipients:
            try:
                html = render_to_string(self.template_name, {"report": snapshot, "recipient": recipient})
                message_id = self.sender.send_html(self.from_address, [recipient.recipient_email], subject, html)
            except Exception as e:
                logger.error("Failed to send %s report to %s: %s", self.report_type.value, recipient.recipient_email, e)
                self._record(recipient, subject, EmailLog.FAILED, data, error_message=str(e) or e.__class__.__name__)
                result.failed += 1
                result.errors[recipient.recipient_email] = str(e)
            else:
                logger.info("Report sent to %s (%s)", recipient.recipient_email, message_id)
                self._record(recipient, subject, EmailLog.SUCCESS, data)
                result.successful += 1

        logger.info("%s report job completed: %d successful, %d failed",
                    self.report_type.value.capitalize(), result.successful, result.failed)
        return result

    def _record(self, recipient, subject, status, data, error_message=None):
        try:
            self.logs.record(
                self.report_type.value, recipient.recipient_email, subject, status, data, error_message=error_message
            )
        except AWSError:
            logger.exception("Could not log %s report email to %s", self.report_type.value, recipient.recipient_email)

    def collect(self, today=None):
        raise NotImplementedError

    def subject(self, snapshot):
        raise NotImplementedError


class DailyReportJob(ReportJob):
    report_type = ReportType.DAILY
    template_name = "emails/daily_report.html"

    def collect(self, today=None):
        return self.metrics.daily(today)

    def subject(self, snapshot):
        return f"ZedBites Daily Report - {snapshot.date}"


class WeeklyReportJob(ReportJob):
    report_type = ReportType.WEEKLY
    template_name = "emails/weekly_report.html"

    def collect(self, today=None):
        return self.metrics.weekly(today)

    def subject(self, snapshot):
        return f"ZedBites Weekly Business Report - Week of {snapshot.week_start}"


JOBS = {
    ReportType.DAILY: DailyReportJob,
    ReportType.WEEKLY: WeeklyReportJob,
}
