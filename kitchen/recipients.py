"""Email recipients and the delivery log, both stored in DynamoDB."""
import logging
import uuid
from enum import Enum

from django.core.exceptions import ValidationError
from django.core.validators import validate_email

from aws_config import EMAIL_LOGS_TABLE, EMAIL_SETTINGS_TABLE

from .exceptions import DuplicateRecipient, RecipientNotFound, ValidationFailed
from .models import EmailLog, EmailRecipient, now_utc, to_iso

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 50


class ReportType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        value = str(value or "").strip().lower()
        value = {"daily_data": "daily", "weekly_report": "weekly"}.get(value, value)
        try:
            return cls(value)
        except ValueError:
            raise ValidationFailed("email_type must be 'daily' or 'weekly'")


def clean_email(value):
    email = str(value or "").strip().lower()
    try:
        validate_email(email)
    except ValidationError:
        raise ValidationFailed(f"Invalid email address: {value!r}")
    return email


class RecipientStore:
    UPDATABLE = ("email_type", "recipient_email", "recipient_name", "is_active")

    def __init__(self, ddb, table=EMAIL_SETTINGS_TABLE):
        self.ddb = ddb
        self.table = table

    def all(self):
        recipients = [EmailRecipient.from_item(i) for i in self.ddb.scan(self.table)]
        # email_type ascending, newest first within a type
        recipients.sort(key=lambda r: to_iso(r.created_at) or "", reverse=True)
        recipients.sort(key=lambda r: r.email_type)
        return recipients

    def active(self, report_type):
        report_type = ReportType.parse(report_type)
        items = self.ddb.scan(self.table, filters={"email_type": report_type.value, "is_active": True})
        return [EmailRecipient.from_item(i) for i in items]

    def get(self, recipient_id):
        item = self.ddb.get(self.table, {"id": recipient_id})
        if not item:
            raise RecipientNotFound(f"Recipient {recipient_id} not found")
        return EmailRecipient.from_item(item)

    def create(self, email_type, recipient_email, recipient_name=None, created_by=None):
        report_type = ReportType.parse(email_type)
        email = clean_email(recipient_email)
        self._ensure_unique(report_type.value, email)

        recipient = EmailRecipient(
            id=str(uuid.uuid4()),
            email_type=report_type.value,
            recipient_email=email,
            recipient_name=(recipient_name or "").strip() or None,
            is_active=True,
            created_at=now_utc(),
            created_by=created_by,
        )
        self.ddb.put(self.table, recipient.to_item(), unique_on="id")
        logger.info("Added %s recipient %s", recipient.email_type, recipient.recipient_email)
        return recipient

    def update(self, recipient_id, **changes):
        if not recipient_id:
            raise ValidationFailed("Recipient id is required")
        unknown = set(changes) - set(self.UPDATABLE)
        if unknown:
            raise ValidationFailed(f"Cannot update fields: {', '.join(sorted(unknown))}")

        current = self.get(recipient_id)
        fields = {}
        if "email_type" in changes:
            fields["email_type"] = ReportType.parse(changes["email_type"]).value
        if "recipient_email" in changes:
            fields["recipient_email"] = clean_email(changes["recipient_email"])
        if "recipient_name" in changes:
            fields["recipient_name"] = (changes["recipient_name"] or "").strip() or None
        if "is_active" in changes:
            if not isinstance(changes["is_active"], bool):
                raise ValidationFailed("is_active must be true or false")
            fields["is_active"] = changes["is_active"]
        if not fields:
            return current

        email_type = fields.get("email_type", current.email_type)
        email = fields.get("recipient_email", current.recipient_email)
        if (email_type, email) != (current.email_type, current.recipient_email):
            self._ensure_unique(email_type, email)

        item = self.ddb.update(self.table, {"id": recipient_id}, fields)
        return EmailRecipient.from_item(item)

    def delete(self, recipient_id):
        if not recipient_id:
            raise ValidationFailed("Recipient id is required")
        self.ddb.delete(self.table, {"id": recipient_id})
        logger.info("Removed recipient %s", recipient_id)

    def _ensure_unique(self, email_type, email):
        # TODO: move to a conditional write on a (type, email) guard item so two concurrent creates cannot both pass
        existing = self.ddb.scan(self.table, filters={"email_type": email_type, "recipient_email": email})
        if existing:
            raise DuplicateRecipient(f"{email} is already subscribed to the {email_type} report")


class EmailLogStore:
    def __init__(self, ddb, table=EMAIL_LOGS_TABLE):
        self.ddb = ddb
        self.table = table

    def record(self, email_type, recipient_email, subject, status, data_snapshot, error_message=None):
        log = EmailLog(
            id=str(uuid.uuid4()),
            email_type=email_type,
            recipient_email=recipient_email,
            subject=subject,
            status=status,
            sent_at=now_utc(),
            data_snapshot=data_snapshot,
            error_message=error_message,
        )
        self.ddb.put(self.table, log.to_item())
        return log

    def latest(self, limit=DEFAULT_LOG_LIMIT):
        logs = [EmailLog.from_item(i) for i in self.ddb.scan(self.table)]
        logs.sort(key=lambda log: log.sent_at, reverse=True)
        return logs[:limit]
