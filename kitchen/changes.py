"""
Order change notifications.

DynamoDB streams on the Orders and OrderItems tables are relayed onto an SQS
queue by ``lambda_order_processor``. ``ChangeFeed`` polls that queue and hands
each parsed ``ChangeEvent`` to its subscribers.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from aws_lib.exceptions import AWSError

logger = logging.getLogger(__name__)

ORDERS = "orders"
ORDER_ITEMS = "order_items"

INSERT = "INSERT"
MODIFY = "MODIFY"
REMOVE = "REMOVE"


class MalformedChange(ValueError):
    pass


@dataclass
class ChangeEvent:
    table: str
    event: str
    keys: Dict = field(default_factory=dict)
    new: Optional[Dict] = None
    old: Optional[Dict] = None

    @classmethod
    def from_json(cls, body):
        try:
            data = json.loads(body) if isinstance(body, (str, bytes)) else dict(body)
        except (TypeError, ValueError) as e:
            raise MalformedChange(f"Change body is not JSON: {e}")
        if not isinstance(data, dict):
            raise MalformedChange(f"Change body is not an object: {type(data).__name__}")

        table = data.get("table")
        event = data.get("event")
        if table not in (ORDERS, ORDER_ITEMS):
            raise MalformedChange(f"Unknown table in change: {table!r}")
        if event not in (INSERT, MODIFY, REMOVE):
            raise MalformedChange(f"Unknown change type: {event!r}")
        return cls(
            table=table,
            event=event,
            keys=data.get("keys") or {},
            new=data.get("new"),
            old=data.get("old"),
        )

    def to_json(self):
        return json.dumps({
            "table": self.table,
            "event": self.event,
            "keys": self.keys,
            "new": self.new,
            "old": self.old,
        }, default=str)


class ChangeFeed:
    """Polls the order change queue and dispatches events to subscribers."""

    def __init__(self, sqs, queue_url, batch_size=10):
        self.sqs = sqs
        self.queue_url = queue_url
        self.batch_size = batch_size
        self._subscribers = []

    def subscribe(self, callback):
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def poll(self, wait_seconds=0):
        """
        Receive one batch, dispatch it and delete the messages.
        Returns the number of events dispatched.
        """
        try:
            messages = self.sqs.receive_messages(
                self.queue_url, max_messages=self.batch_size, wait_seconds=wait_seconds
            )
        except AWSError as e:
            logger.error("Could not read order changes: %s", e)
            return 0

        dispatched = 0
        for message in messages:
            try:
                event = ChangeEvent.from_json(message["Body"])
            except MalformedChange as e:
                logger.warning("Dropping malformed change %s: %s", message.get("MessageId"), e)
            else:
                logger.debug("Order change received: %s %s %s", event.table, event.event, event.keys)
                self.dispatch(event)
                dispatched += 1
            self.sqs.delete_message(self.queue_url, message["ReceiptHandle"])
        return dispatched

    def dispatch(self, event):
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber %r failed", callback)
