"""
Delivery tracking.

The driver's browser runs ``navigator.geolocation.watchPosition`` with the
options in ``WATCH_OPTIONS`` and posts every fix to the location endpoint.
Those fixes land in a ``DevicePositionSource``; a ``DeliveryTracker`` holds
the single watch on that source and forwards positions to
``OrderSync.update_location``.
"""
import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from aws_lib.exceptions import AWSError

from .exceptions import KitchenError
from .models import now_utc
from .status import OrderStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchOptions:
    high_accuracy: bool = True
    timeout_ms: int = 10000
    maximum_age_ms: int = 60000

    def to_json(self):
        return {
            "enableHighAccuracy": self.high_accuracy,
            "timeout": self.timeout_ms,
            "maximumAge": self.maximum_age_ms,
        }


WATCH_OPTIONS = WatchOptions()


@dataclass
class Position:
    lat: float
    lng: float
    timestamp: Optional[datetime] = None


class DevicePositionSource:
    """Positions pushed from a driver's device, delivered to at most one watch at a time."""

    available = True

    def __init__(self, clock=now_utc):
        self.clock = clock
        self._ids = itertools.count(1)
        self._watch = None

    def watch(self, on_position, on_error, options=WATCH_OPTIONS):
        watch_id = next(self._ids)
        self._watch = (watch_id, on_position, on_error, options)
        return watch_id

    def clear_watch(self, watch_id):
        if self._watch and self._watch[0] == watch_id:
            self._watch = None

    @property
    def watching(self):
        return self._watch is not None

    def push(self, position):
        """Deliver one fix. Returns False when nobody is watching or the fix is too old."""
        if self._watch is None:
            return False
        _, on_position, _, options = self._watch
        if position.timestamp is not None:
            age = self.clock() - position.timestamp
            if age > timedelta(milliseconds=options.maximum_age_ms):
                logger.info("Ignoring position %.0fs old", age.total_seconds())
                return False
        on_position(position)
        return True

    def fail(self, message):
        if self._watch is None:
            return False
        _, _, on_error, _ = self._watch
        on_error(message)
        return True


class DeliveryTracker:
    def __init__(self, order_id, sync, source, notify=None):
        self.order_id = order_id
        self.sync = sync
        self.source = source
        self.notify = notify if notify is not None else sync.notify
        self.watch_id = None
        self.current_position = None

    @property
    def is_tracking(self):
        return self.watch_id is not None

    def start_tracking(self):
        if self.is_tracking:
            return True
        if self.source is None or not getattr(self.source, "available", False):
            self.notify("error", "Geolocation is not supported on this device")
            return False

        self.watch_id = self.source.watch(self._on_position, self._on_error, WATCH_OPTIONS)
        logger.info("Tracking order %s (watch %s)", self.order_id, self.watch_id)
        self.notify("info", "Now tracking delivery location")
        return True

    def stop_tracking(self):
        if self.watch_id is not None:
            self.source.clear_watch(self.watch_id)
            logger.info("Stopped tracking order %s", self.order_id)
        self.watch_id = None

    def mark_delivered(self):
        self.stop_tracking()
        return self.sync.update_status(self.order_id, OrderStatus.DELIVERED)

    def _on_position(self, position):
        self.current_position = (position.lat, position.lng)
        try:
            self.sync.update_location(self.order_id, position.lat, position.lng)
        except (KitchenError, AWSError) as e:
            logger.error("Error updating location of order %s: %s", self.order_id, e)
            self.notify("error", "Failed to update order location")

    def _on_error(self, message):
        logger.warning("Geolocation error for order %s: %s", self.order_id, message)
        self.stop_tracking()
        self.notify("error", "Failed to get current location")


class TrackerRegistry:
    """One tracker (and one device source) per order in delivery."""

    def __init__(self, sync, source_factory=DevicePositionSource):
        self.sync = sync
        self.source_factory = source_factory
        self._trackers = {}
        self._lock = threading.Lock()

    def tracker(self, order_id):
        with self._lock:
            if order_id not in self._trackers:
                self._trackers[order_id] = DeliveryTracker(order_id, self.sync, self.source_factory())
            return self._trackers[order_id]

    def existing(self, order_id):
        return self._trackers.get(order_id)

    def discard(self, order_id):
        with self._lock:
            tracker = self._trackers.pop(order_id, None)
        if tracker:
            tracker.stop_tracking()
