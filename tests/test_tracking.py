from datetime import timedelta

import pytest

from kitchen.models import now_utc
from kitchen.orders import OrderSync
from kitchen.status import OrderStatus
from kitchen.tracking import WATCH_OPTIONS, DeliveryTracker, DevicePositionSource, Position, TrackerRegistry


class Notes(list):
    def __call__(self, level, text):
        self.append((level, text))


@pytest.fixture
def sync(ddb):
    return OrderSync(ddb, resync_seconds=None)


@pytest.fixture
def dispatched(sync, sample_items):
    order = sync.create_order("Mwila", sample_items)
    sync.advance(order.order_id)
    return sync.advance(order.order_id)


def test_watch_options():
    assert WATCH_OPTIONS.to_json() == {"enableHighAccuracy": True, "timeout": 10000, "maximumAge": 60000}


def test_positions_update_the_order(sync, dispatched):
    source = DevicePositionSource()
    tracker = DeliveryTracker(dispatched.order_id, sync, source, notify=Notes())

    assert tracker.start_tracking()
    assert source.push(Position(-15.41, 28.28))

    assert tracker.current_position == (-15.41, 28.28)
    assert sync.get(dispatched.order_id).current_location.lat == pytest.approx(-15.41)


def test_start_twice_keeps_one_watch(sync, dispatched):
    source = DevicePositionSource()
    tracker = DeliveryTracker(dispatched.order_id, sync, source, notify=Notes())
    tracker.start_tracking()
    watch_id = tracker.watch_id
    tracker.start_tracking()
    assert tracker.watch_id == watch_id


def test_empty_notifier_is_kept(sync, dispatched):
    notes = Notes()
    tracker = DeliveryTracker(dispatched.order_id, sync, DevicePositionSource(), notify=notes)
    assert tracker.notify is notes


def test_no_geolocation_source(sync, dispatched):
    notes = Notes()

    class Unavailable(DevicePositionSource):
        available = False

    tracker = DeliveryTracker(dispatched.order_id, sync, Unavailable(), notify=notes)
    assert tracker.start_tracking() is False
    assert not tracker.is_tracking
    assert notes == [("error", "Geolocation is not supported on this device")]


def test_stop_is_idempotent(sync, dispatched):
    source = DevicePositionSource()
    tracker = DeliveryTracker(dispatched.order_id, sync, source, notify=Notes())
    tracker.start_tracking()
    tracker.stop_tracking()
    tracker.stop_tracking()
    assert not tracker.is_tracking
    assert not source.watching
    assert source.push(Position(1, 1)) is False


def test_old_fixes_are_ignored(sync, dispatched):
    source = DevicePositionSource()
    tracker = DeliveryTracker(dispatched.order_id, sync, source, notify=Notes())
    tracker.start_tracking()

    assert source.push(Position(1, 1, timestamp=now_utc() - timedelta(minutes=5))) is False
    assert sync.get(dispatched.order_id).current_location is None


def test_watch_error_stops_tracking(sync, dispatched):
    notes = Notes()
    source = DevicePositionSource()
    tracker = DeliveryTracker(dispatched.order_id, sync, source, notify=notes)
    tracker.start_tracking()

    source.fail("User denied Geolocation")

    assert not tracker.is_tracking
    assert ("error", "Failed to get current location") in notes


def test_failed_location_write_is_notified(sync, ddb, dispatched):
    notes = Notes()
    source = DevicePositionSource()
    tracker = DeliveryTracker(dispatched.order_id, sync, source, notify=notes)
    tracker.start_tracking()
    ddb.fail("update")

    source.push(Position(1, 1))

    assert ("error", "Failed to update order location") in notes
    assert tracker.is_tracking


def test_mark_delivered(sync, dispatched):
    source = DevicePositionSource()
    tracker = DeliveryTracker(dispatched.order_id, sync, source, notify=Notes())
    tracker.start_tracking()

    order = tracker.mark_delivered()

    assert order.status is OrderStatus.DELIVERED
    assert not tracker.is_tracking


def test_registry_reuses_trackers(sync):
    registry = TrackerRegistry(sync)
    tracker = registry.tracker("o-1")
    assert registry.tracker("o-1") is tracker
    assert registry.existing("o-2") is None

    tracker.start_tracking()
    registry.discard("o-1")
    assert not tracker.is_tracking
    assert registry.existing("o-1") is None
