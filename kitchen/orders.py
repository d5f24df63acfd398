"""
Order synchronization.

``OrderSync`` keeps a process-local list of orders (newest first) in step
with the Orders/OrderItems tables and is the only place orders are written.
Changes made elsewhere reach it as ``ChangeEvent``s from the change feed and
are applied row by row; every order carries a ``revision`` counter so an
older image never replaces a newer one. A full refetch is the fallback when
an event cannot be applied and runs periodically as a resync.
"""
import logging
import threading
import time
import uuid
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from aws_config import ORDER_ITEMS_TABLE, ORDERS_TABLE
from aws_lib.exceptions import AWSError, ConditionFailed

from . import changes
from .exceptions import InvalidTransition, OrderNotFound, StaleOrder, ValidationFailed
from .models import Location, Order, OrderItem, now_utc, to_money
from .status import OrderStatus, check_transition, next_status

logger = logging.getLogger(__name__)

# Estimated delivery: base preparation time plus time per order line
BASE_PREP_MINUTES = 15
MINUTES_PER_LINE = 8


def log_notifier(level, text):
    logger.log(logging.ERROR if level == "error" else logging.INFO, text)


def make_order_number(created_at, order_id):
    return f"ZB-{created_at:%Y%m%d}-{order_id.replace('-', '')[:6].upper()}"


def clean_items(items):
    """Validate submitted line items and return them as (name, quantity, price) tuples."""
    lines = []
    for raw in items or []:
        name = str(raw.get("item_name", raw.get("name", ""))).strip()
        if not name:
            raise ValidationFailed("Every item needs a name")

        quantity = raw.get("quantity", raw.get("qty"))
        if isinstance(quantity, bool) or not isinstance(quantity, (int, str)):
            raise ValidationFailed(f"Invalid quantity for {name}")
        try:
            quantity = int(quantity)
        except ValueError:
            raise ValidationFailed(f"Invalid quantity for {name}")
        if quantity <= 0:
            raise ValidationFailed(f"Quantity for {name} must be a positive whole number")

        try:
            price = to_money(raw.get("price"))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationFailed(f"Invalid price for {name}")
        if price < 0:
            raise ValidationFailed(f"Price for {name} cannot be negative")

        lines.append((name, quantity, price))

    if not lines:
        raise ValidationFailed("Add at least one item to the order")
    return lines


def order_total(lines):
    return to_money(sum((price * quantity for _, quantity, price in lines), Decimal("0")))


class OrderSync:
    def __init__(self, ddb, orders_table=ORDERS_TABLE, items_table=ORDER_ITEMS_TABLE,
                 notify=log_notifier, resync_seconds=60, clock=time.monotonic):
        self.ddb = ddb
        self.orders_table = orders_table
        self.items_table = items_table
        self.notify = notify
        self.resync_seconds = resync_seconds
        self.clock = clock

        self._orders = []
        self._loaded = False
        self._last_sync = None
        self._fetch_token = 0
        self._installed_token = 0
        self._listeners = []
        self._lock = threading.Lock()

    # -----------------------------
    # Reading
    # -----------------------------
    def orders(self, resync=True, notify=None):
        """Current orders, newest first. Loads on first use and resyncs when due."""
        if not self._loaded or (resync and self._resync_due()):
            self.fetch_all(notify=notify)
        return list(self._orders)

    def by_status(self, status, notify=None):
        orders = self.orders(notify=notify)
        if status in (None, "", "all"):
            return orders
        status = OrderStatus.parse(status)
        return [o for o in orders if o.status is status]

    def get(self, order_id):
        for order in self._orders:
            if order.order_id == order_id:
                return order
        return None

    def fetch_all(self, notify=None):
        """
        Reload every order and its items. On failure the previous list is
        kept and the notifier is told; nothing is retried.
        """
        with self._lock:
            self._fetch_token += 1
            token = self._fetch_token

        try:
            rows = self.ddb.scan(self.orders_table)
            rows.sort(key=lambda r: r.get("created_at") or r.get("order_time") or "", reverse=True)
            orders = []
            for row in rows:
                items = [OrderItem.from_item(i) for i in self.ddb.query(self.items_table, "order_id", row["order_id"])]
                orders.append(Order.from_item(row, items))
        except AWSError as e:
            logger.error("Error fetching orders: %s", e)
            (notify or self.notify)("error", "Failed to fetch orders")
            return list(self._orders)

        self._install(token, orders)
        return list(self._orders)

    # -----------------------------
    # Writing
    # -----------------------------
    def create_order(self, customer_name, items, customer_phone="", customer_address="", created_by=None):
        customer_name = (customer_name or "").strip()
        if not customer_name:
            raise ValidationFailed("Customer name is required")
        lines = clean_items(items)

        now = now_utc()
        order_id = str(uuid.uuid4())
        order = Order(
            order_id=order_id,
            order_number=make_order_number(now, order_id),
            customer_name=customer_name,
            customer_phone=(customer_phone or "").strip(),
            customer_address=(customer_address or "").strip(),
            total_amount=order_total(lines),
            status=OrderStatus.PLACED,
            order_time=now,
            created_at=now,
            estimated_delivery=now + timedelta(minutes=BASE_PREP_MINUTES + MINUTES_PER_LINE * len(lines)),
            revision=1,
            created_by=created_by,
            items=[
                OrderItem(order_id=order_id, line_no=n, item_name=name, quantity=qty, price=price)
                for n, (name, qty, price) in enumerate(lines, start=1)
            ],
        )

        self.ddb.put(self.orders_table, order.to_item(), unique_on="order_id")
        try:
            self.ddb.batch_put(self.items_table, [i.to_item() for i in order.items])
        except AWSError:
            logger.error("Item insert failed for order %s, removing the order", order.order_number)
            try:
                self.ddb.delete(self.orders_table, {"order_id": order_id})
            except AWSError:
                logger.exception("Could not remove orphaned order %s", order_id)
            raise

        logger.info("Order %s created, total %s", order.order_number, order.total_amount)
        self._apply_order(order)
        return order

    def update_status(self, order_id, new_status):
        target = OrderStatus.parse(new_status)
        current = OrderStatus.parse(self._get_row(order_id)["status"])
        check_transition(current, target)
        return self._write(order_id, {"status": target.value}, expected={"status": current.value})

    def advance(self, order_id):
        current = OrderStatus.parse(self._get_row(order_id)["status"])
        target = next_status(current)
        if target is None:
            raise InvalidTransition(f"Order is already {current.value}")
        return self._write(order_id, {"status": target.value}, expected={"status": current.value})

    def update_location(self, order_id, lat, lng):
        try:
            lat, lng = float(lat), float(lng)
        except (TypeError, ValueError):
            raise ValidationFailed("Latitude and longitude must be numbers")
        if not -90 <= lat <= 90 or not -180 <= lng <= 180:
            raise ValidationFailed("Location is out of range")

        location = Location(lat=lat, lng=lng, timestamp=now_utc())
        return self._write(order_id, {"current_location": location.to_item()})

    # -----------------------------
    # Change notifications
    # -----------------------------
    def attach(self, feed):
        """Apply every event of ``feed`` to the local list. Returns the unsubscribe callable."""
        return feed.subscribe(self.apply_change)

    def subscribe(self, listener):
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def apply_change(self, event):
        try:
            if event.table == changes.ORDERS:
                self._apply_order_change(event)
            else:
                self._apply_item_change(event)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Could not apply %s change on %s (%s), refetching", event.event, event.table, e)
            self.fetch_all()

    def _apply_order_change(self, event):
        if event.event == changes.REMOVE:
            self._remove_order(event.keys["order_id"])
            return
        if not event.new:
            raise ValueError("change has no new image")
        local = self.get(event.new["order_id"])
        self._apply_order(Order.from_item(event.new, local.items if local else ()))

    def _apply_item_change(self, event):
        if event.event == changes.REMOVE:
            order_id, line_no = event.keys["order_id"], int(event.keys["line_no"])
            self._update_items(order_id, lambda items: [i for i in items if i.line_no != line_no])
            return
        if not event.new:
            raise ValueError("change has no new image")

        item = OrderItem.from_item(event.new)
        if self.get(item.order_id) is None:
            # Items can arrive before their order
            self.fetch_all()
            return
        self._update_items(
            item.order_id,
            lambda items: sorted([i for i in items if i.line_no != item.line_no] + [item], key=lambda i: i.line_no),
        )

    # -----------------------------
    # Internals
    # -----------------------------
    def _get_row(self, order_id):
        row = self.ddb.get(self.orders_table, {"order_id": order_id})
        if not row:
            raise OrderNotFound(f"Order {order_id} not found")
        return row

    def _write(self, order_id, fields, expected=None):
        fields = dict(fields, updated_at=now_utc().isoformat())
        try:
            row = self.ddb.update(
                self.orders_table, {"order_id": order_id}, fields, increment="revision", expected=expected
            )
        except ConditionFailed:
            if not self.ddb.get(self.orders_table, {"order_id": order_id}):
                raise OrderNotFound(f"Order {order_id} not found")
            raise StaleOrder(f"Order {order_id} was changed by someone else, reload and try again")

        local = self.get(order_id)
        order = Order.from_item(row, local.items if local else ())
        self._apply_order(order)
        return order

    def _resync_due(self):
        if self.resync_seconds is None or self._last_sync is None:
            return False
        return self.clock() - self._last_sync >= self.resync_seconds

    def _install(self, token, orders):
        with self._lock:
            if token < self._installed_token:
                logger.debug("Discarding fetch %s, fetch %s already installed", token, self._installed_token)
                return False
            # Keep rows that incremental events moved past the fetched image
            local = {o.order_id: o for o in self._orders}
            merged = []
            for order in orders:
                mine = local.get(order.order_id)
                merged.append(mine if mine and mine.revision > order.revision else order)
            self._orders = merged
            self._installed_token = token
            self._loaded = True
            self._last_sync = self.clock()
            snapshot = list(self._orders)
        self._emit(snapshot)
        return True

    def _apply_order(self, order):
        with self._lock:
            current = next((o for o in self._orders if o.order_id == order.order_id), None)
            if current is not None and current.revision >= order.revision:
                return False
            others = [o for o in self._orders if o.order_id != order.order_id]
            self._orders = sorted(others + [order], key=lambda o: o.created_at, reverse=True)
            snapshot = list(self._orders)
        self._emit(snapshot)
        return True

    def _update_items(self, order_id, change):
        with self._lock:
            order = next((o for o in self._orders if o.order_id == order_id), None)
            if order is None:
                return False
            order.items = change(order.items)
            snapshot = list(self._orders)
        self._emit(snapshot)
        return True

    def _remove_order(self, order_id):
        with self._lock:
            remaining = [o for o in self._orders if o.order_id != order_id]
            if len(remaining) == len(self._orders):
                return False
            self._orders = remaining
            snapshot = list(self._orders)
        self._emit(snapshot)
        return True

    def _emit(self, snapshot):
        for listener in list(self._listeners):
            listener(snapshot)
