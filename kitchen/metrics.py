"""
Metrics snapshots for the report emails.

``StoreMetricsProvider`` aggregates the order, sales, inventory and recipe
tables. ``PlaceholderMetricsProvider`` produces randomized demo numbers for
environments without real trading data.
"""
import random
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from django.utils import timezone

from aws_config import INVENTORY_TABLE, ORDER_ITEMS_TABLE, ORDERS_TABLE, RECIPES_TABLE, SALES_TABLE

from .models import InventoryItem, Order, OrderItem, Recipe, to_money

TOP_ITEMS = 5


@dataclass
class DailyMetrics:
    date: str
    total_orders: int
    total_revenue: Decimal
    inventory_alerts: int
    active_recipes: int

    def to_snapshot(self):
        data = asdict(self)
        data["total_revenue"] = float(self.total_revenue)
        return data


@dataclass
class WeeklyMetrics:
    week_start: str
    week_end: str
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    inventory_turnover: int
    revenue_growth: float
    order_growth: float
    top_selling_items: List[str] = field(default_factory=list)
    customer_satisfaction: Optional[int] = None

    @property
    def average_daily_orders(self):
        return round(self.total_orders / 7)

    @property
    def needs_attention(self):
        return self.revenue_growth < 0 or self.order_growth < 0 or self.inventory_turnover < 70

    def to_snapshot(self):
        data = asdict(self)
        data["total_revenue"] = float(self.total_revenue)
        data["average_order_value"] = float(self.average_order_value)
        data["revenue_growth"] = round(self.revenue_growth, 2)
        data["order_growth"] = round(self.order_growth, 2)
        return data


def previous_week(today):
    """Sunday..Saturday of the week ending on the most recent Saturday (today, on a Saturday)."""
    days_since_saturday = (today.weekday() - 5) % 7
    week_end = today - timedelta(days=days_since_saturday)
    return week_end - timedelta(days=6), week_end


def growth(current, previous):
    if not previous:
        return 0.0
    return float((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100)


class PlaceholderMetricsProvider:
    """Randomized numbers in the ranges of a small restaurant."""

    SAMPLE_TOP_ITEMS = ["Burger Special", "Fish & Chips", "Caesar Salad", "Pasta Carbonara", "Chicken Wings"]

    def __init__(self, rng=None):
        self.rng = rng or random.Random()

    def daily(self, today=None):
        today = today or timezone.localdate()
        return DailyMetrics(
            date=today.isoformat(),
            total_orders=self.rng.randint(20, 69),
            total_revenue=Decimal(self.rng.randint(1000, 5999)),
            inventory_alerts=self.rng.randint(0, 4),
            active_recipes=self.rng.randint(30, 49),
        )

    def weekly(self, today=None):
        start, end = previous_week(today or timezone.localdate())
        orders = self.rng.randint(150, 349)
        revenue = Decimal(self.rng.randint(15000, 39999))
        return WeeklyMetrics(
            week_start=start.isoformat(),
            week_end=end.isoformat(),
            total_orders=orders,
            total_revenue=revenue,
            average_order_value=Decimal(round(revenue / orders)),
            top_selling_items=list(self.SAMPLE_TOP_ITEMS),
            inventory_turnover=self.rng.randint(70, 99),
            revenue_growth=self.rng.uniform(-5, 15),
            order_growth=self.rng.uniform(-5, 20),
            customer_satisfaction=self.rng.randint(80, 99),
        )


@dataclass
class _Sale:
    day: date
    total: Decimal
    lines: List[tuple]


class StoreMetricsProvider:
    """
    Aggregates real data. Orders and manual sales both count as transactions;
    top sellers are ranked by quantity sold. Inventory turnover is the share of
    tracked stock consumed by the week's sales according to recipe ingredients.
    Customer satisfaction has no data source and is reported as None.
    """

    def __init__(self, ddb, orders_table=ORDERS_TABLE, items_table=ORDER_ITEMS_TABLE,
                 sales_table=SALES_TABLE, inventory_table=INVENTORY_TABLE, recipes_table=RECIPES_TABLE):
        self.ddb = ddb
        self.orders_table = orders_table
        self.items_table = items_table
        self.sales_table = sales_table
        self.inventory_table = inventory_table
        self.recipes_table = recipes_table

    def daily(self, today=None):
        today = today or timezone.localdate()
        sales = self._sales(today, today)
        inventory = [InventoryItem.from_item(i) for i in self.ddb.scan(self.inventory_table)]
        recipes = [Recipe.from_item(i) for i in self.ddb.scan(self.recipes_table)]
        return DailyMetrics(
            date=today.isoformat(),
            total_orders=len(sales),
            total_revenue=to_money(sum((s.total for s in sales), Decimal("0"))),
            inventory_alerts=sum(1 for i in inventory if i.needs_attention),
            active_recipes=sum(1 for r in recipes if r.is_active),
        )

    def weekly(self, today=None):
        start, end = previous_week(today or timezone.localdate())
        sales = self._sales(start - timedelta(days=7), end)
        this_week = [s for s in sales if s.day >= start]
        last_week = [s for s in sales if s.day < start]

        revenue = to_money(sum((s.total for s in this_week), Decimal("0")))
        previous_revenue = sum((s.total for s in last_week), Decimal("0"))
        count = len(this_week)

        sold = Counter()
        for sale in this_week:
            for name, quantity in sale.lines:
                sold[name] += quantity

        return WeeklyMetrics(
            week_start=start.isoformat(),
            week_end=end.isoformat(),
            total_orders=count,
            total_revenue=revenue,
            average_order_value=to_money(revenue / count) if count else Decimal("0.00"),
            top_selling_items=[name for name, _ in sold.most_common(TOP_ITEMS)],
            inventory_turnover=self._turnover(sold),
            revenue_growth=growth(revenue, previous_revenue),
            order_growth=growth(count, len(last_week)),
            customer_satisfaction=None,
        )

    def _sales(self, first_day, last_day):
        sales = []
        for row in self.ddb.scan(self.orders_table):
            order = Order.from_item(row)
            day = timezone.localtime(order.order_time).date()
            if first_day <= day <= last_day:
                items = [OrderItem.from_item(i) for i in self.ddb.query(self.items_table, "order_id", order.order_id)]
                sales.append(_Sale(day, order.total_amount, [(i.item_name, i.quantity) for i in items]))

        for row in self.ddb.scan(self.sales_table):
            day = date.fromisoformat(row["date"])
            if first_day <= day <= last_day:
                lines = [(i["name"], int(i["quantity"])) for i in row.get("items", [])]
                sales.append(_Sale(day, to_money(row["total"]), lines))
        return sales

    def _turnover(self, sold):
        recipes = {r.name.lower(): r for r in (Recipe.from_item(i) for i in self.ddb.scan(self.recipes_table))}
        on_hand = sum(
            (InventoryItem.from_item(i).quantity for i in self.ddb.scan(self.inventory_table)), Decimal("0")
        )

        used = Decimal("0")
        for name, quantity in sold.items():
            recipe = recipes.get(name.lower())
            if recipe:
                used += sum(recipe.ingredients.values()) * quantity

        if used + on_hand <= 0:
            return 0
        return int(round(used / (used + on_hand) * 100))


def build_provider(name, ddb):
    if name == "placeholder":
        return PlaceholderMetricsProvider()
    if name == "store":
        return StoreMetricsProvider(ddb)
    raise ValueError(f"Unknown metrics provider: {name!r}")
