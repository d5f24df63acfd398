"""Manual sales totals and the profit analysis shown on the expenses page."""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict

from django.utils import timezone

from .models import to_money

ZERO = Decimal("0")


def sale_totals(lines, vat_rate):
    """(subtotal, tax, total) for item dicts with quantity and price."""
    subtotal = to_money(sum((Decimal(str(line["price"])) * line["quantity"] for line in lines), ZERO))
    tax = to_money(subtotal * Decimal(str(vat_rate)))
    return subtotal, tax, subtotal + tax


@dataclass
class ProfitAnalysis:
    total_revenue: Decimal
    total_expenses: Decimal
    breakdown: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def gross_profit(self):
        return self.total_revenue - self.total_expenses

    @property
    def profit_margin(self):
        if self.total_revenue <= 0:
            return ZERO
        return (self.gross_profit / self.total_revenue * 100).quantize(Decimal("0.1"))


def profit_analysis(orders, sales, expenses, month):
    """
    Revenue from orders and manual sales against expenses for one month
    (``month`` is a ``date``; only its year and month matter).
    """
    def in_month(day):
        return day.year == month.year and day.month == month.month

    revenue = sum((o.total_amount for o in orders if in_month(timezone.localtime(o.order_time).date())), ZERO)
    revenue += sum((s.total for s in sales if in_month(_day(s.date))), ZERO)

    breakdown = {}
    for expense in expenses:
        if in_month(_day(expense.date)):
            breakdown[expense.category] = breakdown.get(expense.category, ZERO) + expense.amount

    return ProfitAnalysis(
        total_revenue=to_money(revenue),
        total_expenses=to_money(sum(breakdown.values(), ZERO)),
        breakdown=breakdown,
    )


def _day(value):
    return value if isinstance(value, date) else date.fromisoformat(value)
