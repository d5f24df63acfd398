"""
Domain records stored in DynamoDB.

Each record converts from a deserialized table item (``from_item``), to a
table item (``to_item``) and to the JSON shape the API and board use
(``to_json``). Money is kept as Decimal end to end and only turned into a
float at the JSON edge.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from django.utils import timezone

from .status import ADVANCE_LABELS, OrderStatus, next_status

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def now_utc() -> datetime:
    return datetime.now(dt_timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone(dt_timezone.utc).isoformat() if value else None


def parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def format_clock(value: Optional[datetime]) -> Optional[str]:
    """HH:MM in the configured local time zone."""
    if value is None:
        return None
    return timezone.localtime(value).strftime("%H:%M")


def format_phone(phone: str) -> str:
    """Group Zambian numbers for display: +260 97 123 4567 or 097 123 4567."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 12 and digits.startswith("260"):
        return f"+260 {digits[3:5]} {digits[5:8]} {digits[8:]}"
    if len(digits) == 10 and digits.startswith("0"):
        return f"{digits[:3]} {digits[3:6]} {digits[6:]}"
    return (phone or "").strip()


# -----------------------------
# Orders
# -----------------------------
@dataclass
class Location:
    lat: float
    lng: float
    timestamp: datetime

    @classmethod
    def from_item(cls, item):
        if not item:
            return None
        return cls(
            lat=float(item["lat"]),
            lng=float(item["lng"]),
            timestamp=parse_timestamp(item.get("timestamp")),
        )

    def to_item(self):
        return {"lat": Decimal(str(self.lat)), "lng": Decimal(str(self.lng)), "timestamp": to_iso(self.timestamp)}

    def to_json(self):
        return {"lat": self.lat, "lng": self.lng, "timestamp": to_iso(self.timestamp)}


@dataclass
class OrderItem:
    order_id: str
    line_no: int
    item_name: str
    quantity: int
    price: Decimal

    @property
    def id(self):
        return f"{self.order_id}:{self.line_no}"

    @property
    def line_total(self) -> Decimal:
        return to_money(self.price * self.quantity)

    @classmethod
    def from_item(cls, item):
        return cls(
            order_id=item["order_id"],
            line_no=int(item["line_no"]),
            item_name=item["item_name"],
            quantity=int(item["quantity"]),
            price=to_money(item["price"]),
        )

    def to_item(self):
        return {
            "order_id": self.order_id,
            "line_no": self.line_no,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "price": self.price,
        }

    def to_json(self):
        return {
            "id": self.id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "price": float(self.price),
        }


@dataclass
class Order:
    order_id: str
    order_number: str
    customer_name: str
    customer_phone: str
    customer_address: str
    total_amount: Decimal
    status: OrderStatus
    order_time: datetime
    created_at: datetime
    estimated_delivery: Optional[datetime] = None
    current_location: Optional[Location] = None
    revision: int = 1
    created_by: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)

    @classmethod
    def from_item(cls, item, items=()):
        return cls(
            order_id=item["order_id"],
            order_number=item.get("order_number", ""),
            customer_name=item.get("customer_name", ""),
            customer_phone=item.get("customer_phone", ""),
            customer_address=item.get("customer_address", ""),
            total_amount=to_money(item.get("total_amount", 0)),
            status=OrderStatus.parse(item.get("status", OrderStatus.PLACED)),
            order_time=parse_timestamp(item.get("order_time")),
            created_at=parse_timestamp(item.get("created_at") or item.get("order_time")),
            estimated_delivery=parse_timestamp(item.get("estimated_delivery")),
            current_location=Location.from_item(item.get("current_location")),
            revision=int(item.get("revision", 1)),
            created_by=item.get("created_by"),
            items=sorted(items, key=lambda i: i.line_no),
        )

    def to_item(self):
        item = {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "total_amount": self.total_amount,
            "status": self.status.value,
            "order_time": to_iso(self.order_time),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.created_at),
            "revision": self.revision,
        }
        if self.estimated_delivery:
            item["estimated_delivery"] = to_iso(self.estimated_delivery)
        if self.current_location:
            item["current_location"] = self.current_location.to_item()
        if self.created_by:
            item["created_by"] = self.created_by
        return item

    @property
    def display_phone(self):
        return format_phone(self.customer_phone)

    @property
    def display_order_time(self):
        return format_clock(self.order_time)

    @property
    def display_eta(self):
        return format_clock(self.estimated_delivery)

    @property
    def next_status(self):
        return next_status(self.status)

    @property
    def advance_label(self):
        return ADVANCE_LABELS.get(self.status)

    def to_json(self):
        return {
            "id": self.order_id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_phone": self.display_phone,
            "customer_address": self.customer_address,
            "total_amount": float(self.total_amount),
            "status": self.status.value,
            "order_time": self.display_order_time,
            "estimated_delivery": self.display_eta,
            "current_location": self.current_location.to_json() if self.current_location else None,
            "revision": self.revision,
            "items": [i.to_json() for i in self.items],
        }


# -----------------------------
# Email reporting
# -----------------------------
@dataclass
class EmailRecipient:
    id: str
    email_type: str
    recipient_email: str
    recipient_name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @classmethod
    def from_item(cls, item):
        return cls(
            id=item["id"],
            email_type=item["email_type"],
            recipient_email=item["recipient_email"],
            recipient_name=item.get("recipient_name"),
            is_active=bool(item.get("is_active", True)),
            created_at=parse_timestamp(item.get("created_at")),
            created_by=item.get("created_by"),
        )

    def to_item(self):
        item = {
            "id": self.id,
            "email_type": self.email_type,
            "recipient_email": self.recipient_email,
            "is_active": self.is_active,
            "created_at": to_iso(self.created_at),
        }
        if self.recipient_name:
            item["recipient_name"] = self.recipient_name
        if self.created_by:
            item["created_by"] = self.created_by
        return item

    def to_json(self):
        return {
            "id": self.id,
            "email_type": self.email_type,
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
            "is_active": self.is_active,
            "created_at": to_iso(self.created_at),
        }


@dataclass
class EmailLog:
    id: str
    email_type: str
    recipient_email: str
    subject: str
    status: str
    sent_at: datetime
    data_snapshot: Dict = field(default_factory=dict)
    error_message: Optional[str] = None

    SUCCESS = "success"
    FAILED = "failed"

    @classmethod
    def from_item(cls, item):
        return cls(
            id=item["id"],
            email_type=item["email_type"],
            recipient_email=item["recipient_email"],
            subject=item.get("subject", ""),
            status=item["status"],
            sent_at=parse_timestamp(item.get("sent_at")),
            data_snapshot=item.get("data_snapshot") or {},
            error_message=item.get("error_message"),
        )

    def to_item(self):
        item = {
            "id": self.id,
            "email_type": self.email_type,
            "recipient_email": self.recipient_email,
            "subject": self.subject,
            "status": self.status,
            "sent_at": to_iso(self.sent_at),
            "data_snapshot": self.data_snapshot,
        }
        if self.error_message:
            item["error_message"] = self.error_message
        return item

    def to_json(self):
        return {
            "id": self.id,
            "email_type": self.email_type,
            "recipient_email": self.recipient_email,
            "subject": self.subject,
            "status": self.status,
            "error_message": self.error_message,
            "sent_at": to_iso(self.sent_at),
            "data_snapshot": _jsonable(self.data_snapshot),
        }


def _jsonable(value):
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    return value


# -----------------------------
# Back office
# -----------------------------
@dataclass
class InventoryItem:
    item_id: str
    name: str
    quantity: Decimal
    threshold: Decimal
    category: str = ""
    unit: str = ""

    @classmethod
    def from_item(cls, item):
        return cls(
            item_id=item["item_id"],
            name=item["name"],
            quantity=Decimal(str(item.get("qty", item.get("quantity", 0)))),
            threshold=Decimal(str(item.get("threshold", 0))),
            category=item.get("category", ""),
            unit=item.get("unit", ""),
        )

    def to_item(self):
        return {
            "item_id": self.item_id,
            "name": self.name,
            "qty": self.quantity,
            "threshold": self.threshold,
            "category": self.category,
            "unit": self.unit,
        }

    @property
    def stock_status(self):
        if self.threshold <= 0:
            return "good"
        percentage = self.quantity / self.threshold * 100
        if percentage <= 50:
            return "critical"
        if percentage <= 100:
            return "low"
        return "good"

    @property
    def needs_attention(self):
        return self.stock_status != "good"


@dataclass
class Recipe:
    recipe_id: str
    name: str
    ingredients: Dict[str, int]
    servings: int = 1
    image_url: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_item(cls, item):
        return cls(
            recipe_id=item["recipe_id"],
            name=item.get("name", item["recipe_id"]),
            ingredients={k: int(v) for k, v in (item.get("ingredients") or {}).items()},
            servings=int(item.get("servings", 1)),
            image_url=item.get("image_url"),
            is_active=bool(item.get("is_active", True)),
        )

    def to_item(self):
        return {
            "recipe_id": self.recipe_id,
            "name": self.name,
            "ingredients": self.ingredients,
            "servings": self.servings,
            "image_url": self.image_url,
            "is_active": self.is_active,
        }

    @property
    def ingredients_text(self):
        return ",".join(f"{k}:{v}" for k, v in self.ingredients.items())


EXPENSE_CATEGORIES = (
    ("ingredients", "Ingredients"),
    ("utilities", "Utilities"),
    ("rent", "Rent"),
    ("transport", "Transport"),
    ("equipment", "Equipment"),
    ("marketing", "Marketing"),
    ("staff", "Staff"),
    ("other", "Other"),
)


@dataclass
class Expense:
    expense_id: str
    date: str
    category: str
    description: str
    amount: Decimal
    subcategory: str = ""
    supplier: str = ""
    receipt_number: str = ""
    notes: str = ""
    entered_by: str = ""

    @classmethod
    def from_item(cls, item):
        return cls(
            expense_id=item["expense_id"],
            date=item["date"],
            category=item["category"],
            description=item.get("description", ""),
            amount=to_money(item["amount"]),
            subcategory=item.get("subcategory", ""),
            supplier=item.get("supplier", ""),
            receipt_number=item.get("receipt_number", ""),
            notes=item.get("notes", ""),
            entered_by=item.get("entered_by", ""),
        )

    def to_item(self):
        return {
            "expense_id": self.expense_id,
            "date": self.date,
            "category": self.category,
            "description": self.description,
            "amount": self.amount,
            "subcategory": self.subcategory,
            "supplier": self.supplier,
            "receipt_number": self.receipt_number,
            "notes": self.notes,
            "entered_by": self.entered_by,
        }


PAYMENT_METHODS = (
    ("cash", "Cash"),
    ("card", "Card"),
    ("mobile_money", "Mobile Money"),
    ("bank_transfer", "Bank Transfer"),
)


@dataclass
class ManualSale:
    sale_id: str
    date: str
    items: List[Dict]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    payment_method: str
    customer_name: str = ""
    notes: str = ""
    entered_by: str = ""

    @classmethod
    def from_item(cls, item):
        return cls(
            sale_id=item["sale_id"],
            date=item["date"],
            items=item.get("items", []),
            subtotal=to_money(item["subtotal"]),
            tax=to_money(item["tax"]),
            total=to_money(item["total"]),
            payment_method=item["payment_method"],
            customer_name=item.get("customer_name", ""),
            notes=item.get("notes", ""),
            entered_by=item.get("entered_by", ""),
        )

    def to_item(self):
        return {
            "sale_id": self.sale_id,
            "date": self.date,
            "items": self.items,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "payment_method": self.payment_method,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "entered_by": self.entered_by,
        }
