from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

import aws_config
from kitchen.context import kitchen_context
from kitchen.finance import sale_totals
from kitchen.models import Expense, InventoryItem, ManualSale, Recipe

DEMO_INVENTORY = [
    # name, category, qty, unit, threshold
    ("Mealie meal", "Staples", 40, "kg", 20),
    ("Chicken", "Meat", 6, "kg", 10),
    ("Beef", "Meat", 12, "kg", 8),
    ("Rape", "Vegetables", 3, "bunch", 10),
    ("Tomatoes", "Vegetables", 25, "kg", 10),
    ("Cooking oil", "Pantry", 9, "l", 5),
]

DEMO_RECIPES = [
    ("recipe-nshima-chicken", "Nshima with Chicken", {"Mealie meal": 1, "Chicken": 1, "Rape": 1}),
    ("recipe-nshima-beef", "Nshima with Beef", {"Mealie meal": 1, "Beef": 1, "Tomatoes": 1}),
    ("recipe-chips", "Chips", {"Cooking oil": 1}),
]

DEMO_ORDERS = [
    ("Mwila Banda", "0971234567", "Plot 12, Kabulonga", [("Nshima with Chicken", 2, "45.00")], 0),
    ("Chipo Phiri", "260961112233", "Northmead Flats 4B", [("Nshima with Beef", 1, "50.00"), ("Chips", 2, "20.00")], 1),
    ("Bwalya Mulenga", "0955443322", "Roma Park, House 7", [("Chips", 3, "20.00")], 2),
    ("Natasha Zulu", "0977665544", "Woodlands Ext", [("Nshima with Chicken", 1, "45.00")], 3),
]


class Command(BaseCommand):
    help = "Clear the kitchen tables and order change queue, then load demo data."

    def add_arguments(self, parser):
        parser.add_argument("--email", help="Subscribe this address to both reports.")
        parser.add_argument("--no-seed", action="store_true", help="Only clear, do not load demo data.")

    def handle(self, *args, **opts):
        ctx = kitchen_context()

        for table, (partition_key, sort_key) in aws_config.TABLE_KEYS.items():
            key_names = [k for k in (partition_key, sort_key) if k]
            items = ctx.ddb.scan(table)
            for item in items:
                ctx.ddb.delete(table, {k: item[k] for k in key_names})
            self.stdout.write(self.style.SUCCESS(f"Cleared {len(items)} items from {table}"))

        url = ctx.change_queue_url or aws_config.get_sqs_url()
        drained = 0
        while True:
            messages = ctx.sqs.receive_messages(url, max_messages=10, wait_seconds=0)
            if not messages:
                break
            for m in messages:
                ctx.sqs.delete_message(url, m["ReceiptHandle"])
            drained += len(messages)
        self.stdout.write(self.style.SUCCESS(f"Drained {drained} messages from the order changes queue"))

        if opts["no_seed"]:
            return
        self.seed(ctx, opts.get("email"))

    def seed(self, ctx, email):
        for n, (name, category, qty, unit, threshold) in enumerate(DEMO_INVENTORY, start=1):
            item = InventoryItem(f"item-{n}", name, qty, threshold, category=category, unit=unit)
            ctx.ddb.put(aws_config.INVENTORY_TABLE, item.to_item())
        self.stdout.write(self.style.SUCCESS(f"Inserted {len(DEMO_INVENTORY)} inventory items"))

        for recipe_id, name, ingredients in DEMO_RECIPES:
            ctx.ddb.put(aws_config.RECIPES_TABLE, Recipe(recipe_id, name, ingredients).to_item())
        self.stdout.write(self.style.SUCCESS(f"Inserted {len(DEMO_RECIPES)} recipes"))

        for name, phone, address, lines, steps in DEMO_ORDERS:
            items = [{"item_name": i, "quantity": q, "price": p} for i, q, p in lines]
            order = ctx.orders.create_order(name, items, customer_phone=phone, customer_address=address,
                                            created_by="reset_demo")
            for _ in range(steps):
                order = ctx.orders.advance(order.order_id)
            self.stdout.write(f"  {order.order_number} {order.status.value}")
        self.stdout.write(self.style.SUCCESS(f"Inserted {len(DEMO_ORDERS)} orders"))

        today = timezone.localdate().isoformat()
        lines = [{"item_name": "Chips", "quantity": 4, "price": 20}]
        subtotal, tax, total = sale_totals(lines, settings.VAT_RATE)
        sale = ManualSale("sale-demo-1", today, [{"name": "Chips", "quantity": 4, "price": 20}],
                          subtotal, tax, total, "mobile_money", customer_name="Walk-in")
        ctx.ddb.put(aws_config.SALES_TABLE, sale.to_item())
        expense = Expense("expense-demo-1", today, "ingredients", "Weekly vegetables", 350,
                          supplier="Soweto Market")
        ctx.ddb.put(aws_config.EXPENSES_TABLE, expense.to_item())
        self.stdout.write(self.style.SUCCESS("Inserted a manual sale and an expense"))

        if email:
            for report_type in ("daily", "weekly"):
                ctx.recipients.create(report_type, email, created_by="reset_demo")
            self.stdout.write(self.style.SUCCESS(f"Subscribed {email} to daily and weekly reports"))
