import logging
import uuid

from django.contrib import messages
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required, user_passes_test
from django.contrib.auth.models import Group
from django.shortcuts import redirect, render
from django.utils import timezone
from django.conf import settings
from django.views.decorators.http import require_POST

from aws_config import EXPENSES_TABLE, INVENTORY_TABLE, RECIPES_TABLE, SALES_TABLE
from aws_lib.exceptions import AWSError

from .context import kitchen_context
from .exceptions import KitchenError
from .finance import profit_analysis, sale_totals
from .forms import (
    CreateOrderForm,
    ExpenseForm,
    InventoryForm,
    ManualSaleForm,
    RecipeForm,
    RecipientForm,
    ROLES,
    UserForm,
)
from .models import EXPENSE_CATEGORIES, Expense, InventoryItem, ManualSale, Recipe
from .status import OrderStatus
from .tracking import WATCH_OPTIONS

logger = logging.getLogger(__name__)


def request_notifier(request):
    """Route OrderSync notifications to the user's flash messages."""
    def notify(level, text):
        messages.add_message(request, messages.ERROR if level == "error" else messages.INFO, text)
    return notify


staff_required = user_passes_test(lambda u: u.is_active and u.is_staff)

# the admin role is a superuser
admin_required = user_passes_test(lambda u: u.is_active and u.is_superuser)


def _scan(model, table):
    ctx = kitchen_context()
    return [model.from_item(i) for i in ctx.ddb.scan(table)]


# logic for dashboard view
@login_required
def dashboard(request):
    """
    Loads:
    - Orders and counts per status
    - Today's revenue
    - Inventory items that need attention

    Sends data to dashboard page for display.
    """
    ctx = kitchen_context()
    orders = ctx.orders.orders(notify=request_notifier(request))
    today = timezone.localdate()

    counts = {s.value: 0 for s in OrderStatus}
    for o in orders:
        counts[o.status.value] += 1

    todays = [o for o in orders if timezone.localtime(o.order_time).date() == today]

    try:
        inventory = _scan(InventoryItem, INVENTORY_TABLE)
    except AWSError as e:
        logger.error("Error loading inventory: %s", e)
        messages.error(request, "Failed to load inventory")
        inventory = []

    return render(request, "dashboard.html", {
        "orders": orders[:10],
        "counts": counts,
        "orders_today": len(todays),
        "revenue_today": sum(o.total_amount for o in todays),
        "low_stock": [i for i in inventory if i.needs_attention],
    })


# order board
@login_required
def orders_list(request):
    """
    Orders grouped by status tab.
    """
    ctx = kitchen_context()
    status = request.GET.get("status") or "all"
    if status != "all" and status not in {s.value for s in OrderStatus}:
        status = "all"
    orders = ctx.orders.by_status(status, notify=request_notifier(request))

    # Optional order number / customer search filter
    search = request.GET.get("search")
    if search:
        needle = search.lower()
        orders = [
            o for o in orders
            if needle in o.order_number.lower() or needle in o.customer_name.lower()
        ]

    return render(request, "orders_list.html", {
        "orders": orders,
        "status": status,
        "statuses": list(OrderStatus),
        "search": search,
    })


@login_required
def create_order(request):
    """
    Creates a new order with its items.
    """
    if request.method == "POST":
        form = CreateOrderForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            try:
                order = kitchen_context().orders.create_order(
                    data["customer_name"],
                    data["items"],
                    customer_phone=data["customer_phone"],
                    customer_address=data["customer_address"],
                    created_by=request.user.get_username(),
                )
            except KitchenError as e:
                messages.error(request, e.message)
            except AWSError as e:
                logger.error("Error creating order: %s", e)
                messages.error(request, "Failed to create order")
            else:
                messages.success(request, f"Order {order.order_number} has been created successfully")
                return redirect("orders_list")
    else:
        form = CreateOrderForm()

    return render(request, "create_order.html", {"form": form})


@login_required
@require_POST
def advance_order(request, order_id):
    try:
        order = kitchen_context().orders.advance(order_id)
    except KitchenError as e:
        messages.error(request, e.message)
    except AWSError as e:
        logger.error("Error updating order status: %s", e)
        messages.error(request, "Failed to update order status")
    else:
        messages.success(request, f"Order status updated to {order.status.value}")
    return redirect(request.POST.get("next") or "orders_list")


# delivery tracking
@login_required
def order_tracker(request, order_id):
    ctx = kitchen_context()
    ctx.orders.orders(notify=request_notifier(request))
    order = ctx.orders.get(order_id)
    if order is None:
        messages.error(request, "Order not found")
        return redirect("orders_list")

    tracker = ctx.trackers.existing(order_id)
    return render(request, "tracker.html", {
        "order": order,
        "is_tracking": bool(tracker and tracker.is_tracking),
        "watch_options": WATCH_OPTIONS.to_json(),
    })


@login_required
@require_POST
def start_tracking(request, order_id):
    tracker = kitchen_context().trackers.tracker(order_id)
    if tracker.start_tracking():
        messages.info(request, "Now tracking delivery location")
    else:
        messages.error(request, "Geolocation is not supported on this device")
    return redirect("order_tracker", order_id=order_id)


@login_required
@require_POST
def stop_tracking(request, order_id):
    tracker = kitchen_context().trackers.existing(order_id)
    if tracker:
        tracker.stop_tracking()
    messages.info(request, "Location tracking has been disabled")
    return redirect("order_tracker", order_id=order_id)


@login_required
@require_POST
def mark_delivered(request, order_id):
    ctx = kitchen_context()
    try:
        ctx.trackers.tracker(order_id).mark_delivered()
    except KitchenError as e:
        messages.error(request, e.message)
        return redirect("order_tracker", order_id=order_id)
    except AWSError as e:
        logger.error("Error marking order delivered: %s", e)
        messages.error(request, "Failed to update order status")
        return redirect("order_tracker", order_id=order_id)

    ctx.trackers.discard(order_id)
    messages.success(request, "Order has been marked as delivered")
    return redirect("orders_list")


# inventory page views operations
@login_required
def inventory_list(request):
    """Displays all items."""
    inventory = sorted(_scan(InventoryItem, INVENTORY_TABLE), key=lambda i: i.name.lower())
    search = request.GET.get("search")
    if search:
        needle = search.lower()
        inventory = [i for i in inventory if needle in i.name.lower() or needle in i.category.lower()]
    return render(request, "inventory.html", {
        "inventory": inventory,
        "critical": [i for i in inventory if i.stock_status == "critical"],
        "low": [i for i in inventory if i.stock_status == "low"],
        "search": search,
    })


def _save_inventory(request, item):
    ctx = kitchen_context()
    ctx.ddb.put(INVENTORY_TABLE, item.to_item())

    # Send low stock alert
    if item.needs_attention:
        try:
            ctx.sns.publish(
                ctx.topic_arn(),
                f"Low stock alert: {item.name} has {item.quantity} {item.unit} (threshold {item.threshold})",
                subject="Low Stock Alert",
            )
        except AWSError as e:
            logger.error("Low stock alert for %s failed: %s", item.name, e)
            messages.warning(request, f"{item.name} is low on stock but the alert could not be sent")


@login_required
def add_inventory(request):
    if request.method == "POST":
        form = InventoryForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            item = InventoryItem(
                item_id=str(uuid.uuid4()),
                name=data["name"],
                category=data["category"],
                quantity=data["qty"],
                unit=data["unit"],
                threshold=data["threshold"],
            )
            _save_inventory(request, item)
            return redirect("inventory_list")

    else:
        form = InventoryForm()

    return render(request, "inventory_form.html", {"form": form})


@login_required
def edit_inventory(request, item_id):  # edit quantities and thresholds of an inventory item
    ctx = kitchen_context()
    row = ctx.ddb.get(INVENTORY_TABLE, {"item_id": item_id})
    if not row:
        return redirect("inventory_list")
    item = InventoryItem.from_item(row)

    if request.method == "POST":
        form = InventoryForm(request.POST, initial={"name": item.name})
        if form.is_valid():
            data = form.cleaned_data
            # Name is immutable, only stock details can change
            item.category = data["category"]
            item.quantity = data["qty"]
            item.unit = data["unit"]
            item.threshold = data["threshold"]
            _save_inventory(request, item)
            return redirect("inventory_list")

    else:
        # Pre-fill form with existing values
        form = InventoryForm(initial={
            "name": item.name,
            "category": item.category,
            "qty": item.quantity,
            "unit": item.unit,
            "threshold": item.threshold,
        })

    return render(request, "inventory_form.html", {"form": form, "item": item})


@login_required
@require_POST
def delete_inventory(request, item_id):
    """Removes an item from inventory."""
    kitchen_context().ddb.delete(INVENTORY_TABLE, {"item_id": item_id})
    return redirect("inventory_list")


# all the recipe operations
@login_required
def recipe_list(request):
    """Shows all recipes."""
    recipes = sorted(_scan(Recipe, RECIPES_TABLE), key=lambda r: r.name.lower())
    return render(request, "recipes.html", {"recipes": recipes})


def _upload_image(recipe_id, image_file):
    ctx = kitchen_context()
    s3_key = f"recipes/{recipe_id}/{image_file.name}"
    return ctx.s3.upload_fileobj(ctx.media_bucket, s3_key, image_file, content_type=image_file.content_type)


@login_required
def add_recipe(request):
    """
    Adds a new recipe.
    Uploads optional meal image to S3.
    """
    if request.method == "POST":
        form = RecipeForm(request.POST, request.FILES)
        if form.is_valid():
            data = form.cleaned_data
            recipe = Recipe(
                recipe_id=str(uuid.uuid4()),
                name=data["name"],
                ingredients=data["ingredients"],
                servings=data["servings"],
                is_active=data["is_active"],
            )

            image_file = request.FILES.get("image")
            if image_file:
                recipe.image_url = _upload_image(recipe.recipe_id, image_file)

            kitchen_context().ddb.put(RECIPES_TABLE, recipe.to_item())
            return redirect("recipe_list")

    else:
        form = RecipeForm()

    return render(request, "recipe_form.html", {"form": form})


@login_required
def edit_recipe(request, recipe_id):
    """
    Edit a recipe including image re-upload.
    """
    ctx = kitchen_context()
    row = ctx.ddb.get(RECIPES_TABLE, {"recipe_id": recipe_id})
    if not row:
        return redirect("recipe_list")
    recipe = Recipe.from_item(row)

    if request.method == "POST":
        form = RecipeForm(request.POST, request.FILES)
        if form.is_valid():
            data = form.cleaned_data
            recipe.name = data["name"]
            recipe.ingredients = data["ingredients"]
            recipe.servings = data["servings"]
            recipe.is_active = data["is_active"]

            # Replace image if a new one is uploaded
            image_file = request.FILES.get("image")
            if image_file:
                recipe.image_url = _upload_image(recipe_id, image_file)

            ctx.ddb.put(RECIPES_TABLE, recipe.to_item())
            return redirect("recipe_list")

    else:
        # Populate form with readable string ingredients
        form = RecipeForm(initial={
            "name": recipe.name,
            "servings": recipe.servings,
            "ingredients": recipe.ingredients_text,
            "is_active": recipe.is_active,
        })

    return render(request, "recipe_form.html", {"form": form, "recipe": recipe})


@login_required
@require_POST
def delete_recipe(request, recipe_id):
    """Delete recipe from DynamoDB."""
    kitchen_context().ddb.delete(RECIPES_TABLE, {"recipe_id": recipe_id})
    return redirect("recipe_list")


# manual sales & expenses
@login_required
def sales(request):
    ctx = kitchen_context()
    if request.method == "POST":
        form = ManualSaleForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            subtotal, tax, total = sale_totals(data["items"], settings.VAT_RATE)
            sale = ManualSale(
                sale_id=str(uuid.uuid4()),
                date=data["date"].isoformat(),
                items=[
                    {"name": i["item_name"], "quantity": i["quantity"], "price": i["price"]}
                    for i in data["items"]
                ],
                subtotal=subtotal,
                tax=tax,
                total=total,
                payment_method=data["payment_method"],
                customer_name=data["customer_name"],
                notes=data["notes"],
                entered_by=request.user.get_username(),
            )
            ctx.ddb.put(SALES_TABLE, sale.to_item())
            messages.success(request, f"Manual sale entry created for {data['date']:%d %b %Y}")
            return redirect("sales")
    else:
        form = ManualSaleForm(initial={"date": timezone.localdate()})

    history = sorted(_scan(ManualSale, SALES_TABLE), key=lambda s: s.date, reverse=True)
    return render(request, "sales.html", {"form": form, "sales": history, "vat_rate": settings.VAT_RATE})


@login_required
def expenses(request):
    ctx = kitchen_context()
    if request.method == "POST":
        form = ExpenseForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            expense = Expense(
                expense_id=str(uuid.uuid4()),
                date=data["date"].isoformat(),
                category=data["category"],
                subcategory=data["subcategory"],
                description=data["description"],
                amount=data["amount"],
                supplier=data["supplier"],
                receipt_number=data["receipt_number"],
                notes=data["notes"],
                entered_by=request.user.get_username(),
            )
            ctx.ddb.put(EXPENSES_TABLE, expense.to_item())
            messages.success(request, "Expense recorded")
            return redirect("expenses")
    else:
        form = ExpenseForm(initial={"date": timezone.localdate()})

    labels = dict(EXPENSE_CATEGORIES)
    all_expenses = sorted(_scan(Expense, EXPENSES_TABLE), key=lambda e: e.date, reverse=True)
    analysis = profit_analysis(
        ctx.orders.orders(notify=request_notifier(request)),
        _scan(ManualSale, SALES_TABLE),
        all_expenses,
        timezone.localdate(),
    )
    return render(request, "expenses.html", {
        "form": form,
        "expenses": all_expenses,
        "analysis": analysis,
        "breakdown": [(labels.get(k, k), v) for k, v in sorted(analysis.breakdown.items())],
    })


# email reports
@login_required
@staff_required
def email_reports(request):
    ctx = kitchen_context()
    if request.method == "POST":
        form = RecipientForm(request.POST)
        if form.is_valid():
            try:
                ctx.recipients.create(created_by=request.user.get_username(), **form.cleaned_data)
            except KitchenError as e:
                messages.error(request, e.message)
            else:
                messages.success(request, "Recipient added")
                return redirect("email_reports")
    else:
        form = RecipientForm()

    return render(request, "email_reports.html", {
        "form": form,
        "recipients": ctx.recipients.all(),
        "logs": ctx.email_logs.latest(),
    })


@login_required
@staff_required
@require_POST
def toggle_recipient(request, recipient_id):
    ctx = kitchen_context()
    try:
        recipient = ctx.recipients.get(recipient_id)
        ctx.recipients.update(recipient_id, is_active=not recipient.is_active)
    except KitchenError as e:
        messages.error(request, e.message)
    return redirect("email_reports")


@login_required
@staff_required
@require_POST
def delete_recipient(request, recipient_id):
    kitchen_context().recipients.delete(recipient_id)
    messages.success(request, "Recipient deleted successfully")
    return redirect("email_reports")


@login_required
@staff_required
@require_POST
def send_test_report(request, report_type):
    try:
        result = kitchen_context().report_job(report_type).run(manual=True)
    except KitchenError as e:
        messages.error(request, e.message)
    except AWSError as e:
        logger.error("Test %s report failed: %s", report_type, e)
        messages.error(request, f"Test report failed: {e}")
    else:
        if result.data is None:
            messages.info(request, result.message)
        else:
            messages.success(request, f"{result.message}: {result.successful} sent, {result.failed} failed")
    return redirect("email_reports")


# admin user management
@login_required
@admin_required
def users(request):
    User = get_user_model()
    if request.method == "POST":
        form = UserForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            first, _, last = data["full_name"].partition(" ")
            user = User.objects.create_user(
                username=data["username"],
                email=data["email"],
                password=data["password"],
                first_name=first,
                last_name=last,
            )
            user.is_staff = data["role"] in ("admin", "manager")
            user.is_superuser = data["role"] == "admin"
            user.save(update_fields=["is_staff", "is_superuser"])
            group, _ = Group.objects.get_or_create(name=data["role"])
            user.groups.add(group)
            logger.info("User %s created with role %s", user.username, data["role"])
            messages.success(request, "User added successfully!")
            return redirect("users")
    else:
        form = UserForm()

    role_names = [name for name, _ in ROLES]
    people = []
    for user in User.objects.order_by("username").prefetch_related("groups"):
        role = next((g.name for g in user.groups.all() if g.name in role_names), "admin" if user.is_superuser else "staff")
        people.append({"user": user, "role": role})
    return render(request, "users.html", {"form": form, "people": people})


@login_required
@admin_required
@require_POST
def toggle_user(request, user_id):
    user = get_user_model().objects.filter(pk=user_id).first()
    if user is None:
        messages.error(request, "User not found")
    elif user == request.user:
        messages.error(request, "You cannot deactivate your own account")
    else:
        user.is_active = not user.is_active
        user.save(update_fields=["is_active"])
    return redirect("users")


@login_required
@admin_required
@require_POST
def delete_user(request, user_id):
    user = get_user_model().objects.filter(pk=user_id).first()
    if user is None:
        messages.error(request, "User not found")
    elif user == request.user:
        messages.error(request, "You cannot delete your own account")
    else:
        user.delete()
        messages.success(request, "User deleted successfully!")
    return redirect("users")
