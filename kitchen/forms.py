from decimal import Decimal, InvalidOperation

from django import forms
from django.contrib.auth import get_user_model

from .models import EXPENSE_CATEGORIES, PAYMENT_METHODS
from .recipients import ReportType

ROLES = (
    ("admin", "Admin"),
    ("manager", "Manager"),
    ("staff", "Staff"),
)


def parse_lines(raw):
    """
    Parse "name:qty:price" entries separated by commas or new lines into
    item dicts. Raises ValidationError on the first bad entry.
    """
    lines = []
    for entry in raw.replace("\n", ",").split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = [p.strip() for p in entry.split(":")]
        if len(parts) != 3:
            raise forms.ValidationError(f"Invalid item format: '{entry}'. Use name:qty:price")

        name, qty, price = parts
        if not name or not qty.isdigit() or int(qty) <= 0:
            raise forms.ValidationError(f"Invalid entry: {entry}")
        try:
            price = Decimal(price)
        except InvalidOperation:
            raise forms.ValidationError(f"Invalid price in: {entry}")
        if price < 0:
            raise forms.ValidationError(f"Invalid price in: {entry}")

        lines.append({"item_name": name, "quantity": int(qty), "price": price})

    if not lines:
        raise forms.ValidationError("Add at least one item.")
    return lines


class CreateOrderForm(forms.Form):
    """
    Form used to create a new order.
    """
    customer_name = forms.CharField(max_length=120)
    customer_phone = forms.CharField(max_length=30, required=False)
    customer_address = forms.CharField(max_length=255, required=False)
    items = forms.CharField(
        widget=forms.Textarea(attrs={"rows": 4}),
        help_text="One item per line. Format: name:qty:price",
    )

    def clean_items(self):
        return parse_lines(self.cleaned_data["items"])


class InventoryForm(forms.Form):
    """
    Form used for adding or editing inventory items.
    """
    name = forms.CharField(max_length=255)
    category = forms.CharField(max_length=64, required=False)
    qty = forms.DecimalField(min_value=0, decimal_places=2)
    unit = forms.CharField(max_length=16, required=False)
    threshold = forms.DecimalField(min_value=0, decimal_places=2)

    def __init__(self, *args, **kwargs):
        """
        Override form initialization.
        """
        super().__init__(*args, **kwargs)

        # When editing, disable editing of item "name"
        if "initial" in kwargs and kwargs["initial"].get("name"):
            self.fields["name"].widget.attrs["readonly"] = True


class RecipeForm(forms.Form):
    """
    Form used for creating or editing a recipe.
    """
    name = forms.CharField(max_length=100)
    servings = forms.IntegerField(min_value=1, initial=1)

    ingredients = forms.CharField(
        max_length=500,
        help_text="Format: item1:qty1,item2:qty2"
    )

    # Optional meal image (stored on S3)
    image = forms.ImageField(required=False)
    is_active = forms.BooleanField(required=False, initial=True)

    def clean_ingredients(self):
        """
        Custom validation for the ingredients field.
        """
        raw = self.cleaned_data["ingredients"].strip()
        ingredients = {}

        if not raw:
            raise forms.ValidationError("Ingredients cannot be empty.")

        # Parse each "item:qty" pair
        for entry in raw.split(","):
            if ":" not in entry:
                raise forms.ValidationError(
                    f"Invalid ingredient format: '{entry}'. Use item:qty"
                )

            key, value = entry.split(":", 1)
            key, value = key.strip(), value.strip()

            # Validate both item name and qty
            if not key or not value.isdigit():
                raise forms.ValidationError(f"Invalid entry: {entry}")

            ingredients[key] = int(value)

        return ingredients


class ManualSaleForm(forms.Form):
    date = forms.DateField(widget=forms.DateInput(attrs={"type": "date"}))
    items = forms.CharField(
        widget=forms.Textarea(attrs={"rows": 4}),
        help_text="One item per line. Format: name:qty:price",
    )
    payment_method = forms.ChoiceField(choices=PAYMENT_METHODS)
    customer_name = forms.CharField(max_length=120, required=False)
    notes = forms.CharField(widget=forms.Textarea(attrs={"rows": 2}), required=False)

    def clean_items(self):
        return parse_lines(self.cleaned_data["items"])


class ExpenseForm(forms.Form):
    date = forms.DateField(widget=forms.DateInput(attrs={"type": "date"}))
    category = forms.ChoiceField(choices=EXPENSE_CATEGORIES)
    subcategory = forms.CharField(max_length=64, required=False)
    description = forms.CharField(max_length=255)
    amount = forms.DecimalField(min_value=Decimal("0.01"), decimal_places=2)
    supplier = forms.CharField(max_length=120, required=False)
    receipt_number = forms.CharField(max_length=64, required=False)
    notes = forms.CharField(widget=forms.Textarea(attrs={"rows": 2}), required=False)


class RecipientForm(forms.Form):
    email_type = forms.ChoiceField(choices=[(t.value, t.value.capitalize()) for t in ReportType])
    recipient_email = forms.EmailField()
    recipient_name = forms.CharField(max_length=120, required=False)


class UserForm(forms.Form):
    username = forms.CharField(max_length=150)
    full_name = forms.CharField(max_length=150)
    email = forms.EmailField()
    role = forms.ChoiceField(choices=ROLES, initial="staff")
    password = forms.CharField(widget=forms.PasswordInput, min_length=8)

    def clean_username(self):
        username = self.cleaned_data["username"].strip()
        if get_user_model().objects.filter(username__iexact=username).exists():
            raise forms.ValidationError("That username is already taken.")
        return username
