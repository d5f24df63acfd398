from decimal import Decimal

import pytest
from django import forms

from kitchen.forms import CreateOrderForm, InventoryForm, RecipeForm, UserForm, parse_lines


def test_parse_lines_accepts_commas_and_new_lines():
    lines = parse_lines("Chips:2:10.50, Fanta:1:8\nNshima:1:30")
    assert lines == [
        {"item_name": "Chips", "quantity": 2, "price": Decimal("10.50")},
        {"item_name": "Fanta", "quantity": 1, "price": Decimal("8")},
        {"item_name": "Nshima", "quantity": 1, "price": Decimal("30")},
    ]


@pytest.mark.parametrize("raw", ["", "Chips:2", "Chips:0:10", ":1:10", "Chips:1:ten", "Chips:1:-2"])
def test_parse_lines_rejects(raw):
    with pytest.raises(forms.ValidationError):
        parse_lines(raw)


def test_order_form_requires_customer():
    form = CreateOrderForm({"customer_name": "", "items": "Chips:1:10"})
    assert not form.is_valid()
    assert "customer_name" in form.errors


def test_inventory_name_is_read_only_when_editing():
    form = InventoryForm(initial={"name": "Chicken"})
    assert form.fields["name"].widget.attrs.get("readonly") is True
    assert "readonly" not in InventoryForm().fields["name"].widget.attrs


def test_recipe_ingredients_parse_to_quantities():
    form = RecipeForm({"name": "Chips", "servings": 1, "ingredients": "Potatoes:2, Oil:1"})
    assert form.is_valid(), form.errors
    assert form.cleaned_data["ingredients"] == {"Potatoes": 2, "Oil": 1}


def test_recipe_ingredients_need_whole_quantities():
    form = RecipeForm({"name": "Chips", "servings": 1, "ingredients": "Potatoes:two"})
    assert not form.is_valid()


@pytest.mark.django_db
def test_user_form_rejects_taken_username(django_user_model):
    django_user_model.objects.create_user("thandi", password="long-enough-1")
    form = UserForm({"username": "Thandi", "full_name": "T M", "email": "t@zedbites.test",
                     "role": "staff", "password": "long-enough-1"})
    assert not form.is_valid()
    assert "username" in form.errors
