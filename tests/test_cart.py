import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import pytest
from storefront.cart import (
    add_line,
    cart_count,
    dedupe_lines,
    find_line,
    has_duplicates,
    remove_line,
    set_quantity,
)
from storefront.config import STOCK_CLAMP, STOCK_REJECT
from storefront.domain import Cart, CatalogItem, Color, LineIdentity, LineRequest, Promotion, Variation
from storefront.errors import INVALID_QUANTITY, NOT_FOUND, STOCK_EXCEEDED

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def variation():
    return Variation(id="v1", product_id="p1", name="256GB", price=Decimal("1200"), quantity=5)


@pytest.fixture
def black():
    return Color(id="k1", product_id="p1", name="Black", color_code="#000", price=Decimal("0"), quantity=6)


@pytest.fixture
def gold():
    return Color(id="k2", product_id="p1", name="Gold", color_code="#d4af37", price=Decimal("1500"), quantity=6)


@pytest.fixture
def item(variation, black, gold):
    return CatalogItem(
        id="p1",
        slug="iphone",
        name="iPhone",
        price=Decimal("1000"),
        stock_quantity=10,
        images=("/img/iphone.jpg",),
        variations=(variation,),
        colors=(black, gold),
    )


@pytest.fixture
def sale():
    return (
        Promotion(id="s1", discount=Decimal(10), end_date=NOW + timedelta(days=1), product_id="p1"),
    )


def test_example_add_twice_merges(item, variation, black, sale):
    """2 шт, затем ещё 1 шт той же конфигурации -> одна строка, 3 шт, снапшот 1080"""
    cart = Cart()
    first = add_line(cart, LineRequest(item, 2, variation, black), sale, NOW)
    assert first.is_right

    second = add_line(first.value, LineRequest(item, 1, variation, black), sale, NOW)
    lines = second.value.lines
    assert len(lines) == 1
    assert lines[0].quantity == 3
    assert lines[0].unit_price == Decimal("1080")
    assert lines[0].base_unit_price == Decimal("1200")
    assert lines[0].discount_percent == Decimal("10")


def test_snapshot_is_not_refreshed_on_merge(item, sale):
    """Строка, добавленная до акции, сохраняет старую цену при повторном добавлении"""
    before = add_line(Cart(), LineRequest(item, 1), (), NOW).value
    after = add_line(before, LineRequest(item, 1), sale, NOW).value
    assert after.lines[0].quantity == 2
    assert after.lines[0].unit_price == Decimal("1000")
    assert after.lines[0].discount_percent is None


def test_two_colors_make_two_lines(item, black, gold):
    cart = add_line(Cart(), LineRequest(item, 1, color=black), (), NOW).value
    cart = add_line(cart, LineRequest(item, 1, color=gold), (), NOW).value
    assert len(cart.lines) == 2
    assert {l.color_id for l in cart.lines} == {"k1", "k2"}
    assert cart.lines[1].unit_price == Decimal("1500")


def test_display_snapshot_fields(item, variation, black):
    line = add_line(Cart(), LineRequest(item, 1, variation, black), (), NOW).value.lines[0]
    assert line.product_name == "iPhone"
    assert line.product_image == "/img/iphone.jpg"
    assert line.variation_name == "256GB"
    assert line.color_name == "Black"
    assert line.color_code == "#000"
    assert line.stock_quantity == 6


@pytest.mark.parametrize("qty", [0, -1, 1.5, "2", True])
def test_invalid_quantity_rejected(item, qty):
    cart = Cart()
    result = add_line(cart, LineRequest(item, qty), (), NOW)
    assert result.is_left
    assert result.value.kind == INVALID_QUANTITY
    assert result.value.message == "quantity must be at least 1"


def test_stock_reject_policy(item, gold):
    cart = add_line(Cart(), LineRequest(item, 4, color=gold), (), NOW).value
    result = add_line(cart, LineRequest(item, 3, color=gold), (), NOW, STOCK_REJECT)
    assert result.is_left
    assert result.value.kind == STOCK_EXCEEDED
    assert result.value.message == "only 6 left"
    # исходная корзина не тронута
    assert cart.lines[0].quantity == 4


def test_stock_clamp_policy(item, gold):
    cart = add_line(Cart(), LineRequest(item, 4, color=gold), (), NOW).value
    clamped = add_line(cart, LineRequest(item, 3, color=gold), (), NOW, STOCK_CLAMP).value
    assert clamped.lines[0].quantity == 6

    full = add_line(clamped, LineRequest(item, 1, color=gold), (), NOW, STOCK_CLAMP)
    assert full.is_left and full.value.kind == STOCK_EXCEEDED


def test_stock_uses_most_specific_configuration(item, variation):
    """Без цвета остаток берётся у вариации (5), а не у товара (10)"""
    result = add_line(Cart(), LineRequest(item, 6, variation), (), NOW)
    assert result.is_left and result.value.message == "only 5 left"


def test_remove_missing_identity_is_noop(item):
    cart = add_line(Cart(), LineRequest(item, 1), (), NOW).value
    assert remove_line(cart, LineIdentity("p999")) is cart


def test_remove_line(item, black):
    cart = add_line(Cart(), LineRequest(item, 1), (), NOW).value
    cart = add_line(cart, LineRequest(item, 1, color=black), (), NOW).value
    updated = remove_line(cart, LineIdentity("p1"))
    assert [l.identity for l in updated.lines] == [LineIdentity("p1", None, "k1")]


def test_set_quantity(item):
    cart = add_line(Cart(), LineRequest(item, 1), (), NOW).value
    identity = LineIdentity("p1")

    assert set_quantity(cart, identity, 4).value.lines[0].quantity == 4
    assert set_quantity(cart, identity, 0).value.lines == ()
    assert set_quantity(cart, identity, 11).value.kind == STOCK_EXCEEDED
    assert set_quantity(cart, identity, 11, STOCK_CLAMP).value.lines[0].quantity == 10
    assert set_quantity(cart, LineIdentity("p2"), 1).value.kind == NOT_FOUND


def test_dedupe_lines_merges_and_keeps_first_snapshot(item):
    line = add_line(Cart(), LineRequest(item, 2), (), NOW).value.lines[0]
    dup = replace(line, quantity=3, unit_price=Decimal("900"))
    other = replace(line, color_id="k1", quantity=1)

    assert has_duplicates((line, other, dup))
    merged = dedupe_lines((line, other, dup))
    assert len(merged) == 2
    assert merged[0].quantity == 5
    assert merged[0].unit_price == Decimal("1000")
    assert merged[1] == other
    assert not has_duplicates(merged)


def test_cart_count_and_find(item, black):
    cart = add_line(Cart(), LineRequest(item, 2), (), NOW).value
    cart = add_line(cart, LineRequest(item, 3, color=black), (), NOW).value
    assert cart_count(cart) == 5
    assert find_line(cart, LineIdentity("p1", None, "k1")).get_or_else(None).quantity == 3
    assert find_line(cart, LineIdentity("p1", "v1", None)).is_none()
