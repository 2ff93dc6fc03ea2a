import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import pytest
from storefront.domain import CatalogItem, Color, Promotion, Variation
from storefront.errors import UnresolvedPrice
from storefront.pricing import resolve, resolve_unit_price, round_price, quote, sale_applies

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def item():
    return CatalogItem(id="p1", slug="iphone", name="iPhone", price=Decimal("1000"), stock_quantity=10)


@pytest.fixture
def variation():
    return Variation(id="v1", product_id="p1", name="256GB", price=Decimal("1200"), quantity=5)


@pytest.fixture
def black():
    return Color(id="k1", product_id="p1", name="Black", color_code="#000", price=Decimal("0"), quantity=5)


@pytest.fixture
def gold():
    return Color(id="k2", product_id="p1", name="Gold", color_code="#d4af37", price=Decimal("1500"), quantity=1)


def promo(pid="p1", discount=10, is_global=False, end=NOW + timedelta(days=1), active=True, id="s1"):
    return Promotion(
        id=id,
        discount=Decimal(discount),
        end_date=end,
        product_id=pid,
        is_global=is_global,
        is_active=active,
    )


# ============ Приоритет цены ============


def test_bare_item_without_promotions(item):
    """Без конфигурации и акций итоговая цена равна цене, скидки нет"""
    q = resolve(item)
    assert q.unit_price == Decimal("1000")
    assert q.final_unit_price == q.unit_price
    assert q.discount_percent is None
    assert not q.on_sale


def test_variation_overrides_item_price(item, variation):
    assert resolve_unit_price(item, variation) == Decimal("1200")


def test_positive_color_price_wins(item, variation, gold):
    """Цена цвета > 0 побеждает и вариацию, и товар"""
    assert resolve_unit_price(item, variation, gold) == Decimal("1500")
    assert resolve_unit_price(item, None, gold) == Decimal("1500")


def test_zero_color_price_defers(item, variation, black):
    """Цвет с ценой 0 не бесплатный, а «без переопределения»"""
    assert resolve_unit_price(item, variation, black) == Decimal("1200")
    assert resolve_unit_price(item, None, black) == Decimal("1000")


def test_missing_color_price_defers(item, variation):
    color = Color(id="k3", product_id="p1", name="Titanium", color_code=None, price=None)
    assert resolve_unit_price(item, variation, color) == Decimal("1200")


def test_unresolved_price_raises():
    broken = CatalogItem(id="px", slug="px", name="Broken", price=None)
    with pytest.raises(UnresolvedPrice):
        resolve(broken)


# ============ Скидки ============


def test_example_variation_with_deferring_color(item, variation, black):
    """1000 / 256GB 1200 / Black 0 / акция 10% -> 1200, 1080, 10"""
    q = resolve(item, variation, black, item_promotion=promo())
    assert q.unit_price == Decimal("1200")
    assert q.final_unit_price == Decimal("1080")
    assert q.discount_percent == Decimal("10")
    assert q.savings == Decimal("120")


def test_item_promotion_beats_global(item):
    q = resolve(item, item_promotion=promo(discount=10), global_promotion=promo(pid=None, discount=30, is_global=True))
    assert q.discount_percent == Decimal("10")
    assert q.final_unit_price == Decimal("900")


def test_global_promotion_when_no_item_promotion(item):
    q = resolve(item, global_promotion=promo(pid=None, discount=5, is_global=True))
    assert q.final_unit_price == Decimal("950")
    assert q.discount_percent == Decimal("5")


@pytest.mark.parametrize("discount", [0, -5])
def test_non_positive_discount_is_no_sale(item, discount):
    q = resolve(item, item_promotion=promo(discount=discount))
    assert q.discount_percent is None
    assert q.final_unit_price == q.unit_price


def test_discount_capped_at_hundred(item):
    q = resolve(item, item_promotion=promo(discount=150))
    assert q.final_unit_price == Decimal("0")
    assert q.discount_percent == Decimal("100")


def test_apply_sale_false_on_color_blocks_discount(item, variation):
    color = Color(id="k9", product_id="p1", name="Red", color_code="#f00", price=Decimal("0"), apply_sale=False)
    q = resolve(item, variation, color, item_promotion=promo())
    assert q.final_unit_price == Decimal("1200")
    assert q.discount_percent is None


def test_color_flag_wins_over_variation_flag(item):
    no_sale_var = Variation(id="v9", product_id="p1", name="1TB", price=Decimal("1800"), apply_sale=False)
    color = Color(id="k1", product_id="p1", name="Black", color_code="#000", price=None, apply_sale=True)
    assert sale_applies(no_sale_var, color)
    assert not sale_applies(no_sale_var, None)
    assert sale_applies(None, None)


def test_rounding_to_whole_units(item):
    """999 * 0.85 = 849.15 -> 849; 1001 * 0.5 = 500.5 -> 501 (half up)"""
    cheap = CatalogItem(id="p1", slug="x", name="x", price=Decimal("999"))
    assert resolve(cheap, item_promotion=promo(discount=15)).final_unit_price == Decimal("849")
    odd = CatalogItem(id="p1", slug="x", name="x", price=Decimal("1001"))
    assert resolve(odd, item_promotion=promo(discount=50)).final_unit_price == Decimal("501")


def test_rounding_with_decimals():
    assert round_price(Decimal("849.155"), 2) == Decimal("849.16")


# ============ quote: отбор активных акций по часам ============


def test_quote_ignores_expired_promotion(item):
    """end_date == now считается истёкшей"""
    expired = promo(end=NOW)
    q = quote(item, None, None, (expired,), NOW)
    assert q.discount_percent is None


def test_quote_ignores_inactive_flag(item):
    q = quote(item, None, None, (promo(active=False),), NOW)
    assert q.final_unit_price == Decimal("1000")


def test_quote_first_found_item_promotion_wins(item):
    promos = (promo(discount=20, id="a"), promo(discount=40, id="b"))
    assert quote(item, None, None, promos, NOW).discount_percent == Decimal("20")


def test_quote_falls_back_to_global_when_item_promo_expired(item):
    promos = (
        promo(discount=20, end=NOW - timedelta(seconds=1)),
        promo(pid=None, discount=5, is_global=True, id="g"),
    )
    q = quote(item, None, None, promos, NOW)
    assert q.discount_percent == Decimal("5")
