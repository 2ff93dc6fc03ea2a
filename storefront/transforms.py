import json
from datetime import datetime, timezone
from decimal import Decimal
from functools import reduce
from typing import Callable, Iterable, Optional, Tuple
from .ftypes import Maybe
from .domain import CatalogItem, Category, Color, Promotion, Variation


def _decimal(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def parse_ts(value: str) -> datetime:
    """ISO-время; без зоны считаем UTC"""
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _to_variation(v: dict) -> Variation:
    return Variation(
        id=str(v["id"]),
        product_id=str(v["product_id"]),
        name=v["name"],
        price=_decimal(v["price"]),
        quantity=int(v.get("quantity", 0)),
        apply_sale=v.get("apply_sale", True) is not False,
        sort_order=int(v.get("sort_order", 0)),
    )


def _to_color(c: dict) -> Color:
    return Color(
        id=str(c["id"]),
        product_id=str(c["product_id"]),
        name=c["name"],
        color_code=c.get("color_code"),
        price=_decimal(c.get("price")),
        quantity=int(c.get("quantity", 0)),
        apply_sale=c.get("apply_sale", True) is not False,
        sort_order=int(c.get("sort_order", 0)),
    )


def _by_sort_order(items):
    return tuple(sorted(items, key=lambda x: x.sort_order))


def _to_item(p: dict) -> CatalogItem:
    pid = str(p["id"])
    return CatalogItem(
        id=pid,
        slug=p.get("slug", pid),
        name=p["name"],
        price=_decimal(p.get("price")),
        category_id=p.get("category_id"),
        stock_quantity=int(p.get("stock_quantity", 0)),
        images=tuple(p.get("images", [])),
        variations=_by_sort_order(map(_to_variation, p.get("variations", []))),
        colors=_by_sort_order(map(_to_color, p.get("colors", []))),
        is_featured=bool(p.get("is_featured", False)),
    )


def _to_promotion(s: dict) -> Promotion:
    return Promotion(
        id=str(s["id"]),
        discount=_decimal(s["discount"]),
        end_date=parse_ts(s["end_date"]),
        product_id=s.get("product_id"),
        is_global=bool(s.get("is_global", False)),
        is_active=bool(s.get("is_active", True)),
    )


def load_seed(
    path: str,
) -> Tuple[Tuple[Category, ...], Tuple[CatalogItem, ...], Tuple[Promotion, ...]]:
    """Загружает seed.json: категории, товары (с вариациями и цветами), акции"""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    categories = tuple(map(lambda c: Category(**c), data.get("categories", [])))
    items = tuple(map(_to_item, data.get("products", [])))
    promotions = tuple(map(_to_promotion, data.get("sales", [])))
    return categories, items, promotions


# ============ Замыкания-фильтры (HOF) ============


def by_category(cat_id: str) -> Callable[[CatalogItem], bool]:
    return lambda p: p.category_id == cat_id


def by_price_range(min_price, max_price) -> Callable[[CatalogItem], bool]:
    """Фильтр по базовой цене, как в запросе витрины (gte/lte)"""
    lo, hi = Decimal(str(min_price)), Decimal(str(max_price))
    return lambda p: p.price is not None and lo <= p.price <= hi


def in_stock() -> Callable[[CatalogItem], bool]:
    return lambda p: p.stock_quantity > 0


def is_featured() -> Callable[[CatalogItem], bool]:
    return lambda p: p.is_featured


def all_of(*predicates: Callable[[CatalogItem], bool]) -> Callable[[CatalogItem], bool]:
    return reduce(lambda f, g: lambda p: f(p) and g(p), predicates, lambda p: True)


# ============ Безопасный поиск (Maybe) ============


def safe_item(items: Iterable[CatalogItem], pid: str) -> Maybe[CatalogItem]:
    return Maybe.first(items, lambda p: p.id == pid)


def safe_item_by_slug(items: Iterable[CatalogItem], slug: str) -> Maybe[CatalogItem]:
    return Maybe.first(items, lambda p: p.slug == slug)


def safe_variation(item: CatalogItem, vid: Optional[str]) -> Maybe[Variation]:
    if vid is None:
        return Maybe.nothing()
    return Maybe.first(item.variations, lambda v: v.id == vid)


def safe_color(item: CatalogItem, cid: Optional[str]) -> Maybe[Color]:
    if cid is None:
        return Maybe.nothing()
    return Maybe.first(item.colors, lambda c: c.id == cid)
