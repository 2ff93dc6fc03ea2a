from datetime import datetime
from typing import Callable, Iterable, Tuple
from .domain import Promotion
from .ftypes import Maybe


def is_active(promotion: Promotion, now: datetime) -> bool:
    """Акция активна, только если флаг выставлен и end_date строго в будущем"""
    return promotion.is_active and promotion.end_date > now


def active_promotions(
    promotions: Iterable[Promotion], now: datetime
) -> Tuple[Promotion, ...]:
    """То же, что запрос `is_active = true AND end_date > now`, порядок сохраняется"""
    return tuple(filter(lambda p: is_active(p, now), promotions))


# ============ Фильтры-замыкания ============


def for_product(product_id: str) -> Callable[[Promotion], bool]:
    return lambda p: p.product_id == product_id


def is_global() -> Callable[[Promotion], bool]:
    return lambda p: p.is_global


# ============ Выбор акции ============
# Первая найденная побеждает, дубликаты не схлопываем.


def find_item_promotion(
    promotions: Iterable[Promotion], product_id: str
) -> Maybe[Promotion]:
    return Maybe.first(promotions, for_product(product_id))


def find_global_promotion(promotions: Iterable[Promotion]) -> Maybe[Promotion]:
    return Maybe.first(promotions, is_global())
