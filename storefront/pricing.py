"""
Разрешение цены позиции каталога.

Приоритет цены: цвет (если цена > 0) -> вариация -> базовая цена товара.
Скидка: товарная акция важнее глобальной, скидки не суммируются.
Всё считается за единицу товара, умножение на количество делает вызывающий код.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional
from .domain import CatalogItem, Color, PriceQuote, Promotion, Variation
from .errors import UnresolvedPrice
from .promotions import active_promotions, find_global_promotion, find_item_promotion

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


def to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_price(value: Decimal, decimals: int = 0) -> Decimal:
    """Округление до единиц валюты (без дробных частей в отображаемой валюте)"""
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def has_color_override(color: Optional[Color]) -> bool:
    # цена цвета 0 или меньше означает «нет переопределения», а не «бесплатно»
    price = to_decimal(color.price) if color else None
    return price is not None and price > 0


def resolve_unit_price(
    item: CatalogItem,
    variation: Optional[Variation] = None,
    color: Optional[Color] = None,
) -> Decimal:
    if has_color_override(color):
        price = to_decimal(color.price)
    elif variation is not None:
        price = to_decimal(variation.price)
    else:
        price = to_decimal(item.price)

    if price is None:
        raise UnresolvedPrice(item.id)
    return price


def sale_applies(
    variation: Optional[Variation] = None, color: Optional[Color] = None
) -> bool:
    """Флаг apply_sale самой конкретной выбранной конфигурации"""
    if color is not None:
        return color.apply_sale
    if variation is not None:
        return variation.apply_sale
    return True


def effective_percent(promotion: Optional[Promotion]) -> Optional[Decimal]:
    if promotion is None:
        return None
    percent = to_decimal(promotion.discount)
    if percent is None or percent <= 0:
        return None
    return min(percent, HUNDRED)


def resolve(
    item: CatalogItem,
    variation: Optional[Variation] = None,
    color: Optional[Color] = None,
    item_promotion: Optional[Promotion] = None,
    global_promotion: Optional[Promotion] = None,
    decimals: int = 0,
) -> PriceQuote:
    """
    Итоговая цена за единицу.
    Промо передаются уже отобранными как активные.
    discount_percent = None, если скидка не применяется (не 0).
    """
    unit_price = resolve_unit_price(item, variation, color)

    if not sale_applies(variation, color):
        return PriceQuote(unit_price=unit_price, final_unit_price=unit_price)

    selected = item_promotion if item_promotion is not None else global_promotion
    percent = effective_percent(selected)
    if percent is None:
        return PriceQuote(unit_price=unit_price, final_unit_price=unit_price)

    final = round_price(unit_price * (1 - percent / HUNDRED), decimals)
    return PriceQuote(
        unit_price=unit_price, final_unit_price=final, discount_percent=percent
    )


def quote(
    item: CatalogItem,
    variation: Optional[Variation],
    color: Optional[Color],
    promotions: Iterable[Promotion],
    now: datetime,
    decimals: int = 0,
) -> PriceQuote:
    """Отбирает активные акции на момент now и считает цену"""
    active = active_promotions(promotions, now)
    by_item = find_item_promotion(active, item.id).to_optional()
    store_wide = find_global_promotion(active).to_optional()
    result = resolve(item, variation, color, by_item, store_wide, decimals)
    logger.debug(
        "quote %s var=%s color=%s -> %s (%s%%)",
        item.id,
        variation.id if variation else None,
        color.id if color else None,
        result.final_unit_price,
        result.discount_percent,
    )
    return result
