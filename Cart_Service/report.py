from decimal import Decimal, ROUND_HALF_UP
from functools import reduce
from typing import List
from storefront.domain import Cart, CartLine, PriceQuote


# ============ Форматирование ============


def format_price(amount, currency: str = "AED", decimals: int = 0) -> str:
    """
    Цена для отображения: символ валюты + разделители тысяч.
    AED выводится как «د.إ», остальные валюты кодом.
    """
    symbol = "د.إ" if currency == "AED" else currency
    value = Decimal(str(amount)).quantize(
        Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP
    )
    return f"{symbol} {value:,.{decimals}f}"


# ============ Строки корзины ============


def line_total(line: CartLine) -> Decimal:
    """Сумма строки по снапшоту цены"""
    return line.unit_price * line.quantity


def line_savings(line: CartLine) -> Decimal:
    return (line.base_unit_price - line.unit_price) * line.quantity


def line_report(line: CartLine) -> dict:
    return {
        "product_id": line.product_id,
        "name": line.product_name,
        "variation": line.variation_name,
        "color": line.color_name,
        "color_code": line.color_code,
        "image": line.product_image,
        "quantity": line.quantity,
        "unit_price": line.unit_price,
        "discount_percent": line.discount_percent,
        "total": line_total(line),
    }


# ============ Корзина целиком ============


def cart_subtotal(cart: Cart) -> Decimal:
    return reduce(lambda acc, line: acc + line_total(line), cart.lines, Decimal(0))


def cart_savings(cart: Cart) -> Decimal:
    return reduce(lambda acc, line: acc + line_savings(line), cart.lines, Decimal(0))


def cart_summary(cart: Cart) -> dict:
    """Сводка для страницы корзины и бейджа"""
    return {
        "owner": cart.owner.id,
        "lines": [line_report(line) for line in cart.lines],
        "line_count": len(cart.lines),
        "item_count": sum(line.quantity for line in cart.lines),
        "subtotal": cart_subtotal(cart),
        "savings": cart_savings(cart),
    }


def stale_lines(cart: Cart, current: List[PriceQuote]) -> List[CartLine]:
    """
    Строки, у которых снапшот цены расходится с текущей ценой.
    current идёт в том же порядке, что и cart.lines.
    """
    return [
        line
        for line, price in zip(cart.lines, current)
        if line.unit_price != price.final_unit_price
    ]
