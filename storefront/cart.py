from dataclasses import replace
from datetime import datetime
from functools import reduce
from typing import Iterable, Optional, Tuple
from .clock import system_clock
from .config import STOCK_CLAMP, STOCK_REJECT
from .domain import Cart, CartLine, LineIdentity, LineRequest, PriceQuote, Promotion
from .errors import CartError, invalid_quantity, not_found, stock_exceeded
from .ftypes import Either, Maybe
from .pricing import quote


# ============ Проверки количества ============


def validate_quantity(quantity) -> Either[CartError, int]:
    """Количество: целое > 0 (bool не считается числом)"""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return Either.left(invalid_quantity())
    if quantity <= 0:
        return Either.left(invalid_quantity())
    return Either.right(quantity)


def available_stock(request: LineRequest) -> int:
    """Остаток самой конкретной конфигурации: цвет -> вариация -> товар"""
    if request.color is not None:
        return request.color.quantity
    if request.variation is not None:
        return request.variation.quantity
    return request.item.stock_quantity


def bound_quantity(
    wanted: int, current: int, available: Optional[int], policy: str = STOCK_REJECT
) -> Either[CartError, int]:
    """
    Итоговое количество строки с учётом остатка.
    reject: больше остатка нельзя. clamp: обрезаем до остатка,
    но если добавить уже нечего, это всё равно ошибка.
    """
    if available is None or wanted <= available:
        return Either.right(wanted)
    if policy == STOCK_CLAMP and current < available:
        return Either.right(available)
    return Either.left(stock_exceeded(available))


# ============ Снапшот строки ============


def snapshot_line(request: LineRequest, price: PriceQuote, quantity: int) -> CartLine:
    item, variation, color = request.item, request.variation, request.color
    return CartLine(
        product_id=item.id,
        variation_id=variation.id if variation else None,
        color_id=color.id if color else None,
        quantity=quantity,
        unit_price=price.final_unit_price,
        base_unit_price=price.unit_price,
        discount_percent=price.discount_percent,
        product_name=item.name,
        product_image=item.images[0] if item.images else None,
        variation_name=variation.name if variation else None,
        color_name=color.name if color else None,
        color_code=color.color_code if color else None,
        stock_quantity=available_stock(request),
    )


def plan_line(
    existing: Maybe[CartLine],
    request: LineRequest,
    promotions: Iterable[Promotion],
    now: datetime,
    policy: str = STOCK_REJECT,
    decimals: int = 0,
) -> Either[CartError, CartLine]:
    """
    Правило слияния, общее для гостевой и сохранённой корзины:
    строка с той же идентичностью -> увеличить количество (снапшот цены не трогаем),
    иначе новая строка со снапшотом цены на момент добавления.
    """

    def merge(qty: int) -> Either[CartError, CartLine]:
        current = existing.map(lambda line: line.quantity).get_or_else(0)
        bounded = bound_quantity(current + qty, current, available_stock(request), policy)
        if existing.is_some():
            return bounded.map(lambda total: replace(existing.value, quantity=total))
        return bounded.map(
            lambda total: snapshot_line(
                request,
                quote(request.item, request.variation, request.color, promotions, now, decimals),
                total,
            )
        )

    return validate_quantity(request.quantity).bind(merge)


# ============ Операции с корзиной (чистые функции) ============


def find_line(cart: Cart, identity: LineIdentity) -> Maybe[CartLine]:
    return Maybe.first(cart.lines, lambda line: line.identity == identity)


def put_line(cart: Cart, line: CartLine) -> Cart:
    """Заменяет строку с той же идентичностью или добавляет в конец"""
    if find_line(cart, line.identity).is_some():
        lines = tuple(
            line if other.identity == line.identity else other for other in cart.lines
        )
    else:
        lines = cart.lines + (line,)
    return Cart(owner=cart.owner, lines=lines)


def add_line(
    cart: Cart,
    request: LineRequest,
    promotions: Iterable[Promotion] = (),
    now: Optional[datetime] = None,
    policy: str = STOCK_REJECT,
    decimals: int = 0,
) -> Either[CartError, Cart]:
    """Возвращает новую корзину; при ошибке исходная корзина не меняется"""
    now = now if now is not None else system_clock()
    existing = find_line(cart, request.identity)
    return plan_line(existing, request, promotions, now, policy, decimals).map(
        lambda line: put_line(cart, line)
    )


def remove_line(cart: Cart, identity: LineIdentity) -> Cart:
    """Удаление идемпотентно: если строки нет, корзина возвращается как есть"""
    if find_line(cart, identity).is_none():
        return cart
    return Cart(
        owner=cart.owner,
        lines=tuple(filter(lambda line: line.identity != identity, cart.lines)),
    )


def edit_quantity(
    line: CartLine, quantity, policy: str = STOCK_REJECT
) -> Either[CartError, Optional[CartLine]]:
    """Явное изменение количества. Right(None) значит «удалить строку»"""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return Either.left(invalid_quantity())
    if quantity <= 0:
        return Either.right(None)
    # при явной правке clamp всегда обрезает до остатка
    return bound_quantity(quantity, 0, line.stock_quantity, policy).map(
        lambda total: replace(line, quantity=total)
    )


def set_quantity(
    cart: Cart, identity: LineIdentity, quantity, policy: str = STOCK_REJECT
) -> Either[CartError, Cart]:
    existing = find_line(cart, identity)
    if existing.is_none():
        return Either.left(not_found("cart line", identity.product_id))
    return edit_quantity(existing.value, quantity, policy).map(
        lambda line: remove_line(cart, identity) if line is None else put_line(cart, line)
    )


# ============ Починка дубликатов ============


def dedupe_lines(lines: Iterable[CartLine]) -> Tuple[CartLine, ...]:
    """
    Схлопывает строки с одинаковой идентичностью (гонки при записи в удалённое хранилище).
    Количества суммируются, снапшот и позиция берутся у первой строки.
    """

    def merge(acc: Tuple[CartLine, ...], line: CartLine) -> Tuple[CartLine, ...]:
        if any(other.identity == line.identity for other in acc):
            return tuple(
                replace(other, quantity=other.quantity + line.quantity)
                if other.identity == line.identity
                else other
                for other in acc
            )
        return acc + (line,)

    return reduce(merge, lines, ())


def has_duplicates(lines: Iterable[CartLine]) -> bool:
    lines = tuple(lines)
    return len({line.identity for line in lines}) != len(lines)


# ============ Агрегаты ============


def cart_count(cart: Cart) -> int:
    """Счётчик для бейджа корзины"""
    return reduce(lambda acc, line: acc + line.quantity, cart.lines, 0)
