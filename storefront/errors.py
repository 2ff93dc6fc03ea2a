from dataclasses import dataclass

INVALID_QUANTITY = "invalid_quantity"
STOCK_EXCEEDED = "stock_exceeded"
NOT_FOUND = "not_found"
CONFLICT = "conflict"


class UnresolvedPrice(Exception):
    """Цену определить нельзя: у товара нет базовой цены и нет переопределения"""

    def __init__(self, product_id: str):
        super().__init__(f"no price for product '{product_id}'")
        self.product_id = product_id


@dataclass(frozen=True)
class CartError:
    kind: str
    message: str

    def __str__(self) -> str:
        return self.message


def invalid_quantity() -> CartError:
    return CartError(INVALID_QUANTITY, "quantity must be at least 1")


def stock_exceeded(available: int) -> CartError:
    return CartError(STOCK_EXCEEDED, f"only {max(available, 0)} left")


def not_found(what: str, key: str) -> CartError:
    return CartError(NOT_FOUND, f"{what} '{key}' not found")


def write_conflict() -> CartError:
    return CartError(CONFLICT, "cart changed while saving, try again")
