# storefront/ftypes.py
# Maybe for lookups (catalog, promotions, cart lines), Either for cart
# operations whose expected failures are CartError values.

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
L = TypeVar("L")
R = TypeVar("R")


@dataclass(frozen=True)
class Maybe(Generic[T]):
    """
    Результат поиска: товар по slug, вариация, активная акция, строка корзины.
    None внутри = «не нашли».
    """

    value: Optional[T]

    def __init__(self, value: Optional[T]):
        object.__setattr__(self, "value", value)

    @staticmethod
    def some(value: T) -> "Maybe[T]":
        return Maybe(value)

    @staticmethod
    def nothing() -> "Maybe[None]":
        return Maybe(None)

    of = some

    @staticmethod
    def first(items: Iterable[T], predicate: Callable[[T], bool]) -> "Maybe[T]":
        """Первый подходящий элемент в порядке источника («first found wins»)"""
        return Maybe(next((x for x in items if predicate(x)), None))

    def is_some(self) -> bool:
        return self.value is not None

    def is_none(self) -> bool:
        return self.value is None

    def map(self, fn: Callable[[T], U]) -> "Maybe[U]":
        return Maybe(fn(self.value)) if self.is_some() else Maybe.nothing()

    def get_or_else(self, default: U) -> T | U:
        return self.value if self.is_some() else default

    def to_optional(self) -> Optional[T]:
        return self.value

    def to_either(self, error: L) -> "Either[L, T]":
        """Не нашли -> Left(error); так поиск встраивается в цепочку корзины"""
        return Either.right(self.value) if self.is_some() else Either.left(error)

    def __repr__(self) -> str:
        return f"Some({self.value})" if self.is_some() else "Nothing"


@dataclass(frozen=True)
class Either(Generic[L, R]):
    """Left = CartError (корзина не меняется), Right = новая корзина или строка"""

    is_left: bool
    value: Union[L, R]

    def __init__(self, is_left: bool, value: Union[L, R]):
        object.__setattr__(self, "is_left", is_left)
        object.__setattr__(self, "value", value)

    @staticmethod
    def left(value: L) -> "Either[L, R]":
        return Either(True, value)

    @staticmethod
    def right(value: R) -> "Either[L, R]":
        return Either(False, value)

    @property
    def is_right(self) -> bool:
        return not self.is_left

    def map(self, fn: Callable[[R], U]) -> "Either[L, U]":
        return self if self.is_left else Either.right(fn(self.value))  # type: ignore[return-value]

    def bind(self, fn: Callable[[R], "Either[L, U]"]) -> "Either[L, U]":
        return self if self.is_left else fn(self.value)  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"Left({self.value})" if self.is_left else f"Right({self.value})"
