"""
Хранилища корзины: одна абстракция CartStore, две реализации.

LocalCartStore  - гостевая корзина в памяти (аналог localStorage вкладки браузера)
SqliteCartStore - сохранённая корзина покупателя, ключ = id покупателя

Правило слияния в хранилищах не живёт: его применяет CartService поверх любого CartStore.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .cart import dedupe_lines, find_line, has_duplicates, put_line, remove_line
from .domain import Cart, CartLine, LineIdentity, Shopper
from .ftypes import Maybe

logger = logging.getLogger(__name__)

GUEST_KEY = "guest"


class CartStore(ABC):
    @abstractmethod
    def lines(self, shopper: Shopper) -> Tuple[CartLine, ...]:
        ...

    @abstractmethod
    def find_line(self, shopper: Shopper, identity: LineIdentity) -> Maybe[CartLine]:
        ...

    @abstractmethod
    def insert_line(self, shopper: Shopper, line: CartLine) -> None:
        ...

    @abstractmethod
    def update_line(
        self, shopper: Shopper, line: CartLine, expected_quantity: Optional[int] = None
    ) -> bool:
        """
        Сравнивающая запись строки с той же идентичностью.
        False, если строки уже нет или её количество уже не expected_quantity
        (кто-то записал между чтением и записью).
        """

    @abstractmethod
    def delete_line(self, shopper: Shopper, identity: LineIdentity) -> None:
        ...

    @abstractmethod
    def clear(self, shopper: Shopper) -> None:
        ...

    def load(self, shopper: Shopper) -> Cart:
        """Корзина с починкой дубликатов на чтении"""
        return Cart(owner=shopper, lines=dedupe_lines(self.lines(shopper)))


# ============ Гостевая корзина ============


class LocalCartStore(CartStore):
    """
    Корзина в памяти. Состояние = словарь неизменяемых Cart,
    каждая запись заменяет корзину целиком.
    """

    def __init__(self):
        self._carts: Dict[str, Cart] = {}

    @staticmethod
    def _key(shopper: Shopper) -> str:
        return GUEST_KEY if shopper.is_anonymous else shopper.id

    def _cart(self, shopper: Shopper) -> Cart:
        return self._carts.get(self._key(shopper), Cart(owner=shopper))

    def lines(self, shopper: Shopper) -> Tuple[CartLine, ...]:
        return self._cart(shopper).lines

    def find_line(self, shopper: Shopper, identity: LineIdentity) -> Maybe[CartLine]:
        return find_line(self.load(shopper), identity)

    def insert_line(self, shopper: Shopper, line: CartLine) -> None:
        cart = self._cart(shopper)
        self._carts[self._key(shopper)] = Cart(owner=shopper, lines=cart.lines + (line,))

    def update_line(
        self, shopper: Shopper, line: CartLine, expected_quantity: Optional[int] = None
    ) -> bool:
        cart = self.load(shopper)
        current = find_line(cart, line.identity)
        if current.is_none():
            return False
        if expected_quantity is not None and current.value.quantity != expected_quantity:
            return False
        self._carts[self._key(shopper)] = put_line(cart, line)
        return True

    def delete_line(self, shopper: Shopper, identity: LineIdentity) -> None:
        self._carts[self._key(shopper)] = remove_line(self._cart(shopper), identity)

    def clear(self, shopper: Shopper) -> None:
        self._carts.pop(self._key(shopper), None)


# ============ Сохранённая корзина покупателя ============

SCHEMA = """
CREATE TABLE IF NOT EXISTS cart_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    product_id TEXT NOT NULL,
    variation_id TEXT,
    color_id TEXT,
    quantity INTEGER NOT NULL,
    unit_price TEXT NOT NULL,
    base_unit_price TEXT NOT NULL,
    discount_percent TEXT,
    product_name TEXT NOT NULL DEFAULT '',
    product_image TEXT,
    variation_name TEXT,
    color_name TEXT,
    color_code TEXT,
    stock_quantity INTEGER,
    added_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_cart_items_user ON cart_items(user_id, product_id);
"""

# NULL-безопасное сравнение идентичности строки
IDENTITY_WHERE = "user_id = ? AND product_id = ? AND variation_id IS ? AND color_id IS ?"


def _identity_params(user_id: str, identity: LineIdentity) -> tuple:
    return (user_id, identity.product_id, identity.variation_id, identity.color_id)


def _row_to_line(row: sqlite3.Row) -> CartLine:
    return CartLine(
        product_id=row["product_id"],
        variation_id=row["variation_id"],
        color_id=row["color_id"],
        quantity=int(row["quantity"]),
        unit_price=Decimal(row["unit_price"]),
        base_unit_price=Decimal(row["base_unit_price"]),
        discount_percent=(
            Decimal(row["discount_percent"]) if row["discount_percent"] is not None else None
        ),
        product_name=row["product_name"],
        product_image=row["product_image"],
        variation_name=row["variation_name"],
        color_name=row["color_name"],
        color_code=row["color_code"],
        stock_quantity=row["stock_quantity"],
    )


def _line_params(user_id: str, line: CartLine) -> tuple:
    return (
        user_id,
        line.product_id,
        line.variation_id,
        line.color_id,
        line.quantity,
        str(line.unit_price),
        str(line.base_unit_price),
        str(line.discount_percent) if line.discount_percent is not None else None,
        line.product_name,
        line.product_image,
        line.variation_name,
        line.color_name,
        line.color_code,
        line.stock_quantity,
    )


INSERT_SQL = (
    "INSERT INTO cart_items(user_id, product_id, variation_id, color_id, quantity, "
    "unit_price, base_unit_price, discount_percent, product_name, product_image, "
    "variation_name, color_name, color_code, stock_quantity) "
    "VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?)"
)


class SqliteCartStore(CartStore):
    """
    Корзина покупателя в SQLite.
    Запись сравнивающая: UPDATE проходит, только если количество строки
    всё ещё то, что сервис прочитал; иначе сервис перечитывает и повторяет.
    Дубликаты от двух одновременных INSERT чинятся на чтении и через repair().
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        folder = os.path.dirname(self.db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _user_id(shopper: Shopper) -> str:
        if shopper.is_anonymous:
            raise ValueError("persisted cart requires an identified shopper")
        return shopper.id

    def lines(self, shopper: Shopper) -> Tuple[CartLine, ...]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM cart_items WHERE user_id = ? ORDER BY id",
                (self._user_id(shopper),),
            ).fetchall()
            return tuple(_row_to_line(r) for r in rows)
        finally:
            conn.close()

    def find_line(self, shopper: Shopper, identity: LineIdentity) -> Maybe[CartLine]:
        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT * FROM cart_items WHERE {IDENTITY_WHERE} ORDER BY id",
                _identity_params(self._user_id(shopper), identity),
            ).fetchall()
        finally:
            conn.close()
        merged = dedupe_lines(_row_to_line(r) for r in rows)
        return Maybe.of(merged[0] if merged else None)

    def insert_line(self, shopper: Shopper, line: CartLine) -> None:
        conn = self._connect()
        try:
            conn.execute(INSERT_SQL, _line_params(self._user_id(shopper), line))
            conn.commit()
        finally:
            conn.close()

    def update_line(
        self, shopper: Shopper, line: CartLine, expected_quantity: Optional[int] = None
    ) -> bool:
        """
        Пишет количество в первую строку с этой идентичностью и удаляет остальные
        (find_line уже вернул их сумму). Сравнение и запись идут в одной
        транзакции BEGIN IMMEDIATE, вторая вкладка ждёт её окончания.
        """
        params = _identity_params(self._user_id(shopper), line.identity)
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(
                f"SELECT id, quantity FROM cart_items WHERE {IDENTITY_WHERE} ORDER BY id",
                params,
            ).fetchall()
            stored = sum(int(r["quantity"]) for r in rows)
            if not rows or (expected_quantity is not None and stored != expected_quantity):
                conn.rollback()
                return False

            first_id = rows[0]["id"]
            conn.execute(
                "UPDATE cart_items SET quantity = ? WHERE id = ?", (line.quantity, first_id)
            )
            conn.execute(
                f"DELETE FROM cart_items WHERE {IDENTITY_WHERE} AND id != ?",
                params + (first_id,),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def delete_line(self, shopper: Shopper, identity: LineIdentity) -> None:
        conn = self._connect()
        try:
            conn.execute(
                f"DELETE FROM cart_items WHERE {IDENTITY_WHERE}",
                _identity_params(self._user_id(shopper), identity),
            )
            conn.commit()
        finally:
            conn.close()

    def clear(self, shopper: Shopper) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "DELETE FROM cart_items WHERE user_id = ?", (self._user_id(shopper),)
            )
            conn.commit()
        finally:
            conn.close()

    def repair(self, shopper: Shopper) -> int:
        """Периодическая починка: переписывает корзину без дубликатов. Возвращает число удалённых строк"""
        current = self.lines(shopper)
        if not has_duplicates(current):
            return 0

        repaired = dedupe_lines(current)
        user_id = self._user_id(shopper)
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM cart_items WHERE user_id = ?", (user_id,))
                conn.executemany(INSERT_SQL, [_line_params(user_id, line) for line in repaired])
        finally:
            conn.close()

        removed = len(current) - len(repaired)
        logger.warning("repaired cart of %s: merged %d duplicate line(s)", user_id, removed)
        return removed

