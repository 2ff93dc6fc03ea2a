from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple, Dict


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    slug: str


@dataclass(frozen=True)
class Variation:
    id: str
    product_id: str
    name: str
    price: Decimal
    quantity: int = 0  # остаток на складе
    apply_sale: bool = True
    sort_order: int = 0


@dataclass(frozen=True)
class Color:
    id: str
    product_id: str
    name: str
    color_code: Optional[str]
    price: Optional[Decimal] = None  # <= 0 или None: берём цену вариации/товара
    quantity: int = 0
    apply_sale: bool = True
    sort_order: int = 0


@dataclass(frozen=True)
class CatalogItem:
    id: str
    slug: str
    name: str
    price: Optional[Decimal]
    category_id: Optional[str] = None
    stock_quantity: int = 0
    images: Tuple[str, ...] = ()
    variations: Tuple[Variation, ...] = ()
    colors: Tuple[Color, ...] = ()
    is_featured: bool = False


@dataclass(frozen=True)
class Promotion:
    id: str
    discount: Decimal  # проценты
    end_date: datetime
    product_id: Optional[str] = None
    is_global: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class PriceQuote:
    unit_price: Decimal
    final_unit_price: Decimal
    discount_percent: Optional[Decimal] = None  # None = распродажи нет

    @property
    def on_sale(self) -> bool:
        return self.discount_percent is not None

    @property
    def savings(self) -> Decimal:
        return self.unit_price - self.final_unit_price


@dataclass(frozen=True)
class Shopper:
    id: Optional[str] = None  # None = гость

    @property
    def is_anonymous(self) -> bool:
        return self.id is None


ANONYMOUS = Shopper()


@dataclass(frozen=True)
class LineIdentity:
    product_id: str
    variation_id: Optional[str] = None
    color_id: Optional[str] = None


@dataclass(frozen=True)
class LineRequest:
    item: CatalogItem
    quantity: int
    variation: Optional[Variation] = None
    color: Optional[Color] = None

    @property
    def identity(self) -> LineIdentity:
        return LineIdentity(
            product_id=self.item.id,
            variation_id=self.variation.id if self.variation else None,
            color_id=self.color.id if self.color else None,
        )


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: Decimal  # снапшот итоговой цены на момент добавления
    base_unit_price: Decimal
    variation_id: Optional[str] = None
    color_id: Optional[str] = None
    discount_percent: Optional[Decimal] = None
    product_name: str = ""
    product_image: Optional[str] = None
    variation_name: Optional[str] = None
    color_name: Optional[str] = None
    color_code: Optional[str] = None
    stock_quantity: Optional[int] = None

    @property
    def identity(self) -> LineIdentity:
        return LineIdentity(self.product_id, self.variation_id, self.color_id)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Cart:
    owner: Shopper = ANONYMOUS
    lines: Tuple[CartLine, ...] = ()


@dataclass(frozen=True)
class Event:
    id: str
    ts: str
    name: str
    payload: Dict = field(default_factory=dict)
