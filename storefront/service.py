import logging
from typing import Callable, Optional, Tuple
from .cart import cart_count, edit_quantity, plan_line
from .clock import Clock, system_clock
from .config import Settings, settings as default_settings
from .domain import (
    Cart,
    CartLine,
    CatalogItem,
    Category,
    Color,
    LineIdentity,
    LineRequest,
    PriceQuote,
    Promotion,
    Shopper,
    Variation,
)
from .errors import CartError, UnresolvedPrice, not_found, write_conflict
from .ftypes import Either, Maybe
from .pricing import quote
from .promotions import active_promotions
from .stores import CartStore
from .transforms import (
    all_of,
    by_category,
    is_featured,
    safe_color,
    safe_item,
    safe_item_by_slug,
    safe_variation,
)

logger = logging.getLogger(__name__)

WRITE_ATTEMPTS = 3
RELATED_LIMIT = 4
FEATURED_LIMIT = 4


class CatalogService:
    """Фасад каталога: поиск товаров и цены с учётом акций"""

    def __init__(
        self,
        categories: Tuple[Category, ...],
        items: Tuple[CatalogItem, ...],
        promotions: Tuple[Promotion, ...] = (),
        clock: Clock = system_clock,
        settings: Settings = default_settings,
    ):
        self.categories = categories
        self.items = items
        self.promotions = promotions
        self.clock = clock
        self.settings = settings

    def by_id(self, pid: str) -> Maybe[CatalogItem]:
        return safe_item(self.items, pid)

    def by_slug(self, slug: str) -> Maybe[CatalogItem]:
        return safe_item_by_slug(self.items, slug)

    def category_by_slug(self, slug: str) -> Maybe[Category]:
        return Maybe.first(self.categories, lambda c: c.slug == slug)

    def active_promotions(self) -> Tuple[Promotion, ...]:
        return active_promotions(self.promotions, self.clock())

    def quote(
        self,
        item: CatalogItem,
        variation: Optional[Variation] = None,
        color: Optional[Color] = None,
    ) -> PriceQuote:
        return quote(
            item, variation, color, self.promotions, self.clock(), self.settings.price_decimals
        )

    def filter_items(self, *predicates: Callable[[CatalogItem], bool]) -> Tuple[CatalogItem, ...]:
        return tuple(filter(all_of(*predicates), self.items))

    def listing(
        self, *predicates: Callable[[CatalogItem], bool]
    ) -> Tuple[Tuple[CatalogItem, PriceQuote], ...]:
        """Витрина: товары без выбранной конфигурации и их цены"""
        return tuple((item, self.quote(item)) for item in self.filter_items(*predicates))

    def featured(self, limit: int = FEATURED_LIMIT) -> Tuple[Tuple[CatalogItem, PriceQuote], ...]:
        """Витрина главной: отмеченные is_featured, первые limit в порядке каталога"""
        return self.listing(is_featured())[:limit]

    def related(
        self, item: CatalogItem, limit: int = RELATED_LIMIT
    ) -> Tuple[Tuple[CatalogItem, PriceQuote], ...]:
        """Товары той же категории без самого item; у товара без категории похожих нет"""
        if item.category_id is None:
            return ()
        others = self.listing(by_category(item.category_id), lambda p: p.id != item.id)
        return others[:limit]

    def request(
        self,
        product_id: str,
        quantity: int,
        variation_id: Optional[str] = None,
        color_id: Optional[str] = None,
    ) -> Either[CartError, LineRequest]:
        """Собирает LineRequest по id; неизвестные id -> Left(not_found)"""
        item = self.by_id(product_id)
        if item.is_none():
            return Either.left(not_found("product", product_id))
        variation = safe_variation(item.value, variation_id)
        if variation_id is not None and variation.is_none():
            return Either.left(not_found("variation", variation_id))
        color = safe_color(item.value, color_id)
        if color_id is not None and color.is_none():
            return Either.left(not_found("color", color_id))
        return Either.right(
            LineRequest(
                item=item.value,
                quantity=quantity,
                variation=variation.to_optional(),
                color=color.to_optional(),
            )
        )


class CartService:
    """
    Сверка корзины поверх любого CartStore (гостевого или сохранённого).
    Покупатель передаётся явно в каждый вызов.

    Каталог даёт акции, часы и настройки (политика остатков, точность цены).
    Запись существующей строки сравнивающая: если между чтением и записью
    строку поменяли, перечитываем и пересчитываем, не больше WRITE_ATTEMPTS раз.
    """

    def __init__(self, store: CartStore, catalog: CatalogService):
        self.store = store
        self.catalog = catalog

    @property
    def policy(self) -> str:
        return self.catalog.settings.stock_policy

    def cart(self, shopper: Shopper) -> Cart:
        return self.store.load(shopper)

    def count(self, shopper: Shopper) -> int:
        return cart_count(self.cart(shopper))

    def _plan(self, existing: Maybe[CartLine], request: LineRequest) -> Either[CartError, CartLine]:
        try:
            return plan_line(
                existing,
                request,
                self.catalog.promotions,
                self.catalog.clock(),
                self.policy,
                self.catalog.settings.price_decimals,
            )
        except UnresolvedPrice:
            logger.exception("cannot price %s, cart left untouched", request.identity)
            raise

    def add(self, shopper: Shopper, request: LineRequest) -> Either[CartError, Cart]:
        """
        Читаем строку-кандидата непосредственно перед записью,
        затем update-если-не-изменилась, иначе insert.
        """
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            existing = self.store.find_line(shopper, request.identity)
            planned = self._plan(existing, request)
            if planned.is_left:
                logger.info("add rejected for %s: %s", request.identity, planned.value)
                return planned

            line = planned.value
            if existing.is_none():
                self.store.insert_line(shopper, line)
                logger.debug("inserted %s qty %d at %s", line.identity, line.quantity, line.unit_price)
                return Either.right(self.store.load(shopper))

            if self.store.update_line(shopper, line, existing.value.quantity):
                logger.debug("merged %s -> qty %d", line.identity, line.quantity)
                return Either.right(self.store.load(shopper))

            logger.info("line %s changed before write, retry %d", request.identity, attempt)

        logger.warning("gave up adding %s after %d attempts", request.identity, WRITE_ATTEMPTS)
        return Either.left(write_conflict())

    def add_by_id(
        self,
        shopper: Shopper,
        product_id: str,
        quantity: int,
        variation_id: Optional[str] = None,
        color_id: Optional[str] = None,
    ) -> Either[CartError, Cart]:
        return self.catalog.request(product_id, quantity, variation_id, color_id).bind(
            lambda req: self.add(shopper, req)
        )

    def remove(self, shopper: Shopper, identity: LineIdentity) -> Cart:
        self.store.delete_line(shopper, identity)
        return self.store.load(shopper)

    def set_quantity(
        self, shopper: Shopper, identity: LineIdentity, quantity
    ) -> Either[CartError, Cart]:
        """Явная правка количества. Строку, которой уже нет, не создаём заново"""
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            existing = self.store.find_line(shopper, identity).to_either(
                not_found("cart line", identity.product_id)
            )
            edited = existing.bind(lambda line: edit_quantity(line, quantity, self.policy))
            if edited.is_left:
                return edited

            if edited.value is None:
                self.store.delete_line(shopper, identity)
                return Either.right(self.store.load(shopper))

            if self.store.update_line(shopper, edited.value, existing.value.quantity):
                return Either.right(self.store.load(shopper))

            logger.info("line %s changed before edit, retry %d", identity, attempt)

        logger.warning("gave up editing %s after %d attempts", identity, WRITE_ATTEMPTS)
        return Either.left(write_conflict())

    def clear(self, shopper: Shopper) -> None:
        self.store.clear(shopper)

    def requote(self, shopper: Shopper, identity: LineIdentity) -> Maybe[PriceQuote]:
        """
        Текущая цена строки по действующим акциям. Снапшот строки не меняется:
        нужно, чтобы показать, что цена в корзине устарела.
        """
        if self.store.find_line(shopper, identity).is_none():
            return Maybe.nothing()
        request = self.catalog.request(
            identity.product_id, 1, identity.variation_id, identity.color_id
        )
        if request.is_left:
            return Maybe.nothing()
        req = request.value
        return Maybe.some(self.catalog.quote(req.item, req.variation, req.color))
