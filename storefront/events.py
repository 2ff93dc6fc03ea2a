from dataclasses import dataclass
from functools import reduce
from typing import Callable, Tuple
from .clock import Clock, system_clock
from .domain import CatalogItem, Event, LineIdentity, PriceQuote
import uuid

VIEW_CONTENT = "VIEW_CONTENT"
ADD_TO_CART = "ADD_TO_CART"
REMOVE_FROM_CART = "REMOVE_FROM_CART"


@dataclass(frozen=True)
class EventBus:
    """
    Иммутабельная шина событий витрины.
    Подписчики - чистые функции: (Event, State) -> State
    """

    subscribers: Tuple[Tuple[str, Callable], ...] = ()

    def subscribe(
        self, event_name: str, handler: Callable[[Event, dict], dict]
    ) -> "EventBus":
        return EventBus(subscribers=self.subscribers + ((event_name, handler),))

    def publish(self, event: Event, state: dict) -> dict:
        matching_handlers = tuple(
            handler for name, handler in self.subscribers if name == event.name
        )
        return reduce(lambda s, handler: handler(event, s), matching_handlers, state)


def create_event(name: str, payload: dict, clock: Clock = system_clock) -> Event:
    return Event(id=str(uuid.uuid4()), ts=clock().isoformat(), name=name, payload=payload)


# ============ Полезная нагрузка для пикселей ============
# value всегда итоговая цена за единицу (final_unit_price), не базовая.


def view_content_event(
    item: CatalogItem, price: PriceQuote, currency: str, clock: Clock = system_clock
) -> Event:
    return create_event(
        VIEW_CONTENT,
        {
            "content_id": item.id,
            "content_name": item.name,
            "value": price.final_unit_price,
            "currency": currency,
        },
        clock,
    )


def add_to_cart_event(
    cart_key: str,
    identity: LineIdentity,
    item: CatalogItem,
    price: PriceQuote,
    quantity: int,
    currency: str,
    clock: Clock = system_clock,
) -> Event:
    return create_event(
        ADD_TO_CART,
        {
            "cart_key": cart_key,
            "content_id": item.id,
            "content_name": item.name,
            "variation_id": identity.variation_id,
            "color_id": identity.color_id,
            "quantity": quantity,
            "value": price.final_unit_price,
            "currency": currency,
        },
        clock,
    )


def remove_from_cart_event(
    cart_key: str, identity: LineIdentity, quantity: int, clock: Clock = system_clock
) -> Event:
    return create_event(
        REMOVE_FROM_CART,
        {
            "cart_key": cart_key,
            "content_id": identity.product_id,
            "quantity": quantity,
        },
        clock,
    )


# ============ Чистые обработчики ============


def handle_view_content(event: Event, state: dict) -> dict:
    return {
        **state,
        "viewed": state.get("viewed", ()) + (event.payload["content_id"],),
        "last_event": event.name,
    }


def handle_add_to_cart(event: Event, state: dict) -> dict:
    """Обновляет счётчик бейджа корзины и копит сумму добавлений по итоговой цене"""
    cart_key = event.payload["cart_key"]
    qty = event.payload.get("quantity", 1)
    badges = state.get("badges", {})

    return {
        **state,
        "badges": {**badges, cart_key: badges.get(cart_key, 0) + qty},
        "added_value": state.get("added_value", 0) + event.payload["value"] * qty,
        "last_event": event.name,
    }


def handle_remove_from_cart(event: Event, state: dict) -> dict:
    cart_key = event.payload["cart_key"]
    badges = state.get("badges", {})
    left = max(badges.get(cart_key, 0) - event.payload.get("quantity", 0), 0)

    return {
        **state,
        "badges": {**badges, cart_key: left},
        "last_event": event.name,
    }


def create_storefront_event_bus() -> EventBus:
    bus = EventBus()
    bus = bus.subscribe(VIEW_CONTENT, handle_view_content)
    bus = bus.subscribe(ADD_TO_CART, handle_add_to_cart)
    bus = bus.subscribe(REMOVE_FROM_CART, handle_remove_from_cart)
    return bus


def initial_state() -> dict:
    return {
        "badges": {},
        "viewed": (),
        "added_value": 0,
        "last_event": None,
    }


def apply_events(bus: EventBus, events: Tuple[Event, ...], state: dict) -> dict:
    return reduce(lambda s, e: bus.publish(e, s), events, state)
