import sys
import os
import streamlit as st

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.config import settings, setup_logging
from storefront.domain import ANONYMOUS, Shopper
from storefront.transforms import load_seed, by_category, by_price_range
from storefront.service import CatalogService, CartService
from storefront.stores import LocalCartStore, SqliteCartStore
from storefront.events import (
    create_storefront_event_bus,
    initial_state,
    view_content_event,
    add_to_cart_event,
    remove_from_cart_event,
)
from Cart_Service.report import cart_summary, format_price, line_total


# ============ Кэширование данных ============
@st.cache_data
def get_data():
    return load_seed(settings.seed_path)


@st.cache_resource
def get_event_bus():
    return create_storefront_event_bus()


@st.cache_resource
def get_persisted_store():
    return SqliteCartStore(settings.cart_db_path)


# ============ Инициализация ============
setup_logging(settings)

st.set_page_config(
    page_title="Storefront",
    page_icon="🛒",
    layout="wide",
    initial_sidebar_state="expanded",
)

categories, items, promotions = get_data()
catalog = CatalogService(categories, items, promotions)

# гостевая корзина живёт только в этой вкладке
if "guest_store" not in st.session_state:
    st.session_state.guest_store = LocalCartStore()

if "events_state" not in st.session_state:
    st.session_state.events_state = initial_state()


def money(amount) -> str:
    return format_price(amount, settings.currency, settings.price_decimals)


def publish(event):
    st.session_state.events_state = get_event_bus().publish(
        event, st.session_state.events_state
    )


# ============ SIDEBAR ============
with st.sidebar:
    st.header("📂 Навигация")
    page = st.radio(
        "Раздел:",
        ["🏪 Shop", "📱 Product", "🛒 Cart", "⚡ Events"],
        label_visibility="collapsed",
    )

    st.divider()
    shopper_id = st.text_input("Shopper id (пусто = гость)", "")
    shopper = Shopper(shopper_id.strip()) if shopper_id.strip() else ANONYMOUS

store = st.session_state.guest_store if shopper.is_anonymous else get_persisted_store()
carts = CartService(store, catalog)
cart_key = shopper.id or "guest"

with st.sidebar:
    st.metric("🛒 Cart", carts.count(shopper))


def show_add_result(result, item, request):
    if result.is_left:
        st.error(f"❌ {result.value}")
        return
    price = catalog.quote(item, request.variation, request.color)
    publish(
        add_to_cart_event(
            cart_key, request.identity, item, price, request.quantity, settings.currency
        )
    )
    st.success("✅ Added to cart")


# ============ PAGE: SHOP ============
if page == "🏪 Shop":
    st.header("🏪 Shop")

    featured = catalog.featured()
    if featured:
        st.subheader("⭐ Featured")
        cols = st.columns(len(featured))
        for col, (item, price) in zip(cols, featured):
            with col:
                st.markdown(f"**{item.name}**")
                st.write(money(price.final_unit_price))
                if price.on_sale:
                    st.caption(f"-{price.discount_percent}%")
        st.divider()

    col1, col2 = st.columns(2)
    with col1:
        selected_cat = st.selectbox(
            "📂 Category", ["All"] + [c.name for c in categories], key="shop_cat"
        )
    with col2:
        price_range = st.slider("💰 Price", 0, 5000, (0, 5000), step=50, key="shop_price")

    predicates = [by_price_range(*price_range)]
    if selected_cat != "All":
        cat_id = next(c.id for c in categories if c.name == selected_cat)
        predicates.append(by_category(cat_id))

    listing = catalog.listing(*predicates)
    st.info(f"🔍 Found: **{len(listing)}**")

    for item, price in listing:
        cols = st.columns([5, 3, 2])
        with cols[0]:
            st.markdown(f"**{item.name}**")
            if item.stock_quantity == 0:
                st.caption("Out of stock")
        with cols[1]:
            if price.on_sale:
                st.markdown(
                    f"~~{money(price.unit_price)}~~ **{money(price.final_unit_price)}** "
                    f"(-{price.discount_percent}%)"
                )
                st.caption(f"Save {money(price.savings)}")
            else:
                st.write(money(price.unit_price))
        with cols[2]:
            if st.button("➕ Add", key=f"add_{item.id}", disabled=item.stock_quantity == 0):
                request = catalog.request(item.id, 1).value
                show_add_result(carts.add(shopper, request), item, request)
        st.divider()


# ============ PAGE: PRODUCT ============
elif page == "📱 Product":
    slug = st.selectbox("Product", [i.slug for i in items], key="product_slug")
    found = catalog.by_slug(slug)

    if found.is_none():
        st.warning("Product not found")
    else:
        item = found.value
        st.header(item.name)

        variation = None
        if item.variations:
            names = [v.name for v in item.variations]
            picked = st.radio("Storage", names, horizontal=True, key="product_var")
            variation = item.variations[names.index(picked)]

        color = None
        if item.colors:
            names = [c.name for c in item.colors]
            picked = st.radio("Color", names, horizontal=True, key="product_color")
            color = item.colors[names.index(picked)]

        price = catalog.quote(item, variation, color)
        # скрипт перезапускается на каждый клик; просмотр считаем один раз на конфигурацию
        viewed_key = (item.slug, variation.id if variation else None, color.id if color else None)
        if st.session_state.get("last_viewed") != viewed_key:
            st.session_state.last_viewed = viewed_key
            publish(view_content_event(item, price, settings.currency))

        if price.on_sale:
            st.markdown(f"### {money(price.final_unit_price)}  ~~{money(price.unit_price)}~~")
            st.caption(f"-{price.discount_percent}% · Save {money(price.savings)}")
        else:
            st.markdown(f"### {money(price.unit_price)}")

        qty = st.number_input("Quantity", min_value=1, value=1, step=1, key="product_qty")
        st.write(f"Total: **{money(price.final_unit_price * int(qty))}**")

        if st.button("🛒 Add to Cart", type="primary"):
            request = catalog.request(
                item.id,
                int(qty),
                variation.id if variation else None,
                color.id if color else None,
            ).value
            show_add_result(carts.add(shopper, request), item, request)

        related = catalog.related(item)
        if related:
            st.divider()
            st.subheader("Related products")
            cols = st.columns(len(related))
            for col, (other, other_price) in zip(cols, related):
                with col:
                    st.markdown(f"**{other.name}**")
                    st.write(money(other_price.final_unit_price))


# ============ PAGE: CART ============
elif page == "🛒 Cart":
    st.header("🛒 Your cart")

    cart = carts.cart(shopper)
    summary = cart_summary(cart)

    if not cart.lines:
        st.info("🛍️ Cart is empty")
    else:
        for line in cart.lines:
            identity = line.identity
            cols = st.columns([5, 2, 2, 1])
            with cols[0]:
                details = " / ".join(filter(None, [line.variation_name, line.color_name]))
                st.write(f"**{line.product_name}** {details}")
                current = carts.requote(shopper, identity)
                if current.is_some() and current.value.final_unit_price != line.unit_price:
                    st.caption(f"Current price: {money(current.value.final_unit_price)}")
            with cols[1]:
                new_qty = st.number_input(
                    "Qty",
                    min_value=0,
                    value=line.quantity,
                    step=1,
                    key=f"qty_{identity}",
                    label_visibility="collapsed",
                )
                if new_qty != line.quantity:
                    result = carts.set_quantity(shopper, identity, int(new_qty))
                    if result.is_left:
                        st.error(f"❌ {result.value}")
                    else:
                        st.rerun()
            with cols[2]:
                st.write(money(line_total(line)))
            with cols[3]:
                if st.button("🗑️", key=f"remove_{identity}"):
                    carts.remove(shopper, identity)
                    publish(remove_from_cart_event(cart_key, identity, line.quantity))
                    st.rerun()

        st.divider()
        if summary["savings"] > 0:
            st.caption(f"You save {money(summary['savings'])}")
        st.markdown(f"### 💰 Subtotal: **{money(summary['subtotal'])}**")

        if not shopper.is_anonymous and isinstance(store, SqliteCartStore):
            if st.button("🧹 Repair duplicates"):
                removed = store.repair(shopper)
                st.info(f"Merged {removed} duplicate line(s)")


# ============ PAGE: EVENTS ============
elif page == "⚡ Events":
    st.header("⚡ Analytics events")

    state = st.session_state.events_state
    st.metric("🛒 Badge", state.get("badges", {}).get(cart_key, 0))
    st.metric("💰 Added value", money(state.get("added_value", 0)))
    st.metric("👀 Views", len(state.get("viewed", ())))
    st.caption(f"Last event: **{state.get('last_event', 'N/A')}**")
