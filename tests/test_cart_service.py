"""
Tests for CartService - cart read reconciliation and validated writes.
"""
import threading
from decimal import Decimal

import pytest
from sqlalchemy import select

from cart_service.data.models.cart_item import CartItemModel
from cart_service.domain.availability import MSG_INACTIVE, MSG_OUT_OF_STOCK, MSG_UNAVAILABLE
from cart_service.domain.errors import (
    CartNotFound,
    InsufficientStock,
    ItemNotFound,
    ProductInactive,
    ProductNotFound,
    UpstreamUnavailable,
    ValidationFailed,
)
from cart_service.services.cart_service import CartService


def _stored(session_factory, product_id):
    with session_factory() as s:
        return list(
            s.execute(select(CartItemModel).where(CartItemModel.product_id == product_id)).scalars()
        )


class TestGetCart:
    def test_cart_is_created_lazily(self, cart_service):
        cart = cart_service.get_cart("u1")

        assert cart.user_id == "u1"
        assert cart.items == []
        assert cart.total == Decimal("0.00")
        assert cart_service.get_cart("u1").id == cart.id

    def test_available_item(self, cart_service, catalog):
        catalog.put("p1", name="Mouse", price="49.50", quantity=5, image_url="http://img/m.png")
        cart_service.add_item("u1", "p1", 2)

        cart = cart_service.get_cart("u1")

        [item] = cart.items
        assert item.quantity == 2
        assert item.product_name == "Mouse"
        assert item.product_image_url == "http://img/m.png"
        assert item.available_quantity == 5
        assert not item.is_out_of_stock
        assert not item.is_partially_available
        assert not item.is_unavailable
        assert item.message == ""
        assert cart.total == Decimal("99.00")
        assert cart.total_items == 2

    def test_out_of_stock(self, cart_service, catalog, product_cache):
        catalog.put("p1", quantity=5)
        cart_service.add_item("u1", "p1", 2)
        catalog.put("p1", quantity=0)
        product_cache.invalidate("p1")

        [item] = cart_service.get_cart("u1").items

        assert item.is_out_of_stock
        assert item.available_quantity == 0
        assert item.message == MSG_OUT_OF_STOCK

    def test_inactive_is_out_of_stock(self, cart_service, catalog, product_cache):
        catalog.put("p1", quantity=5)
        cart_service.add_item("u1", "p1", 2)
        catalog.put("p1", quantity=5, is_active=False)
        product_cache.invalidate("p1")

        [item] = cart_service.get_cart("u1").items

        assert item.is_out_of_stock
        assert item.message == MSG_INACTIVE

    def test_partially_available_keeps_requested_quantity(self, cart_service, catalog, product_cache, session_factory):
        catalog.put("p1", quantity=5)
        cart_service.add_item("u1", "p1", 3)
        catalog.put("p1", quantity=1)
        product_cache.invalidate("p1")

        [item] = cart_service.get_cart("u1").items

        assert item.is_partially_available
        assert not item.is_out_of_stock
        assert item.available_quantity == 1
        assert item.quantity == 3
        assert "Only 1 available" in item.message
        assert _stored(session_factory, "p1")[0].quantity == 3

    def test_failed_lookup_keeps_snapshot_and_isolates_other_items(self, cart_service, catalog, cache_store):
        catalog.put("p1", name="Keyboard", price="19.99", quantity=5)
        catalog.put("p2", name="Monitor", price="899.00", quantity=5)
        cart_service.add_item("u1", "p1", 1)
        cart_service.add_item("u1", "p2", 1)

        cache_store.data.pop("product:p1")
        catalog.remove("p1")

        items = {i.product_id: i for i in cart_service.get_cart("u1").items}

        assert items["p1"].is_unavailable
        assert items["p1"].message == MSG_UNAVAILABLE
        assert items["p1"].product_name == "Keyboard"
        assert items["p1"].product_price == Decimal("19.99")
        assert items["p1"].available_quantity is None
        assert not items["p2"].is_unavailable
        assert items["p2"].product_name == "Monitor"

    def test_unreachable_catalog_never_fails_the_read(self, cart_service, catalog, cache_store):
        catalog.put("p1")
        cart_service.add_item("u1", "p1", 1)
        cache_store.data.clear()
        catalog.unreachable = True

        cart = cart_service.get_cart("u1")

        assert cart.items[0].is_unavailable

    def test_live_values_are_not_written_back(self, cart_service, catalog, product_cache, session_factory):
        catalog.put("p1", name="Old", price="10.00", quantity=5)
        cart_service.add_item("u1", "p1", 1)
        catalog.put("p1", name="New", price="12.00", quantity=5)
        product_cache.invalidate("p1")

        [item] = cart_service.get_cart("u1").items

        assert item.product_name == "New"
        stored = _stored(session_factory, "p1")[0]
        assert stored.product_name == "Old"
        assert stored.product_price == Decimal("10.00")

    def test_lookups_past_the_deadline_are_unavailable(self, db, product_cache, catalog, cache_store):
        catalog.put("p1")
        catalog.put("p2")
        svc = CartService(db=db, product_cache=product_cache, read_timeout=0.2)
        svc.add_item("u1", "p1", 1)
        svc.add_item("u1", "p2", 1)
        cache_store.data.clear()

        gate = threading.Event()
        fast_fetch = catalog.fetch_product

        def slow_fetch(product_id):
            if product_id == "p1":
                gate.wait(5)
            return fast_fetch(product_id)

        catalog.fetch_product = slow_fetch
        try:
            items = {i.product_id: i for i in svc.get_cart("u1").items}
        finally:
            gate.set()

        assert items["p1"].is_unavailable
        assert not items["p2"].is_unavailable


class TestAddItem:
    def test_add_is_additive(self, cart_service, catalog, session_factory):
        catalog.put("p1", quantity=5)

        cart_service.add_item("u1", "p1", 2)
        item = cart_service.add_item("u1", "p1", 3)

        assert item.quantity == 5
        stored = _stored(session_factory, "p1")
        assert len(stored) == 1
        assert stored[0].quantity == 5

    def test_exceeding_stock_on_second_add_leaves_state_unchanged(self, cart_service, catalog, session_factory):
        catalog.put("p1", quantity=5)
        cart_service.add_item("u1", "p1", 2)

        with pytest.raises(InsufficientStock) as exc:
            cart_service.add_item("u1", "p1", 4)

        assert (exc.value.requested, exc.value.available) == (6, 5)
        assert _stored(session_factory, "p1")[0].quantity == 2

    def test_exceeding_stock_on_first_add_stores_nothing(self, cart_service, catalog, session_factory):
        catalog.put("p1", quantity=1)

        with pytest.raises(InsufficientStock):
            cart_service.add_item("u1", "p1", 2)

        assert _stored(session_factory, "p1") == []

    def test_snapshot_fields_are_captured(self, cart_service, catalog, session_factory):
        catalog.put("p1", name="Mouse", price="49.50", image_url="http://img/m.png")

        cart_service.add_item("u1", "p1", 1)

        stored = _stored(session_factory, "p1")[0]
        assert (stored.product_name, stored.product_price, stored.product_image_url) == (
            "Mouse",
            Decimal("49.50"),
            "http://img/m.png",
        )

    def test_inactive_product_is_rejected(self, cart_service, catalog):
        catalog.put("p1", is_active=False)

        with pytest.raises(ProductInactive):
            cart_service.add_item("u1", "p1", 1)

    def test_catalog_errors_surface(self, cart_service, catalog):
        with pytest.raises(ProductNotFound):
            cart_service.add_item("u1", "missing", 1)

        catalog.unreachable = True
        with pytest.raises(UpstreamUnavailable):
            cart_service.add_item("u1", "p1", 1)

    def test_non_positive_quantity(self, cart_service):
        with pytest.raises(ValidationFailed):
            cart_service.add_item("u1", "p1", 0)

    def test_concurrent_insert_retries_as_update(self, cart_service, catalog, session_factory):
        catalog.put("p1", quantity=10)
        cart_service.add_item("u1", "p1", 2)

        # pierwszy odczyt "nie widzi" wiersza wstawionego przez inne zapytanie
        real_get = cart_service.repo.get_cart_item
        calls = []

        def racing_get(cart_id, product_id):
            calls.append(product_id)
            if len(calls) == 1:
                return None
            return real_get(cart_id, product_id)

        cart_service.repo.get_cart_item = racing_get

        item = cart_service.add_item("u1", "p1", 3)

        assert item.quantity == 5
        stored = _stored(session_factory, "p1")
        assert len(stored) == 1
        assert stored[0].quantity == 5


class TestUpdateQuantity:
    def test_update_sets_exact_quantity(self, cart_service, catalog, session_factory):
        catalog.put("p1", quantity=10)
        cart_service.add_item("u1", "p1", 2)

        item = cart_service.update_quantity("u1", "p1", 7)

        assert item.quantity == 7
        assert _stored(session_factory, "p1")[0].quantity == 7

    def test_zero_removes_like_remove_item(self, cart_service, catalog, session_factory):
        catalog.put("p1", quantity=10)
        catalog.put("p2", quantity=10)
        cart_service.add_item("u1", "p1", 2)
        cart_service.add_item("u1", "p2", 2)

        assert cart_service.update_quantity("u1", "p1", 0) is None
        cart_service.remove_item("u1", "p2")

        assert _stored(session_factory, "p1") == []
        assert _stored(session_factory, "p2") == []

    def test_above_stock_is_rejected(self, cart_service, catalog, session_factory):
        catalog.put("p1", quantity=3)
        cart_service.add_item("u1", "p1", 2)

        with pytest.raises(InsufficientStock) as exc:
            cart_service.update_quantity("u1", "p1", 4)

        assert (exc.value.requested, exc.value.available) == (4, 3)
        assert _stored(session_factory, "p1")[0].quantity == 2

    def test_missing_cart_and_item(self, cart_service, catalog):
        with pytest.raises(CartNotFound):
            cart_service.update_quantity("nobody", "p1", 1)

        cart_service.get_cart("u1")
        with pytest.raises(ItemNotFound):
            cart_service.update_quantity("u1", "p1", 1)

    def test_negative_quantity(self, cart_service):
        with pytest.raises(ValidationFailed):
            cart_service.update_quantity("u1", "p1", -1)


class TestRemoveAndClear:
    def test_remove_missing(self, cart_service, catalog):
        with pytest.raises(CartNotFound):
            cart_service.remove_item("nobody", "p1")

        catalog.put("p1")
        cart_service.add_item("u1", "p1", 1)
        cart_service.remove_item("u1", "p1")
        with pytest.raises(ItemNotFound):
            cart_service.remove_item("u1", "p1")

    def test_clear_is_idempotent(self, cart_service, catalog):
        catalog.put("p1")
        catalog.put("p2")
        cart_service.add_item("u1", "p1", 1)
        cart_service.add_item("u1", "p2", 1)

        assert cart_service.clear_cart("u1") == 2
        assert cart_service.clear_cart("u1") == 0
        assert cart_service.get_cart("u1").items == []

    def test_clear_without_cart(self, cart_service):
        assert cart_service.clear_cart("nobody") == 0
