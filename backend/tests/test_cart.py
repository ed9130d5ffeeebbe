# Overview: Pytest coverage for storefront carts and checkout.

"""
Cart and Checkout Tests

Carts are soft reservations: adding checks stock but holds nothing.
Checkout runs the order commit engine and closes the cart atomically.
"""

from datetime import timedelta

import pytest

from shopcore.errors import (
    CartNotActiveError,
    CrossTenantError,
    EmptyCartError,
    InsufficientStockError,
    InvalidInputError,
    NotFoundError,
)
from shopcore.models import Cart, CartItem, Order, ProductVariant
from shopcore.services import cart_service, catalog_service, stock_service
from shopcore.time_utils import utcnow


SESSION = "sess-123"


def _add(org, product, variant, quantity, session_id=SESSION):
    return cart_service.add_item(
        org_id=org.id,
        session_id=session_id,
        product_id=product.id,
        variant_id=variant.id,
        quantity=quantity,
    )


class TestAddItem:

    def test_first_add_creates_cart(self, db_session, org_a, product_a, variant_a):
        cart = _add(org_a, product_a, variant_a, 2)

        assert cart.status == "active"
        assert cart.org_id == org_a.id
        assert cart.session_id == SESSION
        items = db_session.query(CartItem).filter_by(cart_id=cart.id).all()
        assert [(i.variant_id, i.quantity) for i in items] == [(variant_a.id, 2)]

    def test_readd_increases_quantity(self, db_session, org_a, product_a, variant_a):
        cart = _add(org_a, product_a, variant_a, 2)
        again = _add(org_a, product_a, variant_a, 3)

        assert again.id == cart.id
        item = db_session.query(CartItem).filter_by(cart_id=cart.id).one()
        assert item.quantity == 5

    def test_combined_quantity_cannot_exceed_stock(self, db_session, org_a, product_a, variant_a2):
        _add(org_a, product_a, variant_a2, 2)
        with pytest.raises(InsufficientStockError) as exc:
            _add(org_a, product_a, variant_a2, 2)

        assert str(exc.value) == "Insufficient stock. Only 3 available."
        cart = cart_service.get_cart(SESSION, org_a.id)
        assert cart["items"][0]["quantity"] == 2

    def test_add_does_not_touch_stock(self, db_session, org_a, product_a, variant_a):
        _add(org_a, product_a, variant_a, 4)
        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 10

    def test_same_last_unit_in_two_carts(self, db_session, org_a, product_a, variant_a2):
        """Soft reservation: both sessions may hold all remaining stock."""
        _add(org_a, product_a, variant_a2, 3, session_id="shopper-1")
        _add(org_a, product_a, variant_a2, 3, session_id="shopper-2")
        assert db_session.query(Cart).filter_by(status="active").count() == 2

    @pytest.mark.parametrize("quantity", [0, -2, "x"])
    def test_bad_quantity(self, db_session, org_a, product_a, variant_a, quantity):
        with pytest.raises(InvalidInputError):
            _add(org_a, product_a, variant_a, quantity)

    def test_unknown_variant(self, db_session, org_a, product_a):
        with pytest.raises(NotFoundError) as exc:
            cart_service.add_item(
                org_id=org_a.id, session_id=SESSION, product_id=product_a.id, variant_id=8888, quantity=1
            )
        assert str(exc.value) == "Product or variant not found"
        assert db_session.query(Cart).count() == 0

    def test_product_of_other_tenant(self, db_session, org_a, product_b, variant_b):
        with pytest.raises(CrossTenantError):
            _add(org_a, product_b, variant_b, 1)
        assert db_session.query(Cart).count() == 0

    def test_variant_of_other_product(self, db_session, org_a, product_a, variant_b):
        with pytest.raises(CrossTenantError):
            _add(org_a, product_a, variant_b, 1)


class TestUpdateAndRemove:

    def test_update_quantity(self, db_session, org_a, product_a, variant_a):
        cart = _add(org_a, product_a, variant_a, 1)
        cart_service.update_quantity(cart_id=cart.id, variant_id=variant_a.id, quantity=4)
        assert cart_service.get_cart(SESSION)["items"][0]["quantity"] == 4

    def test_update_to_zero_removes(self, db_session, org_a, product_a, variant_a):
        cart = _add(org_a, product_a, variant_a, 1)
        cart_service.update_quantity(cart_id=cart.id, variant_id=variant_a.id, quantity=0)
        assert cart_service.get_cart(SESSION)["items"] == []

    def test_update_above_stock(self, db_session, org_a, product_a, variant_a2):
        cart = _add(org_a, product_a, variant_a2, 1)
        with pytest.raises(InsufficientStockError):
            cart_service.update_quantity(cart_id=cart.id, variant_id=variant_a2.id, quantity=4)

    def test_update_item_not_in_cart(self, db_session, org_a, product_a, variant_a, variant_a2):
        cart = _add(org_a, product_a, variant_a, 1)
        with pytest.raises(NotFoundError) as exc:
            cart_service.update_quantity(cart_id=cart.id, variant_id=variant_a2.id, quantity=1)
        assert str(exc.value) == "Item not in cart"

    def test_remove_item(self, db_session, org_a, product_a, variant_a, variant_a2):
        cart = _add(org_a, product_a, variant_a, 1)
        _add(org_a, product_a, variant_a2, 1)
        cart_service.remove_item(cart_id=cart.id, variant_id=variant_a.id)

        items = cart_service.get_cart(SESSION)["items"]
        assert [i["variant_id"] for i in items] == [variant_a2.id]

    def test_cart_of_other_store_is_not_active(self, db_session, org_a, org_b, product_a, variant_a):
        cart = _add(org_a, product_a, variant_a, 1)
        with pytest.raises(CartNotActiveError):
            cart_service.update_quantity(cart_id=cart.id, variant_id=variant_a.id, quantity=2, org_id=org_b.id)


class TestCartView:

    def test_hydrated_lines_and_totals(self, db_session, org_a, product_a, variant_a, variant_a2):
        _add(org_a, product_a, variant_a, 2)
        _add(org_a, product_a, variant_a2, 1)

        cart = cart_service.get_cart(SESSION, org_a.id)
        first, second = cart["items"]
        assert first["name"] == "Trail Tee - Red"
        assert first["sku"] == "TEE-RED"
        assert first["price_cents"] == 1000
        assert first["line_total_cents"] == 2000
        assert first["max_stock"] == 10
        assert second["price_cents"] == 1500
        assert cart["total_amount_cents"] == 3500
        assert cart["total_items"] == 3

    def test_standard_variant_uses_product_name(self, db_session, org_b, product_b, variant_b):
        _add(org_b, product_b, variant_b, 1)
        cart = cart_service.get_cart(SESSION, org_b.id)
        assert cart["items"][0]["name"] == "Beta Mug"

    def test_live_prices(self, db_session, org_a, product_a, variant_a):
        _add(org_a, product_a, variant_a, 1)
        variant = db_session.get(ProductVariant, variant_a.id)
        variant.price_cents = 1200
        db_session.commit()
        assert cart_service.get_cart(SESSION)["total_amount_cents"] == 1200

    def test_deleted_variant_dropped(self, db_session, org_a, admin_a, product_a, variant_a, variant_a2):
        _add(org_a, product_a, variant_a, 1)
        _add(org_a, product_a, variant_a2, 2)
        catalog_service.delete_variant(actor_user_id=admin_a.id, variant_id=variant_a2.id)

        cart = cart_service.get_cart(SESSION)
        assert [i["variant_id"] for i in cart["items"]] == [variant_a.id]
        assert cart["total_amount_cents"] == 1000
        assert cart["total_items"] == 1

    def test_no_cart(self, db_session, org_a):
        assert cart_service.get_cart("nobody", org_a.id) is None
        assert cart_service.get_cart("", org_a.id) is None

    def test_cart_total(self, db_session, org_a, product_a, variant_a):
        cart = _add(org_a, product_a, variant_a, 3)
        total = cart_service.get_cart_total(SESSION, org_a.id)
        assert total["cart_id"] == cart.id
        assert total["total_amount_cents"] == 3000
        assert total["item_count"] == 1


class TestCheckout:

    def test_checkout_commits_order_and_closes_cart(self, db_session, org_a, product_a, variant_a, customer_info):
        cart = _add(org_a, product_a, variant_a, 2)

        order = cart_service.checkout(cart_id=cart.id, customer_info=customer_info, org_id=org_a.id)

        assert order.total_amount_cents == 2000
        assert order.created_by_user_id is None
        assert order.customer_email == "dana@example.com"
        assert db_session.get(Cart, cart.id).status == "completed"
        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 8
        assert cart_service.get_cart(SESSION, org_a.id) is None

    def test_add_three_then_four_and_checkout(self, db_session, org_a, product_a, variant_a, customer_info):
        cart = _add(org_a, product_a, variant_a, 3)
        _add(org_a, product_a, variant_a, 4)
        assert db_session.query(CartItem).filter_by(cart_id=cart.id).one().quantity == 7

        cart_service.checkout(cart_id=cart.id, customer_info=customer_info)

        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 3
        assert db_session.get(Cart, cart.id).status == "completed"
        with pytest.raises(CartNotActiveError):
            cart_service.update_quantity(cart_id=cart.id, variant_id=variant_a.id, quantity=1)

    def test_completed_cart_cannot_be_checked_out_twice(
        self, db_session, org_a, product_a, variant_a, customer_info
    ):
        cart = _add(org_a, product_a, variant_a, 1)
        cart_service.checkout(cart_id=cart.id, customer_info=customer_info)

        with pytest.raises(CartNotActiveError):
            cart_service.checkout(cart_id=cart.id, customer_info=customer_info)
        with pytest.raises(CartNotActiveError):
            cart_service.update_quantity(cart_id=cart.id, variant_id=variant_a.id, quantity=2)
        assert db_session.query(Order).count() == 1

    def test_new_add_after_checkout_opens_new_cart(self, db_session, org_a, product_a, variant_a, customer_info):
        first = _add(org_a, product_a, variant_a, 1)
        cart_service.checkout(cart_id=first.id, customer_info=customer_info)
        second = _add(org_a, product_a, variant_a, 1)
        assert second.id != first.id

    def test_stock_lost_to_another_shopper(
        self, db_session, org_a, admin_a, product_a, variant_a, variant_a2, customer_info
    ):
        """Cart added 3 of stock 3; stock drops to 2 before checkout."""
        cart = _add(org_a, product_a, variant_a, 1)
        _add(org_a, product_a, variant_a2, 3)
        stock_service.adjust_stock(
            actor_user_id=admin_a.id, variant_id=variant_a2.id, movement_type="adjusted", delta=-1
        )

        with pytest.raises(InsufficientStockError):
            cart_service.checkout(cart_id=cart.id, customer_info=customer_info)

        assert db_session.get(Cart, cart.id).status == "active"
        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 10
        assert db_session.get(ProductVariant, variant_a2.id).stock_quantity == 2
        assert db_session.query(Order).count() == 0
        assert cart_service.get_cart(SESSION)["total_items"] == 4

    def test_empty_cart(self, db_session, org_a, product_a, variant_a, customer_info):
        cart = _add(org_a, product_a, variant_a, 1)
        cart_service.remove_item(cart_id=cart.id, variant_id=variant_a.id)

        with pytest.raises(EmptyCartError) as exc:
            cart_service.checkout(cart_id=cart.id, customer_info=customer_info)
        assert str(exc.value) == "Cart is empty"
        assert db_session.get(Cart, cart.id).status == "active"

    def test_invalid_customer_info(self, db_session, org_a, product_a, variant_a):
        cart = _add(org_a, product_a, variant_a, 1)
        with pytest.raises(InvalidInputError):
            cart_service.checkout(cart_id=cart.id, customer_info={"name": "", "email": "x@example.com"})
        assert db_session.get(Cart, cart.id).status == "active"

    def test_unknown_cart(self, db_session, customer_info):
        with pytest.raises(CartNotActiveError):
            cart_service.checkout(cart_id=5555, customer_info=customer_info)


class TestAbandonCarts:

    def test_stale_carts_abandoned(self, db_session, org_a, product_a, variant_a):
        stale = _add(org_a, product_a, variant_a, 1, session_id="old")
        fresh = _add(org_a, product_a, variant_a, 1, session_id="new")

        row = db_session.get(Cart, stale.id)
        row.updated_at = utcnow() - timedelta(hours=100)
        db_session.commit()

        assert cart_service.abandon_stale_carts(older_than_hours=72) == 1
        assert db_session.get(Cart, stale.id).status == "abandoned"
        assert db_session.get(Cart, fresh.id).status == "active"
