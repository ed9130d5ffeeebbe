# Overview: Pytest coverage for the stock ledger (adjustments, history, inventory views).

"""
Stock Ledger Tests

- adjust_stock is admin-only and never drives stock negative
- every change appends exactly one movement
- history is newest first with a resolved performer name
- the movement log can reconstruct the stock counter
"""

import pytest

from shopcore.errors import InsufficientStockError, InvalidInputError, NotFoundError, UnauthorizedError
from shopcore.extensions import db
from shopcore.models import InventoryMovement, ProductVariant
from shopcore.services import catalog_service, stock_service


def _movement_count(variant_id):
    return db.session.query(InventoryMovement).filter_by(variant_id=variant_id).count()


# =============================================================================
# ADJUSTMENTS
# =============================================================================

class TestAdjustStock:

    def test_negative_adjustment_decrements_and_logs(self, db_session, admin_a, variant_a):
        new_stock = stock_service.adjust_stock(
            actor_user_id=admin_a.id,
            variant_id=variant_a.id,
            movement_type="adjusted",
            delta=-3,
            reason="Water damage",
        )
        assert new_stock == 7
        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 7

        movement = (
            db_session.query(InventoryMovement)
            .filter_by(variant_id=variant_a.id, type="adjusted")
            .one()
        )
        assert movement.quantity == -3
        assert movement.reason == "Water damage"
        assert movement.user_id == admin_a.id
        assert movement.org_id == variant_a.org_id
        assert movement.order_id is None

    def test_received_adjustment_increments(self, db_session, admin_a, variant_a):
        assert stock_service.adjust_stock(
            actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="received", delta=5
        ) == 15

    def test_overdraw_rejected_without_movement(self, db_session, admin_a, variant_a):
        """Stock 10, adjustment of -11 fails and leaves stock and log untouched."""
        before = _movement_count(variant_a.id)

        with pytest.raises(InsufficientStockError) as exc:
            stock_service.adjust_stock(
                actor_user_id=admin_a.id,
                variant_id=variant_a.id,
                movement_type="adjusted",
                delta=-11,
            )

        assert str(exc.value) == "Insufficient stock. Current: 10, Requested change: -11"
        assert exc.value.status_code == 409
        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 10
        assert _movement_count(variant_a.id) == before

    def test_draining_to_zero_is_allowed(self, db_session, admin_a, variant_a):
        assert stock_service.adjust_stock(
            actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="adjusted", delta=-10
        ) == 0

    def test_zero_delta_rejected(self, db_session, admin_a, variant_a):
        with pytest.raises(InvalidInputError):
            stock_service.adjust_stock(
                actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="adjusted", delta=0
            )

    def test_unknown_type_rejected(self, db_session, admin_a, variant_a):
        with pytest.raises(InvalidInputError) as exc:
            stock_service.adjust_stock(
                actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="stolen", delta=-1
            )
        assert exc.value.details.get("field") == "type"

    def test_non_integer_quantity_rejected(self, db_session, admin_a, variant_a):
        with pytest.raises(InvalidInputError):
            stock_service.adjust_stock(
                actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="adjusted", delta="lots"
            )

    def test_unknown_variant(self, db_session, admin_a):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(
                actor_user_id=admin_a.id, variant_id=424242, movement_type="received", delta=1
            )

    def test_unauthenticated(self, db_session, variant_a):
        with pytest.raises(UnauthorizedError):
            stock_service.adjust_stock(
                actor_user_id=None, variant_id=variant_a.id, movement_type="received", delta=1
            )

    @pytest.mark.parametrize("role_fixture", ["manager_a", "staff_a", "admin_b"])
    def test_non_admin_rejected(self, request, db_session, variant_a, role_fixture):
        user = request.getfixturevalue(role_fixture)
        with pytest.raises(UnauthorizedError):
            stock_service.adjust_stock(
                actor_user_id=user.id, variant_id=variant_a.id, movement_type="received", delta=1
            )
        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 10

    def test_receive_into_empty_variant(self, db_session, admin_a, product_a, variant_a):
        empty = catalog_service.create_variant(
            actor_user_id=admin_a.id, product_id=product_a.id, sku="TEE-GREEN", name="Green"
        )
        assert _movement_count(empty.id) == 0

        new_stock = stock_service.adjust_stock(
            actor_user_id=admin_a.id, variant_id=empty.id, movement_type="received", delta=20
        )

        assert new_stock == 20
        movement = db_session.query(InventoryMovement).filter_by(variant_id=empty.id).one()
        assert movement.type == "received"
        assert movement.quantity == 20

    def test_overdraw_on_low_stock_variant(self, db_session, admin_a, variant_a2):
        """Stock 3, adjusted -5: rejected, stock stays 3, log unchanged."""
        before = _movement_count(variant_a2.id)
        with pytest.raises(InsufficientStockError):
            stock_service.adjust_stock(
                actor_user_id=admin_a.id, variant_id=variant_a2.id, movement_type="adjusted", delta=-5
            )
        assert db_session.get(ProductVariant, variant_a2.id).stock_quantity == 3
        assert _movement_count(variant_a2.id) == before

    def test_apply_stock_delta_does_not_commit(self, db_session, variant_a):
        variant = db_session.get(ProductVariant, variant_a.id)
        stock_service.apply_stock_delta(variant, -4, movement_type="adjusted", reason="Recount")
        db_session.rollback()

        assert db_session.get(ProductVariant, variant_a.id).stock_quantity == 10
        assert db_session.query(InventoryMovement).filter_by(reason="Recount").count() == 0


# =============================================================================
# HISTORY
# =============================================================================

class TestMovementHistory:

    def test_newest_first_with_performer(self, db_session, admin_a, variant_a):
        stock_service.adjust_stock(
            actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="received", delta=4, reason="Restock"
        )
        stock_service.adjust_stock(
            actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="adjusted", delta=-1, reason="Torn"
        )

        history = stock_service.get_movement_history(actor_user_id=admin_a.id, variant_id=variant_a.id)
        reasons = [entry["reason"] for entry in history]
        assert reasons == ["Torn", "Restock", "Initial stock"]
        assert history[0]["quantity"] == -1
        assert history[0]["performer_name"] == "admin@acme.test"

    def test_anonymous_caller_sees_nothing(self, db_session, variant_a):
        variant = db_session.get(ProductVariant, variant_a.id)
        stock_service.apply_stock_delta(variant, 2, movement_type="returned", reason="Carrier return")
        db_session.commit()

        history = stock_service.get_movement_history(actor_user_id=None, variant_id=variant_a.id)
        assert history == []

    def test_system_performer_visible_to_member(self, db_session, staff_a, variant_a):
        variant = db_session.get(ProductVariant, variant_a.id)
        stock_service.apply_stock_delta(variant, 2, movement_type="returned", reason="Carrier return")
        db_session.commit()

        history = stock_service.get_movement_history(actor_user_id=staff_a.id, variant_id=variant_a.id)
        assert history[0]["reason"] == "Carrier return"
        assert history[0]["performer_name"] == "System"

    def test_limit(self, db_session, admin_a, variant_a):
        for _ in range(5):
            stock_service.adjust_stock(
                actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type="received", delta=1
            )
        history = stock_service.get_movement_history(
            actor_user_id=admin_a.id, variant_id=variant_a.id, limit=3
        )
        assert len(history) == 3

    def test_unknown_variant_is_empty(self, db_session, admin_a):
        assert stock_service.get_movement_history(actor_user_id=admin_a.id, variant_id=9999) == []

    def test_other_tenant_is_empty(self, db_session, admin_b, variant_a):
        assert stock_service.get_movement_history(actor_user_id=admin_b.id, variant_id=variant_a.id) == []


# =============================================================================
# INVENTORY VIEW AND AUDIT
# =============================================================================

class TestInventoryView:

    def test_sorted_by_stock_ascending(self, db_session, admin_a, variant_a, variant_a2):
        rows = stock_service.list_inventory(actor_user_id=admin_a.id, org_id=variant_a.org_id)
        assert [row["sku"] for row in rows] == ["TEE-BLUE", "TEE-RED"]
        assert rows[0]["product_name"] == "Trail Tee"
        assert rows[0]["price_cents"] == 1500
        assert rows[1]["price_cents"] == 1000

    def test_explicit_threshold_filters(self, db_session, admin_a, variant_a, variant_a2):
        rows = stock_service.list_inventory(
            actor_user_id=admin_a.id, org_id=variant_a.org_id, low_stock_threshold=5
        )
        assert [row["sku"] for row in rows] == ["TEE-BLUE"]
        assert rows[0]["is_low_stock"] is True

    def test_default_threshold_flags_without_filtering(self, app, db_session, admin_a, variant_a, variant_a2):
        rows = stock_service.list_inventory(actor_user_id=admin_a.id, org_id=variant_a.org_id)
        assert len(rows) == 2
        threshold = app.config["LOW_STOCK_THRESHOLD"]
        for row in rows:
            assert row["is_low_stock"] == (row["stock_quantity"] <= threshold)

    def test_other_tenant_sees_nothing(self, db_session, admin_b, variant_a):
        assert stock_service.list_inventory(actor_user_id=admin_b.id, org_id=variant_a.org_id) == []

    def test_tenant_rows_only(self, db_session, admin_a, variant_a, variant_b):
        rows = stock_service.list_inventory(actor_user_id=admin_a.id, org_id=variant_a.org_id)
        assert {row["sku"] for row in rows} == {"TEE-RED"}


class TestLedgerReconstruction:

    def test_initial_stock_is_a_received_movement(self, db_session, variant_a):
        movement = db_session.query(InventoryMovement).filter_by(variant_id=variant_a.id).one()
        assert movement.type == "received"
        assert movement.quantity == 10
        assert movement.reason == "Initial stock"

    def test_reconstruct_matches_after_adjustments(self, db_session, admin_a, variant_a):
        for movement_type, delta in (("received", 7), ("adjusted", -2), ("adjusted", -5), ("returned", 1)):
            stock_service.adjust_stock(
                actor_user_id=admin_a.id, variant_id=variant_a.id, movement_type=movement_type, delta=delta
            )
        variant = db_session.get(ProductVariant, variant_a.id)
        assert variant.stock_quantity == 11
        assert stock_service.reconstruct_stock(variant_a.id) == 11

    def test_audit_reports_drift(self, db_session, variant_a, variant_a2):
        # Simulate an out-of-band write that bypassed the ledger
        variant = db_session.get(ProductVariant, variant_a.id)
        variant.stock_quantity = 12
        db_session.commit()

        mismatches = stock_service.audit_stock(variant_a.org_id)
        assert len(mismatches) == 1
        assert mismatches[0]["variant_id"] == variant_a.id
        assert mismatches[0]["replayed_quantity"] == 10
        assert mismatches[0]["difference"] == 2
