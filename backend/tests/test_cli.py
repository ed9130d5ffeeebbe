# Overview: Pytest coverage for CLI commands and maintenance jobs.

from datetime import timedelta

from shopcore.models import Organization, ProductVariant, SecurityEvent, User
from shopcore.services import maintenance_service, stock_service
from shopcore.time_utils import utcnow


class TestSystemInit:

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init"])
        assert first.exit_code == 0, first.output
        second = runner.invoke(args=["system", "init"])
        assert second.exit_code == 0, second.output

        assert db_session.query(Organization).filter_by(slug="demo").count() == 1
        assert db_session.query(User).filter_by(email="admin@shopcore.local").count() == 1
        skus = sorted(v.sku for v in db_session.query(ProductVariant).all())
        assert skus == ["TEE-L", "TEE-M", "TEE-S"]
        assert stock_service.audit_stock() == []


class TestInventoryAudit:

    def test_clean_ledger(self, app, db_session, variant_a):
        result = app.test_cli_runner().invoke(args=["inventory", "audit"])
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_drift_exits_nonzero(self, app, db_session, variant_a):
        variant = db_session.get(ProductVariant, variant_a.id)
        variant.stock_quantity = 3
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["inventory", "audit", "--org-id", str(variant_a.org_id)])
        assert result.exit_code == 1
        assert "TEE-RED" in result.output


class TestOrgCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        created = runner.invoke(args=["orgs", "create", "--name", "Delta Deli", "--slug", "delta"])
        assert "PASS" in created.output

        listed = runner.invoke(args=["orgs", "list"])
        assert "delta" in listed.output

    def test_bad_slug_reports_failure(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["orgs", "create", "--name", "Bad", "--slug", "Bad Slug"])
        assert "FAIL" in result.output
        assert db_session.query(Organization).count() == 0


class TestMaintenance:

    def test_cleanup_security_events(self, db_session, org_a):
        old = SecurityEvent(
            org_id=org_a.id, event_type="LOGIN_FAILED", success=False, occurred_at=utcnow() - timedelta(days=120)
        )
        recent = SecurityEvent(org_id=org_a.id, event_type="LOGIN_FAILED", success=False, occurred_at=utcnow())
        db_session.add_all([old, recent])
        db_session.commit()

        assert maintenance_service.cleanup_security_events(retention_days=90) == 1
        assert db_session.query(SecurityEvent).count() == 1

    def test_abandon_carts_command(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["maintenance", "abandon-carts", "--hours", "1"])
        assert result.exit_code == 0
        assert "Abandoned 0 stale carts." in result.output
