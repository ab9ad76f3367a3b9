"""
Day status tests.

Verifies:
- Unknown days read as open with empty audit fields
- Closing is an overwrite upsert and reports re-closing
- Reopening clears the flag but keeps the export audit trail
"""

from datetime import datetime

from bakeryops.extensions import db
from bakeryops.models import DayStatus
from bakeryops.services import day_status_service

from conftest import D1, D2


class TestGetStatus:
    def test_default_status_for_unknown_day(self, db_session):
        status = day_status_service.get_status(D1)

        assert status.production_exported is False
        assert status.exported_at is None
        assert status.exported_by is None
        assert status.lot_number is None
        assert status.unlocked_at is None
        assert status.unlocked_by is None
        # Reading never creates a record
        assert db.session.query(DayStatus).count() == 0

    def test_is_closed_false_without_record(self, db_session):
        assert day_status_service.is_closed(D1) is False


class TestCloseDay:
    def test_close_sets_flag_and_audit(self, db_session):
        now = datetime(2026, 2, 9, 18, 30)
        status, was_closed = day_status_service.close_day(D1, exported_by="Ana", lot_number=7, now=now)

        assert was_closed is False
        assert status.production_exported is True
        assert status.exported_by == "Ana"
        assert status.lot_number == 7
        assert day_status_service.is_closed(D1) is True
        assert day_status_service.is_closed(D2) is False

    def test_close_again_overwrites_and_reports(self, db_session):
        day_status_service.close_day(D1, exported_by="Ana", lot_number=7)
        status, was_closed = day_status_service.close_day(D1, exported_by="Ion", lot_number=8)

        assert was_closed is True
        assert status.exported_by == "Ion"
        assert status.lot_number == 8
        assert db.session.query(DayStatus).count() == 1


class TestReopenDay:
    def test_reopen_without_record_is_noop(self, db_session):
        status = day_status_service.reopen_day(D1, unlocked_by="admin")

        assert status.production_exported is False
        assert status.unlocked_by is None
        assert db.session.query(DayStatus).count() == 0

    def test_reopen_keeps_history(self, db_session):
        day_status_service.close_day(D1, exported_by="Ana", lot_number=7)
        status = day_status_service.reopen_day(D1, unlocked_by="Administrator")

        assert status.production_exported is False
        assert status.exported_by == "Ana"
        assert status.lot_number == 7
        assert status.unlocked_by == "Administrator"
        assert status.unlocked_at is not None
        assert day_status_service.is_closed(D1) is False

    def test_close_after_reopen_keeps_unlock_stamp(self, db_session):
        day_status_service.close_day(D1, exported_by="Ana", lot_number=7)
        day_status_service.reopen_day(D1, unlocked_by="Administrator")
        status, was_closed = day_status_service.close_day(D1, exported_by="Ana", lot_number=7)

        assert was_closed is False
        assert status.production_exported is True
        assert status.unlocked_by == "Administrator"


class TestReopenCommand:
    def _reopen(self, app, username):
        runner = app.test_cli_runner()
        return runner.invoke(args=["days", "reopen", D1.isoformat(), "--by", username])

    def test_operator_cannot_reopen(self, app, users):
        day_status_service.close_day(D1, exported_by="Ana Pop", lot_number=7)

        result = self._reopen(app, "ana")

        assert "FAIL User ana may not reopen days" in result.output
        db.session.expire_all()
        assert day_status_service.is_closed(D1) is True

    def test_admin_reopens_with_display_name(self, app, users):
        day_status_service.close_day(D1, exported_by="Ana Pop", lot_number=7)

        result = self._reopen(app, "admin")

        assert "PASS Day 2026-02-09 reopened by Administrator" in result.output
        db.session.expire_all()
        status = day_status_service.get_status(D1)
        assert status.production_exported is False
        assert status.unlocked_by == "Administrator"

    def test_unknown_user(self, app, users):
        result = self._reopen(app, "nobody")

        assert "FAIL User nobody not found" in result.output
