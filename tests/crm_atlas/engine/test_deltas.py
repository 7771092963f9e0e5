"""Tests for crm_atlas.engine.deltas — WoW / MoM deltas."""
from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from crm_atlas.engine.deltas import (
    Delta, compute_delta, percent_change, previous_dates, subtract_month,
)
from crm_atlas.exceptions import StoreError


class TestPercentChange:

    def test_decline(self):
        assert percent_change(17.0, 20.0) == pytest.approx(-15.0)

    def test_increase(self):
        assert percent_change(25.0, 20.0) == pytest.approx(25.0)

    def test_zero_baseline(self):
        assert percent_change(5.0, 0.0) is None

    def test_negative_baseline(self):
        assert percent_change(5.0, -1.0) is None

    def test_missing_values(self):
        assert percent_change(None, 20.0) is None
        assert percent_change(20.0, None) is None


class TestPreviousDates:

    def test_week(self):
        assert previous_dates('week', date(2026, 1, 12)) == (date(2026, 1, 5), None)

    def test_month(self):
        wow, mom = previous_dates('month', date(2026, 3, 1))
        assert wow == date(2026, 1, 30)
        assert mom == date(2026, 2, 1)

    def test_month_end_clamps(self):
        assert subtract_month(date(2026, 3, 31)) == date(2026, 2, 28)

    def test_leap_year(self):
        assert subtract_month(date(2028, 3, 30)) == date(2028, 2, 29)

    def test_january_wraps_year(self):
        assert subtract_month(date(2026, 1, 15)) == date(2025, 12, 15)


class TestComputeDelta:

    def test_week_over_week(self, db_session, make_snapshot):
        make_snapshot(period_start_date=date(2026, 1, 5), open_rate=20.0)
        make_snapshot(period_start_date=date(2026, 1, 12), open_rate=17.0)
        delta = compute_delta(db_session, 'wf-100', 'email', 'week', date(2026, 1, 12), 'open_rate')
        assert delta.delta_wow == pytest.approx(-15.0)
        assert delta.delta_mom is None

    def test_missing_previous(self, db_session, make_snapshot):
        make_snapshot(period_start_date=date(2026, 1, 12))
        delta = compute_delta(db_session, 'wf-100', 'email', 'week', date(2026, 1, 12), 'open_rate')
        assert delta == Delta()

    def test_missing_current(self, db_session, make_snapshot):
        make_snapshot(period_start_date=date(2026, 1, 5))
        delta = compute_delta(db_session, 'wf-100', 'email', 'week', date(2026, 1, 12), 'open_rate')
        assert delta == Delta()

    def test_zero_baseline(self, db_session, make_snapshot):
        make_snapshot(period_start_date=date(2026, 1, 5), unsub_rate=0.0)
        make_snapshot(period_start_date=date(2026, 1, 12), unsub_rate=0.3)
        delta = compute_delta(db_session, 'wf-100', 'email', 'week', date(2026, 1, 12), 'unsub_rate')
        assert delta.delta_wow is None

    def test_other_channel_ignored(self, db_session, make_snapshot):
        make_snapshot(period_start_date=date(2026, 1, 5), channel='push', open_rate=10.0)
        make_snapshot(period_start_date=date(2026, 1, 12), open_rate=17.0)
        delta = compute_delta(db_session, 'wf-100', 'email', 'week', date(2026, 1, 12), 'open_rate')
        assert delta.delta_wow is None

    def test_monthly_mom(self, db_session, make_snapshot):
        make_snapshot(period_type='month', period_start_date=date(2026, 1, 1), open_rate=20.0)
        make_snapshot(period_type='month', period_start_date=date(2026, 2, 1), open_rate=22.0)
        delta = compute_delta(db_session, 'wf-100', 'email', 'month', date(2026, 2, 1), 'open_rate')
        assert delta.delta_mom == pytest.approx(10.0)
        # 30 days back from Feb 1 is Jan 2, which has no snapshot
        assert delta.delta_wow is None

    def test_unknown_field(self, db_session):
        with pytest.raises(ValueError):
            compute_delta(db_session, 'wf-100', 'email', 'week', date(2026, 1, 12), 'not_a_metric')

    def test_store_failure(self):
        session = MagicMock()
        session.query.side_effect = OperationalError('SELECT', {}, Exception('db down'))
        with pytest.raises(StoreError) as exc:
            compute_delta(session, 'wf-100', 'email', 'week', date(2026, 1, 12), 'open_rate')
        assert exc.value.operation == 'compute_delta'
