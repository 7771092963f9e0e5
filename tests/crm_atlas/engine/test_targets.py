"""Tests for crm_atlas.engine.targets — most-specific target resolution."""
import logging
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from crm_atlas.engine.targets import find_overlapping_targets, resolve_target, select_target
from crm_atlas.exceptions import StoreError
from crm_atlas.models.kpi_target import KpiTarget
from crm_atlas.models.product import Product


PERIOD = date(2026, 1, 12)


@pytest.fixture
def product(db_session):
    p = Product(name='Atlas App')
    db_session.add(p)
    db_session.commit()
    return p


def _resolve(session, product_id=None, channel='email', workflow_id='wf-100', period_type='week',
             period_date=PERIOD, metric='open_rate'):
    return resolve_target(session, metric, workflow_id, product_id, channel, period_type, period_date)


class TestScopePrecedence:

    def test_no_targets(self, db_session):
        assert _resolve(db_session) is None

    def test_global_target(self, db_session, make_target):
        target = make_target(target_value=18.0)
        assert _resolve(db_session).id == target.id

    def test_channel_beats_global(self, db_session, make_target):
        make_target(target_value=18.0)
        channel = make_target(target_value=22.0, channel='email')
        assert _resolve(db_session).id == channel.id

    def test_product_beats_channel(self, db_session, make_target, product):
        make_target(target_value=22.0, channel='email')
        by_product = make_target(target_value=25.0, product_id=product.id)
        assert _resolve(db_session, product_id=product.id).id == by_product.id

    def test_workflow_beats_everything(self, db_session, make_target, product):
        make_target(target_value=18.0)
        make_target(target_value=22.0, channel='email')
        make_target(target_value=25.0, product_id=product.id, channel='email')
        workflow = make_target(target_value=30.0, workflow_id='wf-100')
        assert _resolve(db_session, product_id=product.id).id == workflow.id

    def test_more_pinned_fields_win_within_level(self, db_session, make_target, product):
        make_target(target_value=25.0, product_id=product.id)
        pinned = make_target(target_value=26.0, product_id=product.id, channel='email')
        assert _resolve(db_session, product_id=product.id).id == pinned.id

    def test_scope_mismatch_excluded(self, db_session, make_target, product):
        make_target(target_value=30.0, workflow_id='wf-other')
        make_target(target_value=22.0, channel='push')
        make_target(target_value=25.0, product_id=product.id)
        # workflow has no product, so the product target does not apply either
        assert _resolve(db_session, product_id=None) is None

    def test_product_target_with_other_channel_excluded(self, db_session, make_target, product):
        make_target(target_value=25.0, product_id=product.id, channel='push')
        assert _resolve(db_session, product_id=product.id) is None

    def test_other_metric_ignored(self, db_session, make_target):
        make_target(metric_name='click_rate', target_value=3.0)
        assert _resolve(db_session) is None


class TestPeriodAndDates:

    def test_period_type_specific(self, db_session, make_target):
        make_target(target_value=20.0, period_type='month')
        assert _resolve(db_session, period_type='week') is None
        assert _resolve(db_session, period_type='month') is not None

    def test_not_yet_effective(self, db_session, make_target):
        make_target(effective_from=date(2026, 2, 1))
        assert _resolve(db_session) is None

    def test_expired(self, db_session, make_target):
        make_target(effective_from=date(2025, 1, 1), effective_to=date(2025, 12, 31))
        assert _resolve(db_session) is None

    def test_range_inclusive(self, db_session, make_target):
        target = make_target(effective_from=PERIOD, effective_to=PERIOD)
        assert _resolve(db_session).id == target.id

    def test_historical_target_used_for_past_period(self, db_session, make_target):
        old = make_target(target_value=15.0, effective_from=date(2025, 1, 1), effective_to=date(2025, 12, 31))
        make_target(target_value=20.0, effective_from=date(2026, 1, 1))
        assert _resolve(db_session, period_date=date(2025, 6, 2)).id == old.id


class TestTieBreak:

    def test_most_recent_wins_and_warns(self, caplog):
        now = datetime(2026, 1, 1, 12, 0)
        older = SimpleNamespace(id=1, metric_name='open_rate', workflow_id=None, product_id=None,
                                channel='email', period_type=None, scope_type='channel', created_at=now)
        newer = SimpleNamespace(id=2, metric_name='open_rate', workflow_id=None, product_id=None,
                                channel='email', period_type=None, scope_type='channel',
                                created_at=now + timedelta(hours=1))
        with caplog.at_level(logging.WARNING, logger='engine.targets'):
            chosen = select_target([newer, older], 'wf-100', None, 'email', 'week')
        assert chosen is newer
        assert 'Ambiguous' in caplog.text

    def test_same_timestamp_falls_back_to_id(self):
        now = datetime(2026, 1, 1, 12, 0)
        a = SimpleNamespace(id=5, metric_name='open_rate', workflow_id=None, product_id=None,
                            channel=None, period_type=None, scope_type='global', created_at=now)
        b = SimpleNamespace(id=9, metric_name='open_rate', workflow_id=None, product_id=None,
                            channel=None, period_type=None, scope_type='global', created_at=now)
        assert select_target([a, b], 'wf-100', None, 'email', 'week') is b

    def test_order_independent(self):
        now = datetime(2026, 1, 1, 12, 0)
        a = SimpleNamespace(id=5, metric_name='open_rate', workflow_id=None, product_id=None,
                            channel=None, period_type=None, scope_type='global', created_at=now)
        b = SimpleNamespace(id=9, metric_name='open_rate', workflow_id=None, product_id=None,
                            channel=None, period_type=None, scope_type='global', created_at=now)
        assert select_target([a, b], 'wf-1', None, 'email', 'week') is select_target([b, a], 'wf-1', None, 'email', 'week')


class TestStoreFailure:

    def test_wraps_query_error(self):
        session = MagicMock()
        session.query.side_effect = OperationalError('SELECT', {}, Exception('db down'))
        with pytest.raises(StoreError) as exc:
            _resolve(session)
        assert exc.value.operation == 'resolve_target'


class TestOverlaps:

    def test_overlap_same_scope(self, db_session, make_target):
        existing = make_target(channel='email', effective_from=date(2026, 1, 1))
        candidate = KpiTarget(metric_name='open_rate', channel='email', target_value=21.0,
                              effective_from=date(2026, 3, 1))
        assert [t.id for t in find_overlapping_targets(db_session, candidate)] == [existing.id]

    def test_disjoint_ranges(self, db_session, make_target):
        make_target(channel='email', effective_from=date(2025, 1, 1), effective_to=date(2025, 12, 31))
        candidate = KpiTarget(metric_name='open_rate', channel='email', target_value=21.0,
                              effective_from=date(2026, 1, 1))
        assert find_overlapping_targets(db_session, candidate) == []

    def test_different_scope(self, db_session, make_target):
        make_target(channel='push')
        candidate = KpiTarget(metric_name='open_rate', channel='email', target_value=21.0,
                              effective_from=date(2026, 1, 1))
        assert find_overlapping_targets(db_session, candidate) == []

    def test_excludes_itself(self, db_session, make_target):
        existing = make_target(channel='email')
        assert find_overlapping_targets(db_session, existing) == []
