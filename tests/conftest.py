"""Shared test fixtures."""
from contextlib import ExitStack
from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from crm_atlas.database import Base

# Every module that imported get_session at module level
SESSION_CONSUMERS = [
    'crm_atlas.database',
    'crm_atlas.services.health',
    'crm_atlas.routes.dashboard',
    'crm_atlas.routes.flows',
    'crm_atlas.routes.health',
    'crm_atlas.routes.imports',
    'crm_atlas.routes.products',
    'crm_atlas.routes.targets',
]


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import crm_atlas.models.product
    import crm_atlas.models.flow
    import crm_atlas.models.workflow_product_map
    import crm_atlas.models.metric_snapshot
    import crm_atlas.models.kpi_target
    import crm_atlas.models.health_config
    import crm_atlas.models.health_flag
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that route handlers calling session.close()
    in their finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with ExitStack() as stack:
        for module in SESSION_CONSUMERS:
            stack.enter_context(patch(f'{module}.get_session', return_value=db_session))
        yield db_session
    db_session.close = _real_close


@pytest.fixture(autouse=True)
def no_slack():
    """Keep recompute batches from posting to a real webhook."""
    with patch('crm_atlas.services.notifications.SLACK_WEBHOOK_URL', None):
        yield


@pytest.fixture
def app():
    """Flask test app."""
    from crm_atlas import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_snapshot(db_session):
    """Factory fixture — inserts a committed MetricSnapshot."""
    from crm_atlas.models.metric_snapshot import MetricSnapshot

    def _make(**overrides):
        defaults = dict(
            workflow_id='wf-100',
            channel='email',
            period_type='week',
            period_start_date=date(2026, 1, 12),
            sends=1000,
            opens=200,
            clicks=30,
            unsubs=2,
            bounces=5,
            complaints=0,
            open_rate=20.0,
            click_rate=3.0,
            unsub_rate=0.2,
            bounce_rate=0.5,
            complaint_rate=0.0,
        )
        defaults.update(overrides)
        snapshot = MetricSnapshot(**defaults)
        db_session.add(snapshot)
        db_session.commit()
        return snapshot
    return _make


@pytest.fixture
def make_target(db_session):
    """Factory fixture — inserts a committed KpiTarget (global scope by default)."""
    from crm_atlas.models.kpi_target import KpiTarget

    def _make(**overrides):
        defaults = dict(
            metric_name='open_rate',
            effective_from=date(2026, 1, 1),
            target_value=20.0,
        )
        defaults.update(overrides)
        target = KpiTarget(**defaults)
        db_session.add(target)
        db_session.commit()
        return target
    return _make


@pytest.fixture
def make_flow(db_session):
    """Factory fixture — inserts a committed Flow."""
    from crm_atlas.models.flow import Flow

    def _make(**overrides):
        defaults = dict(
            name='Welcome Series',
            purpose='activation',
            trigger_type='event_based',
            frequency='Once',
            channels=['email'],
            live=True,
        )
        defaults.update(overrides)
        flow = Flow(**defaults)
        db_session.add(flow)
        db_session.commit()
        return flow
    return _make
