"""
Metric target resolution.

Picks the single most specific KpiTarget covering a metric/scope/date:
workflow > product > channel > global. Within one level, a target that also
pins more of the remaining scope fields wins (e.g. product+channel over
product-only). Remaining ties go to the most recently created row and are
logged, since two equally specific targets overlapping in time is a
configuration error.
"""
import logging
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from crm_atlas.exceptions import StoreError
from crm_atlas.models.kpi_target import KpiTarget

logger = logging.getLogger('engine.targets')

SCOPE_LEVELS = {
    'workflow': 3,
    'product': 2,
    'channel': 1,
    'global': 0,
}


def _matches_scope(target, workflow_id, product_id, channel, period_type) -> bool:
    """Every non-null scope field on the target must equal the query value."""
    if target.workflow_id is not None and target.workflow_id != workflow_id:
        return False
    if target.product_id is not None and target.product_id != product_id:
        return False
    if target.channel is not None and target.channel != channel:
        return False
    if target.period_type is not None and target.period_type != period_type:
        return False
    return True


def _rank(target):
    pinned = sum(
        1 for value in (target.workflow_id, target.product_id, target.channel, target.period_type)
        if value is not None
    )
    return SCOPE_LEVELS[target.scope_type], pinned


def _recency(target):
    created = target.created_at.timestamp() if target.created_at else 0.0
    return created, target.id or 0


def select_target(
    candidates: Iterable,
    workflow_id: str,
    product_id,
    channel: str,
    period_type: str,
):
    """Pure selection over candidate targets already filtered by metric and date."""
    matching = [
        t for t in candidates
        if _matches_scope(t, workflow_id, product_id, channel, period_type)
    ]
    if not matching:
        return None

    best_rank = max(_rank(t) for t in matching)
    best = [t for t in matching if _rank(t) == best_rank]
    best.sort(key=_recency, reverse=True)

    if len(best) > 1:
        logger.warning(
            "Ambiguous %s targets for workflow=%s product=%s channel=%s: ids %s at %s scope; using id %s",
            best[0].metric_name, workflow_id, product_id, channel,
            [t.id for t in best], best[0].scope_type, best[0].id,
        )
    return best[0]


def resolve_target(
    session,
    metric_name: str,
    workflow_id: str,
    product_id,
    channel: str,
    period_type: str,
    period_date: date,
) -> Optional[KpiTarget]:
    """Return the most specific target in effect on period_date, or None if unconfigured.

    Raises StoreError when the kpi_targets query itself fails.
    """
    try:
        candidates = session.query(KpiTarget).filter(
            KpiTarget.metric_name == metric_name,
            or_(KpiTarget.period_type == period_type, KpiTarget.period_type.is_(None)),
            KpiTarget.effective_from <= period_date,
            or_(KpiTarget.effective_to.is_(None), KpiTarget.effective_to >= period_date),
        ).all()
    except SQLAlchemyError as e:
        raise StoreError('resolve_target', e) from e

    return select_target(candidates, workflow_id, product_id, channel, period_type)


def _same_scope(a, b) -> bool:
    return (
        a.workflow_id == b.workflow_id
        and a.product_id == b.product_id
        and a.channel == b.channel
        and a.period_type == b.period_type
    )


def _ranges_overlap(a_from, a_to, b_from, b_to) -> bool:
    if a_to is not None and b_from > a_to:
        return False
    if b_to is not None and a_from > b_to:
        return False
    return True


def find_overlapping_targets(session, candidate) -> List[KpiTarget]:
    """Existing targets with the same metric and scope whose dates overlap candidate's.

    Used on write so the resolver never has to break a tie in practice.
    """
    try:
        rows = session.query(KpiTarget).filter(
            KpiTarget.metric_name == candidate.metric_name,
        ).all()
    except SQLAlchemyError as e:
        raise StoreError('find_overlapping_targets', e) from e

    return [
        row for row in rows
        if row.id != candidate.id
        and _same_scope(row, candidate)
        and _ranges_overlap(row.effective_from, row.effective_to,
                            candidate.effective_from, candidate.effective_to)
    ]
