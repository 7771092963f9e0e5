"""
Period-over-period deltas for one snapshot metric.

Deltas are relative percentages: -15.0 means a 15% decline versus the
previous period. A missing, null, or non-positive baseline yields None.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from crm_atlas.exceptions import StoreError
from crm_atlas.models.metric_snapshot import MetricSnapshot

logger = logging.getLogger('engine.deltas')


@dataclass(frozen=True)
class Delta:
    delta_wow: Optional[float] = None
    delta_mom: Optional[float] = None


def percent_change(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    """((current - previous) / previous) * 100, or None without a positive baseline."""
    if current is None or previous is None:
        return None
    if previous <= 0:
        return None
    return ((current - previous) / previous) * 100


def subtract_month(day: date) -> date:
    """Same day one calendar month earlier, clamped to the end of a shorter month."""
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def previous_dates(period_type: str, current_date: date) -> Tuple[date, Optional[date]]:
    """(wow_previous, mom_previous). Monthly periods step back 30 days for WoW."""
    wow_previous = current_date - timedelta(days=7 if period_type == 'week' else 30)
    mom_previous = subtract_month(current_date) if period_type == 'month' else None
    return wow_previous, mom_previous


def _snapshot_value(session, workflow_id, channel, period_type, period_date, metric_field):
    row = session.query(getattr(MetricSnapshot, metric_field)).filter(
        MetricSnapshot.workflow_id == workflow_id,
        MetricSnapshot.channel == channel,
        MetricSnapshot.period_type == period_type,
        MetricSnapshot.period_start_date == period_date,
    ).first()
    if row is None:
        return None
    value = row[0]
    return float(value) if value is not None else None


def compute_delta(
    session,
    workflow_id: str,
    channel: str,
    period_type: str,
    current_date: date,
    metric_field: str,
) -> Delta:
    """Week-over-week and month-over-month deltas for one snapshot field.

    delta_mom is only computed for monthly periods. Raises StoreError if a
    snapshot query fails; missing snapshots are not errors.
    """
    if not hasattr(MetricSnapshot, metric_field):
        raise ValueError(f"Unknown snapshot field '{metric_field}'")

    try:
        current = _snapshot_value(session, workflow_id, channel, period_type, current_date, metric_field)
        if current is None:
            return Delta()

        wow_date, mom_date = previous_dates(period_type, current_date)

        previous_wow = _snapshot_value(session, workflow_id, channel, period_type, wow_date, metric_field)
        previous_mom = None
        if mom_date is not None:
            previous_mom = _snapshot_value(session, workflow_id, channel, period_type, mom_date, metric_field)
    except SQLAlchemyError as e:
        raise StoreError('compute_delta', e) from e

    return Delta(
        delta_wow=percent_change(current, previous_wow),
        delta_mom=percent_change(current, previous_mom),
    )
