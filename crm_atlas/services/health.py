"""
Health flag service — composes target resolution, deltas and RAG evaluation
into persisted HealthFlag rows.

The recompute batch walks every (workflow, channel, period_type, period_date)
combination in a date range one at a time. Each combination gets its own
session and commit; a failure is logged, counted, rolled back, and the batch
moves on.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from crm_atlas.config import HEALTH_CONFIG_PATH, HEALTH_METRICS
from crm_atlas.database import get_session, session_scope
from crm_atlas.engine.config import HealthConfig, load_config_defaults
from crm_atlas.engine.deltas import compute_delta
from crm_atlas.engine.rag import RED, evaluate_rag
from crm_atlas.engine.targets import resolve_target
from crm_atlas.exceptions import StoreError
from crm_atlas.models.flow import Flow
from crm_atlas.models.health_config import HealthConfigRow
from crm_atlas.models.health_flag import HealthFlag
from crm_atlas.models.metric_snapshot import MetricSnapshot
from crm_atlas.models.workflow_product_map import WorkflowProductMap
from crm_atlas.services.notifications import notify_red_flags

logger = logging.getLogger('services.health')


@dataclass
class RecomputeResult:
    processed: int = 0
    errors: int = 0
    red_flags: List[Dict] = field(default_factory=list)

    def to_dict(self):
        return {'processed': self.processed, 'errors': self.errors}


def resolve_product_id(session, workflow_id: str) -> Optional[int]:
    """workflow_product_map first, then flows.iterable_id, else None."""
    mapping = session.query(WorkflowProductMap.product_id).filter_by(workflow_id=workflow_id).first()
    if mapping and mapping.product_id:
        return mapping.product_id

    flow = session.query(Flow.product_id).filter_by(iterable_id=workflow_id).first()
    return flow.product_id if flow else None


# ── Workflow → product mapping ───────────────────────────────────────────────

def list_workflow_mappings(session) -> List[Dict]:
    """
    Every workflow_id seen in metric snapshots, with the product inferred from
    its flow (flows.iterable_id) and the product it is explicitly mapped to.
    The effective product is the mapped one when present.
    """
    workflow_ids = [
        row.workflow_id for row in
        session.query(MetricSnapshot.workflow_id).distinct().order_by(MetricSnapshot.workflow_id)
    ]
    if not workflow_ids:
        return []

    flows = {}
    for flow in session.query(Flow).filter(Flow.iterable_id.in_(workflow_ids)).order_by(Flow.id):
        flows.setdefault(flow.iterable_id, flow)
    mappings = {
        m.workflow_id: m for m in
        session.query(WorkflowProductMap).filter(WorkflowProductMap.workflow_id.in_(workflow_ids))
    }

    result = []
    for workflow_id in workflow_ids:
        flow = flows.get(workflow_id)
        mapping = mappings.get(workflow_id)
        inferred_id = flow.product_id if flow else None
        mapped_id = mapping.product_id if mapping else None
        result.append({
            'workflow_id': workflow_id,
            'workflow_name': flow.name if flow else None,
            'inferred_product_id': inferred_id,
            'inferred_product_name': flow.product.name if flow and flow.product else None,
            'mapped_product_id': mapped_id,
            'mapped_product_name': mapping.product.name if mapping and mapping.product else None,
            'effective_product_id': mapped_id or inferred_id,
        })
    return result


def set_workflow_mapping(session, workflow_id: str, product_id: Optional[int]) -> Optional[WorkflowProductMap]:
    """Upsert the mapping for workflow_id, or remove it when product_id is None. Caller commits."""
    mapping = session.query(WorkflowProductMap).filter_by(workflow_id=workflow_id).first()

    if product_id is None:
        if mapping is not None:
            session.delete(mapping)
            logger.info("Removed product mapping for %s", workflow_id, extra={'workflow_id': workflow_id})
        return None

    if mapping is None:
        mapping = WorkflowProductMap(workflow_id=workflow_id, product_id=product_id)
        session.add(mapping)
    else:
        mapping.product_id = product_id
    session.flush()
    logger.info("Mapped %s to product %s", workflow_id, product_id, extra={'workflow_id': workflow_id})
    return mapping


def apply_inferred_mappings(session) -> int:
    """Persist the inferred product for every unmapped workflow that has one. Caller commits."""
    created = 0
    for row in list_workflow_mappings(session):
        if row['mapped_product_id'] is None and row['inferred_product_id'] is not None:
            session.add(WorkflowProductMap(workflow_id=row['workflow_id'],
                                           product_id=row['inferred_product_id']))
            created += 1
    session.flush()
    return created


def load_health_config(session=None) -> HealthConfig:
    """YAML defaults overlaid with the health_config row, if one exists."""
    defaults = load_config_defaults(HEALTH_CONFIG_PATH)

    own_session = session is None
    if own_session:
        session = get_session()
    try:
        row = session.query(HealthConfigRow).order_by(HealthConfigRow.id).first()
    except SQLAlchemyError as e:
        raise StoreError('load_health_config', e) from e
    finally:
        if own_session:
            session.close()

    if row is None:
        return defaults
    try:
        return defaults.with_overrides(
            amber_floor=row.amber_floor,
            wow_amber_drop=row.wow_amber_drop,
            wow_red_drop=row.wow_red_drop,
            red_floor_factor=row.red_floor_factor,
            rollup_strategy=row.rollup_strategy,
        )
    except (TypeError, ValueError) as e:
        logger.warning("health_config row %s ignored (%s), using defaults", row.id, e)
        return defaults


def _upsert_flag(session, values: Dict) -> HealthFlag:
    flag = session.query(HealthFlag).filter_by(
        workflow_id=values['workflow_id'],
        channel=values['channel'],
        period_type=values['period_type'],
        period_start_date=values['period_start_date'],
        metric_name=values['metric_name'],
    ).first()

    if flag is None:
        flag = HealthFlag(**values)
        session.add(flag)
    else:
        for key, value in values.items():
            setattr(flag, key, value)
    return flag


def compute_health_flags(
    session,
    workflow_id: str,
    channel: str,
    period_type: str,
    period_date: date,
    config: HealthConfig,
) -> List[HealthFlag]:
    """
    Evaluate every health metric of one snapshot and upsert its flags.

    Metrics with no value in the snapshot are skipped. Returns the upserted
    flags (flushed, not committed — the caller owns the transaction).
    """
    snapshot = session.query(MetricSnapshot).filter_by(
        workflow_id=workflow_id,
        channel=channel,
        period_type=period_type,
        period_start_date=period_date,
    ).first()

    if snapshot is None:
        logger.warning("No snapshot for %s %s %s %s", workflow_id, channel, period_type, period_date,
                       extra={'workflow_id': workflow_id, 'channel': channel})
        return []

    product_id = resolve_product_id(session, workflow_id)
    computed_at = datetime.now(timezone.utc)

    flags = []
    for metric_name in HEALTH_METRICS:
        value = getattr(snapshot, metric_name)
        if value is None:
            continue

        target = resolve_target(session, metric_name, workflow_id, product_id,
                                channel, period_type, period_date)
        delta = compute_delta(session, workflow_id, channel, period_type, period_date, metric_name)
        rag = evaluate_rag(metric_name, value, target, delta.delta_wow, config)

        flags.append(_upsert_flag(session, {
            'workflow_id': workflow_id,
            'product_id': product_id,
            'channel': channel,
            'period_type': period_type,
            'period_start_date': period_date,
            'metric_name': metric_name,
            'value': value,
            'target': target.target_value if target is not None else None,
            'status': rag.status,
            'reason': rag.reason,
            'delta_wow': delta.delta_wow,
            'delta_mom': delta.delta_mom,
            'computed_at': computed_at,
        }))

    session.flush()
    return flags


def _combinations_in_range(start_date: date, end_date: date):
    session = get_session()
    try:
        return session.query(
            MetricSnapshot.workflow_id,
            MetricSnapshot.channel,
            MetricSnapshot.period_type,
            MetricSnapshot.period_start_date,
        ).filter(
            MetricSnapshot.period_start_date >= start_date,
            MetricSnapshot.period_start_date <= end_date,
        ).distinct().order_by(
            MetricSnapshot.period_start_date,
            MetricSnapshot.workflow_id,
            MetricSnapshot.channel,
            MetricSnapshot.period_type,
        ).all()
    except SQLAlchemyError as e:
        raise StoreError('recompute_health_flags', e) from e
    finally:
        session.close()


def recompute_health_flags(start_date: date, end_date: date,
                           config: Optional[HealthConfig] = None) -> RecomputeResult:
    """
    Recompute flags for every snapshot combination with a start date in range.

    Returns counts of processed and failed combinations. Failures never abort
    the batch.
    """
    if config is None:
        config = load_health_config()

    combinations = _combinations_in_range(start_date, end_date)
    result = RecomputeResult()

    for workflow_id, channel, period_type, period_date in combinations:
        context = {
            'workflow_id': workflow_id,
            'channel': channel,
            'period_type': period_type,
            'period_start_date': period_date,
        }
        try:
            with session_scope() as session:
                flags = compute_health_flags(session, workflow_id, channel, period_type, period_date, config)
                red = [
                    {
                        'workflow_id': f.workflow_id,
                        'channel': f.channel,
                        'period_start_date': f.period_start_date.isoformat(),
                        'metric_name': f.metric_name,
                        'reason': f.reason,
                    }
                    for f in flags if f.status == RED
                ]
        except Exception:
            result.errors += 1
            logger.error("Failed to compute health flags for %s %s %s %s",
                         workflow_id, channel, period_type, period_date,
                         exc_info=True, extra=context)
            continue

        result.processed += 1
        result.red_flags.extend(red)

    logger.info("Recomputed health flags %s..%s: %d processed, %d errors, %d red",
                start_date, end_date, result.processed, result.errors, len(result.red_flags))

    if result.red_flags:
        notify_red_flags(result, start_date, end_date)

    return result
