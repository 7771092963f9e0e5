"""
Pulse scorecard — per-product rollup of one period's snapshots and flags.

Rates are re-derived from summed counts (count / sends * 100). The overall
status follows HealthConfig.rollup_strategy:
    worst_of — the worst flag status (red > amber > green > unknown)
    weighted — send-weighted mean of known flag statuses
"""
import logging
from typing import Dict, List, Optional

from crm_atlas.engine.config import HealthConfig
from crm_atlas.models.flow import Flow
from crm_atlas.models.health_flag import HealthFlag
from crm_atlas.models.metric_snapshot import MetricSnapshot
from crm_atlas.models.product import Product
from crm_atlas.services.health import resolve_product_id

logger = logging.getLogger('services.pulse')

STATUS_PRIORITY = {'red': 3, 'amber': 2, 'green': 1, 'unknown': 0}

COUNT_FIELDS = ['sends', 'opens', 'clicks', 'unsubs', 'bounces', 'complaints']

RATE_FIELDS = {
    'open_rate': 'opens',
    'click_rate': 'clicks',
    'unsub_rate': 'unsubs',
    'bounce_rate': 'bounces',
    'complaint_rate': 'complaints',
}

MAX_WATCHOUTS = 3
OPEN_RATE_DROP_WATCHOUT = -10.0


def worst_status(flags) -> str:
    worst = 'unknown'
    for flag in flags:
        if STATUS_PRIORITY.get(flag.status, 0) > STATUS_PRIORITY[worst]:
            worst = flag.status
    return worst


def weighted_status(flags, sends_by_workflow: Dict[tuple, int]) -> str:
    total_weight = 0
    total_score = 0.0
    for flag in flags:
        if flag.status not in ('red', 'amber', 'green'):
            continue
        weight = sends_by_workflow.get((flag.workflow_id, flag.channel), 0) or 1
        total_weight += weight
        total_score += STATUS_PRIORITY[flag.status] * weight

    if total_weight == 0:
        return 'unknown'
    mean = total_score / total_weight
    if mean >= 2.5:
        return 'red'
    if mean >= 1.5:
        return 'amber'
    return 'green'


def build_watchouts(flags) -> List[str]:
    watchouts = []

    red_workflows = {(f.workflow_id, f.channel) for f in flags if f.status == 'red'}
    if red_workflows:
        watchouts.append(f"{len(red_workflows)} workflow(s) in red status")

    if any(f.metric_name == 'complaint_rate' and f.status != 'green' for f in flags):
        watchouts.append('Deliverability risk detected')

    open_deltas = [f.delta_wow for f in flags if f.metric_name == 'open_rate' and f.delta_wow is not None]
    if open_deltas:
        biggest_drop = min(open_deltas)
        if biggest_drop < OPEN_RATE_DROP_WATCHOUT:
            watchouts.append(f"Open rate dropped {abs(biggest_drop):.1f}% WoW")

    return watchouts[:MAX_WATCHOUTS]


def build_pulse_scorecard(
    session,
    period_type: str,
    period_date,
    config: HealthConfig,
    channels: Optional[List[str]] = None,
    live_only: bool = False,
) -> List[Dict]:
    """Group one period's snapshots by product and attach rollup status + watchouts."""
    query = session.query(MetricSnapshot).filter(
        MetricSnapshot.period_type == period_type,
        MetricSnapshot.period_start_date == period_date,
    )
    if channels:
        query = query.filter(MetricSnapshot.channel.in_(channels))
    snapshots = query.order_by(MetricSnapshot.workflow_id, MetricSnapshot.channel).all()

    flags = session.query(HealthFlag).filter(
        HealthFlag.period_type == period_type,
        HealthFlag.period_start_date == period_date,
    ).all()
    flags_by_key = {}
    for flag in flags:
        flags_by_key.setdefault((flag.workflow_id, flag.channel), []).append(flag)

    product_names = {p.id: p.name for p in session.query(Product).all()}
    live_workflows = {
        f.iterable_id for f in session.query(Flow.iterable_id).filter(Flow.live.is_(True)).all()
        if f.iterable_id
    }

    product_cache = {}
    grouped = {}
    for snapshot in snapshots:
        if live_only and snapshot.workflow_id not in live_workflows:
            continue

        if snapshot.workflow_id not in product_cache:
            product_cache[snapshot.workflow_id] = resolve_product_id(session, snapshot.workflow_id)
        product_id = product_cache[snapshot.workflow_id]
        key = product_id if product_id is not None else 'unassigned'

        if key not in grouped:
            grouped[key] = {
                'product_id': key,
                'product_name': product_names.get(product_id, 'Unassigned'),
                'workflows': [],
                'flags': [],
                'sends_by_workflow': {},
                **{name: 0 for name in COUNT_FIELDS},
            }
        product = grouped[key]
        product['workflows'].append(snapshot.to_dict())
        for name in COUNT_FIELDS:
            product[name] += getattr(snapshot, name) or 0
        product['sends_by_workflow'][(snapshot.workflow_id, snapshot.channel)] = snapshot.sends or 0
        product['flags'].extend(flags_by_key.get((snapshot.workflow_id, snapshot.channel), []))

    scorecard = []
    for product in grouped.values():
        sends = product['sends']
        product_flags = product.pop('flags')
        sends_by_workflow = product.pop('sends_by_workflow')

        for rate, count in RATE_FIELDS.items():
            product[rate] = (product[count] / sends * 100) if sends > 0 else None

        if config.rollup_strategy == 'weighted':
            product['overall_status'] = weighted_status(product_flags, sends_by_workflow)
        else:
            product['overall_status'] = worst_status(product_flags)

        product['watchouts'] = build_watchouts(product_flags)
        product['flags'] = [f.to_dict() for f in product_flags]
        scorecard.append(product)

    return scorecard
