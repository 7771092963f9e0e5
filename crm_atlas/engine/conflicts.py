"""
Flow conflict detection — heuristic over-messaging risk between live flows.

Every unordered pair of live flows sharing at least one channel is scored;
pairs on disjoint channels never conflict. Conflicts are computed on demand
and never stored.

Scoring:
    +1 per shared channel
    +2 both flows send daily
    +1 both flows are event-triggered
    +1 per flow without a priority
    +1 per flow without suppression rules
    +1 same product
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from crm_atlas.config import HIGH_RISK_SCORE, MEDIUM_RISK_SCORE


@dataclass
class FlowConflict:
    flow_a: Any
    flow_b: Any
    shared_channels: List[str]
    risk_score: int = 0
    risk_factors: List[str] = field(default_factory=list)

    @property
    def risk_band(self) -> str:
        return risk_band(self.risk_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'flow_a': _flow_summary(self.flow_a),
            'flow_b': _flow_summary(self.flow_b),
            'shared_channels': list(self.shared_channels),
            'risk_score': self.risk_score,
            'risk_band': self.risk_band,
            'risk_factors': list(self.risk_factors),
        }


def _flow_summary(flow) -> Dict[str, Any]:
    product = getattr(flow, 'product', None)
    return {
        'id': flow.id,
        'name': flow.name,
        'product_id': flow.product_id,
        'product_name': product.name if product is not None else 'Unknown',
        'trigger_type': flow.trigger_type,
        'frequency': flow.frequency,
        'channels': list(flow.channels or []),
        'priority': flow.priority,
        'suppression_rules': flow.suppression_rules,
    }


def risk_band(score: int) -> str:
    if score >= HIGH_RISK_SCORE:
        return 'High Risk'
    if score >= MEDIUM_RISK_SCORE:
        return 'Medium Risk'
    return 'Low Risk'


def _is_daily(flow) -> bool:
    return (flow.frequency or '').strip().lower() == 'daily'


def _pair_order(flow):
    return flow.name or '', flow.id if flow.id is not None else 0


def score_pair(flow_a, flow_b):
    """Score one pair. Returns None when the flows share no channel."""
    channels_b = set(flow_b.channels or [])
    shared = [ch for ch in (flow_a.channels or []) if ch in channels_b]
    if not shared:
        return None

    conflict = FlowConflict(flow_a=flow_a, flow_b=flow_b, shared_channels=shared)

    def add(points, factor):
        conflict.risk_score += points
        conflict.risk_factors.append(factor)

    add(len(shared), f"{len(shared)} shared channel(s): {', '.join(shared)}")

    if _is_daily(flow_a) and _is_daily(flow_b):
        add(2, 'Both flows send daily')

    if flow_a.trigger_type == 'event_based' and flow_b.trigger_type == 'event_based':
        add(1, 'Both are event-triggered (higher collision risk)')

    for flow in (flow_a, flow_b):
        if flow.priority is None:
            add(1, f"{flow.name} has no priority set")

    for flow in (flow_a, flow_b):
        if not (flow.suppression_rules or '').strip():
            add(1, f"{flow.name} has no suppression rules")

    if flow_a.product_id is not None and flow_a.product_id == flow_b.product_id:
        add(1, 'Same product')

    return conflict


def detect_conflicts(flows: Iterable) -> List[FlowConflict]:
    """Pairwise conflict scan over live flows, highest risk first.

    Within a pair the flows are ordered by (name, id), so results do not
    depend on input order. Ties in score sort by flow names.
    """
    live = sorted((f for f in flows if f.live), key=_pair_order)

    conflicts = []
    for i, flow_a in enumerate(live):
        for flow_b in live[i + 1:]:
            conflict = score_pair(flow_a, flow_b)
            if conflict is not None:
                conflicts.append(conflict)

    conflicts.sort(key=lambda c: (-c.risk_score, c.flow_a.name or '', c.flow_b.name or ''))
    return conflicts


def summarize_conflicts(conflicts: List[FlowConflict], top: int = 5) -> Dict[str, Any]:
    """Counts per risk band plus the highest-risk conflicts."""
    bands = [c.risk_band for c in conflicts]
    return {
        'total_conflicts': len(conflicts),
        'top_conflicts': [c.to_dict() for c in conflicts[:top]],
        'high_risk_count': bands.count('High Risk'),
        'medium_risk_count': bands.count('Medium Risk'),
        'low_risk_count': bands.count('Low Risk'),
    }
