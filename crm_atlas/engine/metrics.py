"""
Metric kinds for RAG evaluation.

Metric names are resolved to a MetricKind once, at the boundary, so the
evaluator branches on an enum rather than on string lists.
"""
from enum import Enum


class MetricKind(Enum):
    GUARDRAIL = 'guardrail'      # lower is better
    ENGAGEMENT = 'engagement'    # higher is better
    UNKNOWN = 'unknown'


_KINDS = {
    'unsub_rate': MetricKind.GUARDRAIL,
    'bounce_rate': MetricKind.GUARDRAIL,
    'complaint_rate': MetricKind.GUARDRAIL,
    'open_rate': MetricKind.ENGAGEMENT,
    'click_rate': MetricKind.ENGAGEMENT,
}


def classify_metric(metric_name: str) -> MetricKind:
    """Map a metric name to its kind; unrecognised names are UNKNOWN."""
    return _KINDS.get(metric_name, MetricKind.UNKNOWN)
