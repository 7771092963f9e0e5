"""
RAG (red/amber/green) evaluation for a single health metric.

Pure classification: every call re-evaluates from its inputs. Reason strings
are shown verbatim in the dashboard and in CSV exports, so their formatting
is part of the contract (2 decimals for guardrail metrics, 1 for engagement).
"""
from dataclasses import dataclass
from typing import Optional

from crm_atlas.engine.config import HealthConfig
from crm_atlas.engine.metrics import MetricKind, classify_metric

GREEN = 'green'
AMBER = 'amber'
RED = 'red'
UNKNOWN = 'unknown'


@dataclass(frozen=True)
class TargetRule:
    """Minimal target shape the evaluator needs; KpiTarget rows also fit."""
    target_value: float
    amber_floor: Optional[float] = None
    red_floor: Optional[float] = None


@dataclass(frozen=True)
class RagResult:
    status: str
    reason: str


def _wow_suffix(delta_wow: Optional[float], signed: bool) -> str:
    if not delta_wow:
        return ''
    sign = '+' if signed and delta_wow > 0 else ''
    return f" ({sign}{delta_wow:.1f}% WoW)"


def _evaluate_without_target(metric_name, delta_wow, config) -> RagResult:
    # Without a target only a decline can be judged, never "acceptable"
    if delta_wow is not None:
        if delta_wow <= -config.wow_red_drop * 100:
            return RagResult(RED, f"{metric_name} dropped {abs(delta_wow):.1f}% WoW (no target)")
        if delta_wow <= -config.wow_amber_drop * 100:
            return RagResult(AMBER, f"{metric_name} dropped {abs(delta_wow):.1f}% WoW (no target)")
    return RagResult(UNKNOWN, 'No target configured')


def _evaluate_guardrail(metric_name, value, target_value, amber_floor, delta_wow, config) -> RagResult:
    critical = target_value / amber_floor
    suffix = _wow_suffix(delta_wow, signed=True)

    if value > critical or (delta_wow is not None and delta_wow >= config.wow_red_drop * 100):
        return RagResult(RED, f"{metric_name} {value:.2f}% exceeds critical threshold {critical:.2f}%{suffix}")

    if value > target_value or (delta_wow is not None and delta_wow >= config.wow_amber_drop * 100):
        return RagResult(AMBER, f"{metric_name} {value:.2f}% above target {target_value:.2f}%{suffix}")

    return RagResult(GREEN, 'Meeting target')


def _evaluate_engagement(metric_name, value, target_value, amber_floor, red_floor, delta_wow, config) -> RagResult:
    red_threshold = target_value * red_floor
    amber_threshold = target_value * amber_floor
    suffix = _wow_suffix(delta_wow, signed=False)

    if value < red_threshold or (delta_wow is not None and delta_wow <= -config.wow_red_drop * 100):
        return RagResult(RED, f"{metric_name} {value:.1f}% critically low, below {red_threshold:.1f}%{suffix}")

    if value < amber_threshold or (delta_wow is not None and delta_wow <= -config.wow_amber_drop * 100):
        return RagResult(AMBER, f"{metric_name} {value:.1f}% below target {target_value:.1f}%{suffix}")

    return RagResult(GREEN, 'Meeting target')


def evaluate_rag(
    metric_name: str,
    value: Optional[float],
    target,
    delta_wow: Optional[float],
    config: HealthConfig,
) -> RagResult:
    """
    Classify one metric value as green / amber / red / unknown.

    Args:
        metric_name: snapshot metric, e.g. 'open_rate' or 'unsub_rate'.
        value:       current percentage value, None when there is no data.
        target:      resolved target (KpiTarget or TargetRule), None if unconfigured.
        delta_wow:   week-over-week change in percent, None if not computable.
        config:      explicit HealthConfig; thresholds are fractions.

    Returns:
        RagResult(status, reason).
    """
    if value is None:
        return RagResult(UNKNOWN, 'No data available')

    if target is None:
        return _evaluate_without_target(metric_name, delta_wow, config)

    kind = classify_metric(metric_name)
    target_value = target.target_value
    amber_floor = target.amber_floor or config.amber_floor
    red_floor = target.red_floor or amber_floor * config.red_floor_factor

    if kind is MetricKind.GUARDRAIL:
        return _evaluate_guardrail(metric_name, value, target_value, amber_floor, delta_wow, config)
    if kind is MetricKind.ENGAGEMENT:
        return _evaluate_engagement(metric_name, value, target_value, amber_floor, red_floor, delta_wow, config)
    return RagResult(UNKNOWN, f"Metric {metric_name} evaluation not configured")
