"""
KPI targets blueprint — CRUD for scoped metric targets.

Writes are rejected with 409 when another target with the same metric and
scope overlaps the effective date range.
"""
import logging
from datetime import date

from flask import Blueprint, jsonify, request

from crm_atlas.config import CHANNELS, HEALTH_METRICS, PERIOD_TYPES
from crm_atlas.database import get_session
from crm_atlas.engine.targets import find_overlapping_targets
from crm_atlas.models.kpi_target import KpiTarget

logger = logging.getLogger('routes.targets')

bp = Blueprint('targets', __name__)


def _validate(data, partial=False):
    """Return (values, error_message)."""
    values = {}

    if 'metric_name' in data or not partial:
        if data.get('metric_name') not in HEALTH_METRICS:
            return None, f"metric_name must be one of {', '.join(HEALTH_METRICS)}"
        values['metric_name'] = data['metric_name']

    for key in ('target_value', 'amber_floor', 'red_floor'):
        if key not in data:
            continue
        if data[key] is None and key != 'target_value':
            values[key] = None
            continue
        try:
            values[key] = float(data[key])
        except (TypeError, ValueError):
            return None, f'{key} must be a number'
        if values[key] <= 0 and key != 'target_value':
            return None, f'{key} must be positive'
    if not partial and 'target_value' not in values:
        return None, 'target_value is required'

    for key in ('effective_from', 'effective_to'):
        if key not in data:
            continue
        if not data[key]:
            values[key] = None
            continue
        try:
            values[key] = date.fromisoformat(data[key])
        except (TypeError, ValueError):
            return None, f'{key} must be YYYY-MM-DD'
    if not partial and not values.get('effective_from'):
        return None, 'effective_from is required'

    if data.get('channel') and data['channel'] not in CHANNELS:
        return None, f"Invalid channel: {data['channel']}"
    if data.get('period_type') and data['period_type'] not in PERIOD_TYPES:
        return None, f"Invalid period_type: {data['period_type']}"
    product_id = data.get('product_id')
    if product_id is not None and (not isinstance(product_id, int) or isinstance(product_id, bool)):
        return None, 'product_id must be an integer'
    for key in ('workflow_id', 'product_id', 'channel', 'period_type'):
        if key in data:
            values[key] = data[key] or None

    return values, None


def _check_range(target):
    if target.effective_from is None:
        return 'effective_from is required'
    if target.effective_to is not None and target.effective_to < target.effective_from:
        return 'effective_to must not be before effective_from'
    return None


def _conflict_response(overlaps):
    return jsonify({
        'error': 'Overlapping target exists for this metric and scope',
        'conflicting_ids': [t.id for t in overlaps],
    }), 409


@bp.route('/api/targets')
def list_targets():
    session = get_session()
    try:
        query = session.query(KpiTarget)
        metric_name = request.args.get('metric_name')
        if metric_name:
            query = query.filter(KpiTarget.metric_name == metric_name)
        targets = query.order_by(KpiTarget.effective_from.desc(), KpiTarget.id.desc()).all()
        return jsonify([t.to_dict() for t in targets])
    finally:
        session.close()


@bp.route('/api/targets', methods=['POST'])
def create_target():
    values, error = _validate(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400

    target = KpiTarget(**values)
    range_error = _check_range(target)
    if range_error:
        return jsonify({'error': range_error}), 400

    session = get_session()
    try:
        overlaps = find_overlapping_targets(session, target)
        if overlaps:
            return _conflict_response(overlaps)
        session.add(target)
        session.commit()
        return jsonify(target.to_dict()), 201
    except Exception as e:
        session.rollback()
        logger.error("Failed to create target: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/targets/<int:target_id>', methods=['PUT'])
def update_target(target_id):
    values, error = _validate(request.get_json(silent=True) or {}, partial=True)
    if error:
        return jsonify({'error': error}), 400

    session = get_session()
    try:
        target = session.get(KpiTarget, target_id)
        if target is None:
            return jsonify({'error': 'Target not found'}), 404

        with session.no_autoflush:
            for key, value in values.items():
                setattr(target, key, value)
            range_error = _check_range(target)
            if range_error:
                session.rollback()
                return jsonify({'error': range_error}), 400
            overlaps = find_overlapping_targets(session, target)
        if overlaps:
            session.rollback()
            return _conflict_response(overlaps)

        session.commit()
        return jsonify(target.to_dict())
    except Exception as e:
        session.rollback()
        logger.error("Failed to update target %s: %s", target_id, e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/targets/<int:target_id>', methods=['DELETE'])
def delete_target(target_id):
    session = get_session()
    try:
        target = session.get(KpiTarget, target_id)
        if target is None:
            return jsonify({'error': 'Target not found'}), 404
        session.delete(target)
        session.commit()
        return jsonify({'ok': True})
    finally:
        session.close()
