"""
Flows blueprint — flow CRUD plus the live-flow conflict report.
"""
import logging

from flask import Blueprint, jsonify, request

from crm_atlas.config import CHANNELS, FLOW_PURPOSES, TRIGGER_TYPES
from crm_atlas.database import get_session
from crm_atlas.engine.conflicts import detect_conflicts, summarize_conflicts
from crm_atlas.models.flow import Flow
from crm_atlas.models.product import Product

logger = logging.getLogger('routes.flows')

bp = Blueprint('flows', __name__)

EDITABLE_FIELDS = [
    'product_id', 'name', 'purpose', 'description', 'trigger_type', 'frequency',
    'channels', 'live', 'sto', 'iterable_id', 'priority',
    'max_frequency_per_user_days', 'suppression_rules',
]


def _validate(data, partial=False):
    """Return (values, error_message) for a flow create/update payload."""
    values = {k: data[k] for k in EDITABLE_FIELDS if k in data}

    if not partial:
        for key in ('name', 'trigger_type', 'channels'):
            if not data.get(key):
                return None, f'{key} is required'

    if 'name' in values and not str(values['name']).strip():
        return None, 'name must not be empty'
    if 'purpose' in values and values['purpose'] not in FLOW_PURPOSES:
        return None, f"Invalid purpose: {values['purpose']}"
    if 'trigger_type' in values and values['trigger_type'] not in TRIGGER_TYPES:
        return None, f"Invalid trigger_type: {values['trigger_type']}"
    if 'channels' in values:
        channels = values['channels']
        if not isinstance(channels, list) or any(c not in CHANNELS for c in channels):
            return None, f"channels must be a list drawn from {', '.join(CHANNELS)}"
    if values.get('priority') is not None:
        priority = values['priority']
        if not isinstance(priority, int) or isinstance(priority, bool) or not 1 <= priority <= 100:
            return None, 'priority must be an integer between 1 and 100'
    if values.get('max_frequency_per_user_days') is not None:
        days = values['max_frequency_per_user_days']
        if not isinstance(days, int) or isinstance(days, bool) or days < 0:
            return None, 'max_frequency_per_user_days must be a non-negative integer'

    return values, None


# ── CRUD ─────────────────────────────────────────────────────────────────────

@bp.route('/api/flows')
def list_flows():
    session = get_session()
    try:
        query = session.query(Flow)
        if request.args.get('live', '').lower() in ('1', 'true', 'yes'):
            query = query.filter(Flow.live.is_(True))
        product_id = request.args.get('product_id', type=int)
        if product_id:
            query = query.filter(Flow.product_id == product_id)
        flows = query.order_by(Flow.updated_at.desc(), Flow.id.desc()).all()
        return jsonify([f.to_dict() for f in flows])
    finally:
        session.close()


@bp.route('/api/flows/<int:flow_id>')
def get_flow(flow_id):
    session = get_session()
    try:
        flow = session.get(Flow, flow_id)
        if flow is None:
            return jsonify({'error': 'Flow not found'}), 404
        return jsonify(flow.to_dict())
    finally:
        session.close()


@bp.route('/api/flows', methods=['POST'])
def create_flow():
    values, error = _validate(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400

    session = get_session()
    try:
        if values.get('product_id') is not None and session.get(Product, values['product_id']) is None:
            return jsonify({'error': 'Product not found'}), 400
        flow = Flow(**values)
        session.add(flow)
        session.commit()
        return jsonify(flow.to_dict()), 201
    except Exception as e:
        session.rollback()
        logger.error("Failed to create flow: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/flows/<int:flow_id>', methods=['PUT'])
def update_flow(flow_id):
    values, error = _validate(request.get_json(silent=True) or {}, partial=True)
    if error:
        return jsonify({'error': error}), 400

    session = get_session()
    try:
        flow = session.get(Flow, flow_id)
        if flow is None:
            return jsonify({'error': 'Flow not found'}), 404
        for key, value in values.items():
            setattr(flow, key, value)
        session.commit()
        return jsonify(flow.to_dict())
    except Exception as e:
        session.rollback()
        logger.error("Failed to update flow %s: %s", flow_id, e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/flows/<int:flow_id>', methods=['DELETE'])
def delete_flow(flow_id):
    session = get_session()
    try:
        flow = session.get(Flow, flow_id)
        if flow is None:
            return jsonify({'error': 'Flow not found'}), 404
        session.delete(flow)
        session.commit()
        return jsonify({'ok': True})
    finally:
        session.close()


# ── Conflicts ────────────────────────────────────────────────────────────────

def _live_flow_conflicts(session):
    flows = session.query(Flow).filter(Flow.live.is_(True)).all()
    return detect_conflicts(flows)


@bp.route('/api/conflicts')
def list_conflicts():
    """All pairwise conflicts between live flows, highest risk first."""
    session = get_session()
    try:
        return jsonify([c.to_dict() for c in _live_flow_conflicts(session)])
    finally:
        session.close()


@bp.route('/api/conflicts/summary')
def conflicts_summary():
    session = get_session()
    try:
        return jsonify(summarize_conflicts(_live_flow_conflicts(session)))
    finally:
        session.close()
