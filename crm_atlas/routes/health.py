"""
Channel health blueprint — flags, recompute, pulse scorecard, workflow detail,
workflow→product mapping, CSV export and the global health config.
"""
import csv
import io
import logging
from datetime import date

from flask import Blueprint, Response, jsonify, request

from crm_atlas.config import PERIOD_TYPES, RAG_STATUSES, ROLLUP_STRATEGIES
from crm_atlas.database import get_session
from crm_atlas.exceptions import StoreError
from crm_atlas.models.health_config import HealthConfigRow
from crm_atlas.models.health_flag import HealthFlag
from crm_atlas.models.metric_snapshot import MetricSnapshot
from crm_atlas.models.product import Product
from crm_atlas.services.health import (
    apply_inferred_mappings,
    list_workflow_mappings,
    load_health_config,
    recompute_health_flags,
    set_workflow_mapping,
)
from crm_atlas.services.pulse import build_pulse_scorecard

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)

EXPORT_COLUMNS = [
    'workflow_id', 'channel', 'period_type', 'period_start_date', 'metric_name',
    'status', 'value', 'target', 'delta_wow', 'delta_mom', 'reason',
]

# red first in listings and exports
_STATUS_ORDER = {'red': 0, 'amber': 1, 'green': 2, 'unknown': 3}


def _parse_date(value):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _period_args():
    """(period_type, date, error_response) from the query string."""
    period_type = request.args.get('period_type', 'week')
    if period_type not in PERIOD_TYPES:
        return None, None, (jsonify({'error': f'Invalid period_type: {period_type}'}), 400)
    period_date = _parse_date(request.args.get('date'))
    if request.args.get('date') and period_date is None:
        return None, None, (jsonify({'error': 'date must be YYYY-MM-DD'}), 400)
    return period_type, period_date, None


def _query_flags(session, period_type, period_date):
    query = session.query(HealthFlag).filter(HealthFlag.period_type == period_type)
    if period_date:
        query = query.filter(HealthFlag.period_start_date == period_date)
    status = request.args.get('status')
    if status:
        query = query.filter(HealthFlag.status == status)
    workflow_id = request.args.get('workflow_id')
    if workflow_id:
        query = query.filter(HealthFlag.workflow_id == workflow_id)
    flags = query.order_by(HealthFlag.period_start_date.desc(), HealthFlag.workflow_id).all()
    return sorted(flags, key=lambda f: _STATUS_ORDER.get(f.status, 4))


# ── Flags ────────────────────────────────────────────────────────────────────

@bp.route('/api/health/flags')
def list_flags():
    """Health flags for a period, red first."""
    period_type, period_date, error = _period_args()
    if error:
        return error
    status = request.args.get('status')
    if status and status not in RAG_STATUSES:
        return jsonify({'error': f'Invalid status: {status}'}), 400

    session = get_session()
    try:
        flags = _query_flags(session, period_type, period_date)
        return jsonify([f.to_dict() for f in flags])
    finally:
        session.close()


@bp.route('/api/health/flags/export.csv')
def export_flags():
    """CSV download of flags for a period (reason strings verbatim)."""
    period_type, period_date, error = _period_args()
    if error:
        return error

    session = get_session()
    try:
        flags = _query_flags(session, period_type, period_date)
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS, extrasaction='ignore')
        writer.writeheader()
        for flag in flags:
            writer.writerow(flag.to_dict())
    finally:
        session.close()

    filename = f"health-flags-{period_type}-{period_date.isoformat() if period_date else 'all'}.csv"
    return Response(
        buf.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@bp.route('/api/health/recompute', methods=['POST'])
def recompute():
    """Recompute flags for every snapshot starting within [start_date, end_date]."""
    data = request.get_json(silent=True) or {}
    start_date = _parse_date(data.get('start_date'))
    end_date = _parse_date(data.get('end_date'))
    if not start_date or not end_date:
        return jsonify({'error': 'start_date and end_date (YYYY-MM-DD) are required'}), 400
    if start_date > end_date:
        return jsonify({'error': 'start_date must not be after end_date'}), 400

    try:
        result = recompute_health_flags(start_date, end_date)
    except StoreError as e:
        logger.error("Recompute %s..%s failed: %s", start_date, end_date, e)
        return jsonify({'error': str(e)}), 500
    return jsonify(result.to_dict())


# ── Pulse + workflow detail ──────────────────────────────────────────────────

@bp.route('/api/health/pulse')
def pulse():
    """Per-product scorecard for one period."""
    period_type, period_date, error = _period_args()
    if error:
        return error
    if period_date is None:
        return jsonify({'error': 'date is required'}), 400

    channels = [c for c in request.args.get('channels', '').split(',') if c]
    live_only = request.args.get('live_only', '').lower() in ('1', 'true', 'yes')

    session = get_session()
    try:
        config = load_health_config(session)
        scorecard = build_pulse_scorecard(session, period_type, period_date, config,
                                          channels=channels, live_only=live_only)
        return jsonify(scorecard)
    except StoreError as e:
        logger.error("Pulse scorecard failed: %s", e)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/health/workflows/<workflow_id>')
def workflow_detail(workflow_id):
    """All snapshots (oldest first) and flags for one workflow."""
    session = get_session()
    try:
        snapshots = session.query(MetricSnapshot).filter_by(
            workflow_id=workflow_id,
        ).order_by(MetricSnapshot.period_start_date).all()
        if not snapshots:
            return jsonify({'error': 'Workflow not found'}), 404

        flags = session.query(HealthFlag).filter_by(
            workflow_id=workflow_id,
        ).order_by(HealthFlag.period_start_date, HealthFlag.metric_name).all()

        return jsonify({
            'workflow_id': workflow_id,
            'snapshots': [s.to_dict() for s in snapshots],
            'flags': [f.to_dict() for f in flags],
        })
    finally:
        session.close()


# ── Workflow → product mapping ───────────────────────────────────────────────

@bp.route('/api/health/mapping')
def list_mappings():
    """Snapshot workflow_ids with inferred, mapped and effective product."""
    session = get_session()
    try:
        return jsonify(list_workflow_mappings(session))
    finally:
        session.close()


@bp.route('/api/health/mapping/<workflow_id>', methods=['PUT'])
def update_mapping(workflow_id):
    """Map a workflow to a product; a null product_id removes the mapping."""
    data = request.get_json(silent=True) or {}
    if 'product_id' not in data:
        return jsonify({'error': 'product_id is required (null removes the mapping)'}), 400
    product_id = data['product_id']
    if product_id is not None and (not isinstance(product_id, int) or isinstance(product_id, bool)):
        return jsonify({'error': 'product_id must be an integer'}), 400

    session = get_session()
    try:
        if product_id is not None and session.get(Product, product_id) is None:
            return jsonify({'error': 'Product not found'}), 400
        mapping = set_workflow_mapping(session, workflow_id, product_id)
        session.commit()
        if mapping is None:
            return jsonify({'workflow_id': workflow_id, 'product_id': None, 'product_name': None})
        return jsonify(mapping.to_dict())
    except Exception as e:
        session.rollback()
        logger.error("Failed to update mapping for %s: %s", workflow_id, e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/health/mapping/infer', methods=['POST'])
def infer_mappings():
    """Persist the inferred product for every unmapped workflow."""
    session = get_session()
    try:
        created = apply_inferred_mappings(session)
        session.commit()
        return jsonify({'created': created})
    except Exception as e:
        session.rollback()
        logger.error("Failed to apply inferred mappings: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


# ── Config ───────────────────────────────────────────────────────────────────

@bp.route('/api/health/config')
def get_config():
    session = get_session()
    try:
        return jsonify(load_health_config(session).to_dict())
    except StoreError as e:
        logger.error("Loading health config failed: %s", e)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/health/config', methods=['PUT'])
def update_config():
    """Create or update the single health_config row."""
    data = request.get_json(silent=True) or {}

    values = {}
    for key in ('amber_floor', 'wow_amber_drop', 'wow_red_drop', 'red_floor_factor'):
        if key in data:
            try:
                values[key] = float(data[key])
            except (TypeError, ValueError):
                return jsonify({'error': f'{key} must be a number'}), 400
            if values[key] <= 0:
                return jsonify({'error': f'{key} must be positive'}), 400
    if 'rollup_strategy' in data:
        if data['rollup_strategy'] not in ROLLUP_STRATEGIES:
            return jsonify({'error': f"Invalid rollup_strategy: {data['rollup_strategy']}"}), 400
        values['rollup_strategy'] = data['rollup_strategy']

    session = get_session()
    try:
        row = session.query(HealthConfigRow).order_by(HealthConfigRow.id).first()
        if row is None:
            defaults = load_health_config(session).to_dict()
            row = HealthConfigRow(**{**defaults, **values})
            session.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
        session.commit()
        return jsonify(load_health_config(session).to_dict())
    except Exception as e:
        session.rollback()
        logger.error("Failed to update health config: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()
