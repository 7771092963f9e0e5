"""
Import blueprint — CSV uploads for metric snapshots and flows.

Responses always carry per-row errors alongside the counts; a partially bad
file is a 200 with `success: false`, not a failure of the whole upload.
"""
import logging
import uuid

from flask import Blueprint, jsonify, request

from crm_atlas.database import get_session
from crm_atlas.services.importer import (
    METRIC_REQUIRED_COLUMNS,
    FLOW_REQUIRED_COLUMNS,
    import_flow_rows,
    import_metric_rows,
    parse_csv,
)

logger = logging.getLogger('routes.imports')

bp = Blueprint('imports', __name__)


def _read_upload(required_columns):
    """(rows, error_response) for the multipart `file` field."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return None, (jsonify({'error': 'CSV file is required (field "file")'}), 400)
    try:
        rows = parse_csv(upload.stream)
    except UnicodeDecodeError:
        return None, (jsonify({'error': 'CSV must be UTF-8 encoded'}), 400)

    if not rows:
        return None, (jsonify({'error': 'CSV has no data rows'}), 400)
    missing = [c for c in required_columns if c not in rows[0]]
    if missing:
        return None, (jsonify({'error': f"Missing columns: {', '.join(missing)}"}), 400)
    return rows, None


@bp.route('/api/import/metrics', methods=['POST'])
def import_metrics():
    rows, error = _read_upload(METRIC_REQUIRED_COLUMNS)
    if error:
        return error

    batch_id = request.form.get('batch_id') or str(uuid.uuid4())
    session = get_session()
    try:
        result = import_metric_rows(session, rows, batch_id)
    finally:
        session.close()

    payload = result.to_dict()
    payload['batch_id'] = batch_id
    return jsonify(payload)


@bp.route('/api/import/flows', methods=['POST'])
def import_flows():
    rows, error = _read_upload(FLOW_REQUIRED_COLUMNS)
    if error:
        return error

    session = get_session()
    try:
        result = import_flow_rows(session, rows)
    finally:
        session.close()
    return jsonify(result.to_dict())
