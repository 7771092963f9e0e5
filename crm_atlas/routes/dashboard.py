"""
Dashboard routes — Home page, stats API, health check.
"""
import logging

from flask import Blueprint, jsonify, render_template_string
from sqlalchemy import func

from crm_atlas.database import get_session
from crm_atlas.models.flow import Flow
from crm_atlas.models.health_flag import HealthFlag
from crm_atlas.models.product import Product

logger = logging.getLogger('routes.dashboard')

bp = Blueprint('dashboard', __name__)

HOME_PAGE = '''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>CRM Atlas</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="min-h-screen p-10" style="background:#f5f5f0;">
    <h1 class="text-xl font-bold mb-6" style="color:#005c69;">CRM Atlas</h1>
    <div class="grid grid-cols-4 gap-4 mb-8">
        <div class="bg-white rounded-lg p-4"><p class="text-xs">Products</p><p class="text-2xl">{{ stats.products }}</p></div>
        <div class="bg-white rounded-lg p-4"><p class="text-xs">Flows</p><p class="text-2xl">{{ stats.flows }}</p></div>
        <div class="bg-white rounded-lg p-4"><p class="text-xs">Live flows</p><p class="text-2xl">{{ stats.live_flows }}</p></div>
        <div class="bg-white rounded-lg p-4"><p class="text-xs">Red flags</p><p class="text-2xl" style="color:#f65c4e;">{{ stats.flags.red }}</p></div>
    </div>
    <ul class="text-sm space-y-1">
        <li><a href="/api/health/flags">Health flags</a></li>
        <li><a href="/api/health/flags/export.csv">Export flags (CSV)</a></li>
        <li><a href="/api/conflicts/summary">Flow conflicts</a></li>
        <li><a href="/api/targets">KPI targets</a></li>
    </ul>
</body>
</html>
'''


def _collect_stats():
    session = get_session()
    try:
        flag_counts = {status: 0 for status in ('green', 'amber', 'red', 'unknown')}
        for status, count in session.query(HealthFlag.status, func.count(HealthFlag.id)).group_by(HealthFlag.status):
            flag_counts[status] = count
        return {
            'products': session.query(func.count(Product.id)).scalar() or 0,
            'flows': session.query(func.count(Flow.id)).scalar() or 0,
            'live_flows': session.query(func.count(Flow.id)).filter(Flow.live.is_(True)).scalar() or 0,
            'flags': flag_counts,
        }
    finally:
        session.close()


@bp.route('/')
def index():
    """Home hub."""
    return render_template_string(HOME_PAGE, stats=_collect_stats())


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/stats')
def get_stats():
    """API endpoint for dashboard stats."""
    try:
        return jsonify(_collect_stats())
    except Exception as e:
        logger.error("Error getting stats: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
