"""
Password gate for the dashboard and API.

Active only when app.config['DASHBOARD_PASSWORD'] is set. Browser pages
redirect to /login; /api/* answers 401 JSON so scripts fail loudly.
"""
import logging

from flask import Blueprint, current_app, jsonify, redirect, render_template_string, request, session

logger = logging.getLogger('routes.auth')

bp = Blueprint('auth', __name__)

UNGATED_PATHS = ('/health', '/login')

LOGIN_PAGE = '''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Sign in · CRM Atlas</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="min-h-screen flex items-center justify-center" style="background:#f5f5f0;">
    <form method="POST" action="/login" class="bg-white rounded-lg p-8 w-80">
        <h1 class="text-lg font-bold mb-4" style="color:#005c69;">CRM Atlas</h1>
        {% if failed %}<p class="text-xs mb-3" style="color:#f65c4e;">Password not recognised</p>{% endif %}
        <input type="password" name="password" autofocus class="w-full border rounded px-3 py-2 mb-3 text-sm">
        <button type="submit" class="w-full rounded py-2 text-sm text-white" style="background:#005c69;">Sign in</button>
    </form>
</body>
</html>
'''


def _password():
    return current_app.config.get('DASHBOARD_PASSWORD')


@bp.before_app_request
def gate():
    if not _password() or request.path in UNGATED_PATHS or session.get('authenticated'):
        return None
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Authentication required'}), 401
    return redirect('/login')


@bp.route('/login', methods=['GET', 'POST'])
def login():
    failed = False
    if request.method == 'POST':
        if request.form.get('password') == _password():
            session['authenticated'] = True
            return redirect('/')
        failed = True
        logger.warning("Rejected dashboard login from %s", request.remote_addr)
    return render_template_string(LOGIN_PAGE, failed=failed)


@bp.route('/logout')
def logout():
    session.clear()
    return redirect('/login')
