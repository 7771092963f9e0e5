"""
Centralized configuration — all env vars, domain constants.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Health engine ─────────────────────────────────────────────────────────────
# Optional override for the YAML file holding HealthConfig defaults
HEALTH_CONFIG_PATH = os.getenv('HEALTH_CONFIG_PATH')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Auth ─────────────────────────────────────────────────────────────────────
DASHBOARD_PASSWORD = os.getenv('DASHBOARD_PASSWORD')

# ── Messaging domain ─────────────────────────────────────────────────────────
CHANNELS = ['email', 'push', 'in_app']

FLOW_PURPOSES = ['activation', 'retention', 'winback', 'transactional']

TRIGGER_TYPES = ['event_based', 'scheduled', 'api_triggered']

PERIOD_TYPES = ['week', 'month']

# ── Health metrics ────────────────────────────────────────────────────────────
# Snapshot field name == metric name for every evaluated metric
HEALTH_METRICS = [
    'open_rate',
    'click_rate',
    'unsub_rate',
    'bounce_rate',
    'complaint_rate',
]

RAG_STATUSES = ['green', 'amber', 'red', 'unknown']

ROLLUP_STRATEGIES = ['worst_of', 'weighted']

# ── Conflict risk bands ───────────────────────────────────────────────────────
HIGH_RISK_SCORE = 5
MEDIUM_RISK_SCORE = 3
