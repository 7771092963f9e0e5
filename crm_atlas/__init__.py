"""
CRM Atlas — channel health and flow-conflict service.

create_app() wires logging, the password gate and every blueprint.
"""
import importlib
import os

from flask import Flask

BLUEPRINT_MODULES = (
    'crm_atlas.routes.auth',
    'crm_atlas.routes.dashboard',
    'crm_atlas.routes.health',
    'crm_atlas.routes.targets',
    'crm_atlas.routes.flows',
    'crm_atlas.routes.imports',
    'crm_atlas.routes.products',
)

# Imported so Base.metadata sees every table; Alembic owns the schema
MODEL_MODULES = (
    'crm_atlas.models.product',
    'crm_atlas.models.flow',
    'crm_atlas.models.workflow_product_map',
    'crm_atlas.models.metric_snapshot',
    'crm_atlas.models.kpi_target',
    'crm_atlas.models.health_config',
    'crm_atlas.models.health_flag',
)


def create_app():
    """Create and configure the Flask application."""
    from crm_atlas import config
    from crm_atlas.logging_config import configure_logging

    app = Flask(__name__)
    configure_logging(app)

    app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    app.config['DASHBOARD_PASSWORD'] = config.DASHBOARD_PASSWORD

    for name in MODEL_MODULES:
        importlib.import_module(name)

    for name in BLUEPRINT_MODULES:
        app.register_blueprint(importlib.import_module(name).bp)

    return app
