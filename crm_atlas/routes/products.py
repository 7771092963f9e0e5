"""
Products blueprint — product CRUD.

Names are unique (409 on a clash). A product still referenced by flows,
workflow mappings or KPI targets cannot be deleted.
"""
import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import func

from crm_atlas.database import get_session
from crm_atlas.models.flow import Flow
from crm_atlas.models.kpi_target import KpiTarget
from crm_atlas.models.product import Product
from crm_atlas.models.workflow_product_map import WorkflowProductMap

logger = logging.getLogger('routes.products')

bp = Blueprint('products', __name__)


def _validate(data, partial=False):
    """Return (values, error_message)."""
    values = {}
    if 'name' in data or not partial:
        name = data.get('name')
        if not isinstance(name, str) or not name.strip():
            return None, 'name is required'
        values['name'] = name.strip()
    if 'description' in data:
        values['description'] = data['description'] or None
    return values, None


def _name_taken(session, name, exclude_id=None):
    query = session.query(Product.id).filter(Product.name == name)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def _references(session, product_id):
    counts = {
        'flows': session.query(Flow).filter(Flow.product_id == product_id).count(),
        'workflow_mappings': session.query(WorkflowProductMap).filter(
            WorkflowProductMap.product_id == product_id).count(),
        'targets': session.query(KpiTarget).filter(KpiTarget.product_id == product_id).count(),
    }
    return {k: v for k, v in counts.items() if v}


@bp.route('/api/products')
def list_products():
    """All products by name, each with its flow count."""
    session = get_session()
    try:
        flow_counts = dict(
            session.query(Flow.product_id, func.count(Flow.id)).group_by(Flow.product_id).all()
        )
        products = session.query(Product).order_by(Product.name).all()
        return jsonify([
            {**p.to_dict(), 'flow_count': flow_counts.get(p.id, 0)}
            for p in products
        ])
    finally:
        session.close()


@bp.route('/api/products/<int:product_id>')
def get_product(product_id):
    session = get_session()
    try:
        product = session.get(Product, product_id)
        if product is None:
            return jsonify({'error': 'Product not found'}), 404
        flows = session.query(Flow).filter(Flow.product_id == product_id).order_by(Flow.name).all()
        return jsonify({**product.to_dict(), 'flows': [f.to_dict() for f in flows]})
    finally:
        session.close()


@bp.route('/api/products', methods=['POST'])
def create_product():
    values, error = _validate(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400

    session = get_session()
    try:
        if _name_taken(session, values['name']):
            return jsonify({'error': f"Product \"{values['name']}\" already exists"}), 409
        product = Product(**values)
        session.add(product)
        session.commit()
        return jsonify(product.to_dict()), 201
    except Exception as e:
        session.rollback()
        logger.error("Failed to create product: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/products/<int:product_id>', methods=['PUT'])
def update_product(product_id):
    values, error = _validate(request.get_json(silent=True) or {}, partial=True)
    if error:
        return jsonify({'error': error}), 400

    session = get_session()
    try:
        product = session.get(Product, product_id)
        if product is None:
            return jsonify({'error': 'Product not found'}), 404
        if 'name' in values and _name_taken(session, values['name'], exclude_id=product_id):
            return jsonify({'error': f"Product \"{values['name']}\" already exists"}), 409
        for key, value in values.items():
            setattr(product, key, value)
        session.commit()
        return jsonify(product.to_dict())
    except Exception as e:
        session.rollback()
        logger.error("Failed to update product %s: %s", product_id, e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/products/<int:product_id>', methods=['DELETE'])
def delete_product(product_id):
    session = get_session()
    try:
        product = session.get(Product, product_id)
        if product is None:
            return jsonify({'error': 'Product not found'}), 404
        references = _references(session, product_id)
        if references:
            return jsonify({'error': 'Product is still in use', 'references': references}), 409
        session.delete(product)
        session.commit()
        return jsonify({'ok': True})
    finally:
        session.close()
