"""Tests for crm_atlas.routes.products — product CRUD."""
from datetime import date

from crm_atlas.models.kpi_target import KpiTarget
from crm_atlas.models.product import Product
from crm_atlas.models.workflow_product_map import WorkflowProductMap


def _create(client, name='Atlas App', **extra):
    return client.post('/api/products', json={'name': name, **extra})


class TestListProducts:

    def test_empty(self, client):
        assert client.get('/api/products').get_json() == []

    def test_sorted_with_flow_counts(self, client, make_flow):
        beta = _create(client, 'Beta').get_json()
        _create(client, 'Alpha')
        make_flow(product_id=beta['id'])
        make_flow(name='Winback', product_id=beta['id'])

        data = client.get('/api/products').get_json()
        assert [p['name'] for p in data] == ['Alpha', 'Beta']
        assert [p['flow_count'] for p in data] == [0, 2]


class TestCreateProduct:

    def test_created(self, client, db_session):
        resp = _create(client, '  Atlas App ', description='Main app')
        assert resp.status_code == 201
        data = resp.get_json()
        assert data['name'] == 'Atlas App'
        assert data['description'] == 'Main app'
        assert db_session.query(Product).count() == 1

    def test_name_required(self, client):
        assert client.post('/api/products', json={}).status_code == 400
        assert _create(client, '   ').status_code == 400
        assert _create(client, 42).status_code == 400

    def test_duplicate_name(self, client):
        _create(client)
        resp = _create(client)
        assert resp.status_code == 409
        assert 'already exists' in resp.get_json()['error']


class TestGetProduct:

    def test_includes_flows(self, client, make_flow):
        product = _create(client).get_json()
        make_flow(product_id=product['id'])
        data = client.get(f"/api/products/{product['id']}").get_json()
        assert data['name'] == 'Atlas App'
        assert [f['name'] for f in data['flows']] == ['Welcome Series']

    def test_not_found(self, client):
        assert client.get('/api/products/999').status_code == 404


class TestUpdateProduct:

    def test_rename(self, client):
        product = _create(client).get_json()
        resp = client.put(f"/api/products/{product['id']}", json={'name': 'Atlas Pro'})
        assert resp.status_code == 200
        assert resp.get_json()['name'] == 'Atlas Pro'

    def test_keep_own_name(self, client):
        product = _create(client).get_json()
        resp = client.put(f"/api/products/{product['id']}",
                          json={'name': 'Atlas App', 'description': 'Same name'})
        assert resp.status_code == 200
        assert resp.get_json()['description'] == 'Same name'

    def test_rename_to_taken_name(self, client):
        _create(client, 'Alpha')
        beta = _create(client, 'Beta').get_json()
        assert client.put(f"/api/products/{beta['id']}", json={'name': 'Alpha'}).status_code == 409

    def test_not_found(self, client):
        assert client.put('/api/products/999', json={'name': 'X'}).status_code == 404


class TestDeleteProduct:

    def test_deletes(self, client, db_session):
        product = _create(client).get_json()
        assert client.delete(f"/api/products/{product['id']}").get_json() == {'ok': True}
        assert db_session.query(Product).count() == 0

    def test_in_use_rejected(self, client, db_session, make_flow):
        product = _create(client).get_json()
        make_flow(product_id=product['id'])
        db_session.add(WorkflowProductMap(workflow_id='wf-100', product_id=product['id']))
        db_session.add(KpiTarget(metric_name='open_rate', product_id=product['id'],
                                 effective_from=date(2026, 1, 1), target_value=20.0))
        db_session.commit()

        resp = client.delete(f"/api/products/{product['id']}")
        assert resp.status_code == 409
        assert resp.get_json()['references'] == {'flows': 1, 'workflow_mappings': 1, 'targets': 1}
        assert db_session.query(Product).count() == 1

    def test_not_found(self, client):
        assert client.delete('/api/products/999').status_code == 404
