"""Tests for crm_atlas.routes.flows — flow CRUD and the conflict report."""
from crm_atlas.models.flow import Flow
from crm_atlas.models.product import Product


def _payload(**overrides):
    payload = {
        'name': 'Cart Reminder',
        'trigger_type': 'event_based',
        'channels': ['email'],
        'frequency': 'Daily',
        'live': True,
    }
    payload.update(overrides)
    return payload


class TestFlowsCrud:

    def test_create_and_get(self, client):
        resp = client.post('/api/flows', json=_payload(priority=10))
        assert resp.status_code == 201
        flow_id = resp.get_json()['id']

        data = client.get(f'/api/flows/{flow_id}').get_json()
        assert data['name'] == 'Cart Reminder'
        assert data['purpose'] == 'retention'
        assert data['priority'] == 10

    def test_create_validation(self, client):
        assert client.post('/api/flows', json=_payload(name='')).status_code == 400
        assert client.post('/api/flows', json=_payload(trigger_type='webhook')).status_code == 400
        assert client.post('/api/flows', json=_payload(channels=['sms'])).status_code == 400
        assert client.post('/api/flows', json=_payload(channels='email')).status_code == 400
        assert client.post('/api/flows', json=_payload(purpose='promo')).status_code == 400
        assert client.post('/api/flows', json=_payload(priority=0)).status_code == 400
        assert client.post('/api/flows', json=_payload(priority=101)).status_code == 400

    def test_create_unknown_product(self, client):
        assert client.post('/api/flows', json=_payload(product_id=42)).status_code == 400

    def test_list_live_only(self, client, make_flow):
        make_flow(name='On', live=True)
        make_flow(name='Off', live=False)
        names = [f['name'] for f in client.get('/api/flows?live=true').get_json()]
        assert names == ['On']

    def test_list_by_product(self, client, make_flow, db_session):
        product = Product(name='Atlas App')
        db_session.add(product)
        db_session.commit()
        make_flow(name='Mine', product_id=product.id)
        make_flow(name='Other')
        data = client.get(f'/api/flows?product_id={product.id}').get_json()
        assert [f['name'] for f in data] == ['Mine']
        assert data[0]['product_name'] == 'Atlas App'

    def test_update(self, client, make_flow):
        flow = make_flow()
        resp = client.put(f'/api/flows/{flow.id}', json={'priority': 5, 'suppression_rules': 'Skip buyers'})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['priority'] == 5
        assert data['suppression_rules'] == 'Skip buyers'

    def test_update_validation(self, client, make_flow):
        flow = make_flow()
        assert client.put(f'/api/flows/{flow.id}', json={'channels': ['fax']}).status_code == 400

    def test_delete(self, client, make_flow, db_session):
        flow = make_flow()
        assert client.delete(f'/api/flows/{flow.id}').get_json() == {'ok': True}
        assert db_session.query(Flow).count() == 0

    def test_missing(self, client):
        assert client.get('/api/flows/999').status_code == 404
        assert client.put('/api/flows/999', json={}).status_code == 404
        assert client.delete('/api/flows/999').status_code == 404


class TestConflicts:

    def test_high_risk_pair(self, client, make_flow, db_session):
        product = Product(name='Atlas App')
        db_session.add(product)
        db_session.commit()
        make_flow(name='Cart Reminder', product_id=product.id, frequency='Daily', channels=['email'])
        make_flow(name='Price Drop', product_id=product.id, frequency='daily', channels=['email', 'push'],
                  priority=20)

        data = client.get('/api/conflicts').get_json()
        assert len(data) == 1
        conflict = data[0]
        assert conflict['risk_score'] == 8
        assert conflict['risk_band'] == 'High Risk'
        assert conflict['shared_channels'] == ['email']
        assert conflict['flow_a']['name'] == 'Cart Reminder'
        assert conflict['flow_a']['product_name'] == 'Atlas App'

    def test_non_live_excluded(self, client, make_flow):
        make_flow(name='A')
        make_flow(name='B', live=False)
        assert client.get('/api/conflicts').get_json() == []

    def test_summary(self, client, make_flow):
        make_flow(name='A', priority=1, suppression_rules='x', trigger_type='scheduled')
        make_flow(name='B', priority=2, suppression_rules='y', trigger_type='scheduled')
        data = client.get('/api/conflicts/summary').get_json()
        assert data['total_conflicts'] == 1
        assert data['low_risk_count'] == 1
        assert data['top_conflicts'][0]['risk_score'] == 1
