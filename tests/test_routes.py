from io import BytesIO

import openpyxl
import pytest

from app.models.sys import ActivityLog


@pytest.fixture
def received(client, catalog):
    """通过接口收货：ITEM-001 入库 100"""
    response = client.post('/inventory/receive', json={
        'requested_by': 'chef',
        'reference': 'INV-8812',
        'items': [{
            'item_code': 'ITEM-001', 'quantity': 100, 'unit_cost': 3.5,
            'batch_number': 'LOT-1', 'expiry_date': '2026-05-01',
        }],
    }, headers={'User-Agent': 'pytest-client'})
    assert response.status_code == 201
    return response.get_json()['data']


class TestReceiveAndWithdraw:

    def test_receive(self, received):
        assert received['status'] == 'APPROVED'
        assert received['type'] == 'RECEIVE'
        assert received['total_value'] == 350.0
        assert received['items'][0]['item_code'] == 'ITEM-001'

    def test_receive_writes_activity_log(self, received):
        log = ActivityLog.query.one()

        assert log.action == ActivityLog.STOCK_RECEIVE
        assert log.user_id == 'chef'
        assert log.target_id == str(received['id'])
        assert log.user_agent == 'pytest-client'
        assert log.details['reference'] == 'INV-8812'

    def test_receive_unknown_item_code(self, client, catalog):
        response = client.post('/inventory/receive', json={
            'requested_by': 'chef', 'items': [{'item_code': 'NOPE', 'quantity': 1}],
        })

        assert response.status_code == 404
        assert response.get_json()['success'] is False
        assert ActivityLog.query.count() == 0

    def test_withdraw_approve_flow(self, client, received):
        stock_item_id = received['items'][0]['stock_item_id']
        response = client.post('/inventory/withdraw', json={
            'requested_by': 'cook',
            'items': [{'stock_item_id': stock_item_id, 'quantity': 20, 'purpose': '午市备料'}],
        })
        assert response.status_code == 201
        tx = response.get_json()['data']
        assert tx['status'] == 'PENDING'

        pending = client.get('/inventory/transactions/pending').get_json()['data']
        assert [t['id'] for t in pending] == [tx['id']]

        response = client.post(f"/inventory/transactions/{tx['id']}/approve", json={'approved_by': 'manager'})
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'APPROVED'

        item = client.get(f'/inventory/items/{stock_item_id}').get_json()['data']
        assert item['current_quantity'] == 80.0

        again = client.post(f"/inventory/transactions/{tx['id']}/approve", json={'approved_by': 'manager'})
        assert again.status_code == 409
        assert again.get_json()['status'] == 'APPROVED'

    def test_reject(self, client, received):
        stock_item_id = received['items'][0]['stock_item_id']
        tx = client.post('/inventory/withdraw', json={
            'requested_by': 'cook', 'items': [{'stock_item_id': stock_item_id, 'quantity': 5}],
        }).get_json()['data']

        response = client.post(f"/inventory/transactions/{tx['id']}/reject",
                               json={'rejected_by': 'manager', 'reason': '重复申请'})

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'REJECTED'
        assert data['reject_reason'] == '重复申请'
        assert ActivityLog.query.filter_by(action=ActivityLog.STOCK_REJECTED).count() == 1

    def test_reject_requires_actor(self, client, received):
        stock_item_id = received['items'][0]['stock_item_id']
        tx = client.post('/inventory/withdraw', json={
            'requested_by': 'cook', 'items': [{'stock_item_id': stock_item_id, 'quantity': 5}],
        }).get_json()['data']

        response = client.post(f"/inventory/transactions/{tx['id']}/reject", json={'reason': '重复申请'})

        assert response.status_code == 400
        assert response.get_json()['field'] == 'rejected_by'
        assert ActivityLog.query.filter_by(action=ActivityLog.STOCK_REJECTED).count() == 0
        detail = client.get(f"/inventory/transactions/{tx['id']}").get_json()['data']
        assert detail['status'] == 'PENDING'

    def test_receive_with_manufacture_date(self, client, catalog):
        response = client.post('/inventory/receive', json={
            'requested_by': 'chef',
            'items': [{'item_code': 'ITEM-002', 'quantity': 6, 'manufacture_date': '2026-01-20'}],
        })
        assert response.status_code == 201

        stock_item_id = response.get_json()['data']['items'][0]['stock_item_id']
        batches = client.get(f'/inventory/items/{stock_item_id}/batches').get_json()['data']
        assert batches[0]['manufacture_date'] == '2026-01-20'

    def test_adjust(self, client, received):
        stock_item_id = received['items'][0]['stock_item_id']
        response = client.post('/inventory/adjust', json={
            'stock_item_id': stock_item_id, 'quantity': 2, 'is_increase': False,
            'reason': '盘点短少', 'requested_by': 'chef',
        })

        assert response.status_code == 201
        assert response.get_json()['data']['type'] == 'ADJUST_OUT'

    def test_adjust_requires_reason(self, client, received):
        response = client.post('/inventory/adjust', json={
            'stock_item_id': received['items'][0]['stock_item_id'], 'quantity': 2,
            'is_increase': True, 'requested_by': 'chef',
        })

        assert response.status_code == 400
        assert response.get_json()['field'] == 'reason'

    def test_generic_transaction(self, client, received):
        response = client.post('/inventory/transactions', json={
            'type': 'TRANSFER_OUT', 'requested_by': 'chef',
            'items': [{'stock_item_id': received['items'][0]['stock_item_id'], 'quantity': 1}],
        })

        assert response.status_code == 201
        assert response.get_json()['data']['status'] == 'PENDING'


class TestErrors:

    def test_missing_transaction(self, client):
        response = client.get('/inventory/transactions/999')

        assert response.status_code == 404
        assert response.get_json()['code'] == 404

    def test_body_must_be_object(self, client):
        response = client.post('/inventory/receive', json=[1, 2, 3])

        assert response.status_code == 400

    def test_invalid_quantity(self, client, received):
        response = client.post('/inventory/withdraw', json={
            'requested_by': 'cook',
            'items': [{'stock_item_id': received['items'][0]['stock_item_id'], 'quantity': -3}],
        })

        assert response.status_code == 400
        assert response.get_json()['field'] == 'quantity'

    @pytest.mark.parametrize('line, field', [
        ({'quantity': '1e400'}, 'quantity'),
        ({'quantity': '0.0004'}, 'quantity'),
        ({'quantity': 1, 'batch_number': {'a': 1}}, 'batch_number'),
    ])
    def test_unstorable_lines_rejected_up_front(self, client, received, line, field):
        stock_item_id = received['items'][0]['stock_item_id']
        response = client.post('/inventory/transactions', json={
            'type': 'RETURN', 'requested_by': 'chef',
            'items': [dict(line, stock_item_id=stock_item_id)],
        })

        assert response.status_code == 400
        assert response.get_json()['field'] == field
        item = client.get(f'/inventory/items/{stock_item_id}').get_json()['data']
        assert item['current_quantity'] == 100.0

    def test_unknown_route(self, client):
        response = client.get('/inventory/nowhere')

        assert response.status_code == 404
        assert response.get_json()['success'] is False


class TestQueries:

    def test_kpis(self, client, received):
        data = client.get('/inventory/kpis').get_json()['data']

        assert data['total_items'] == 1
        assert data['total_value'] == 350.0

    def test_items_listing_and_update(self, client, received):
        stock_item_id = received['items'][0]['stock_item_id']
        response = client.patch(f'/inventory/items/{stock_item_id}', json={'min_quantity': 150})
        assert response.status_code == 200

        low = client.get('/inventory/items?low_stock=1').get_json()['data']
        assert [s['id'] for s in low] == [stock_item_id]
        assert low[0]['is_low_stock'] is True

    def test_create_item(self, client, catalog):
        response = client.post('/inventory/items', json={'item_code': 'ITEM-003', 'location': '干货仓'})

        assert response.status_code == 201
        assert response.get_json()['data']['item']['name'] == '外卖餐盒'

    def test_batches(self, client, received):
        stock_item_id = received['items'][0]['stock_item_id']
        batches = client.get(f'/inventory/items/{stock_item_id}/batches').get_json()['data']

        assert batches[0]['batch_number'] == 'LOT-1'
        assert batches[0]['current_quantity'] == 100.0

    def test_transactions_filter(self, client, received):
        data = client.get('/inventory/transactions?type=RECEIVE').get_json()['data']
        assert len(data) == 1

        data = client.get('/inventory/transactions?type=WITHDRAW').get_json()['data']
        assert data == []

    def test_bad_date_filter(self, client):
        response = client.get('/inventory/transactions?start_date=yesterday')

        assert response.status_code == 400


class TestExport:

    def test_export_items_xlsx(self, client, received):
        response = client.get('/inventory/export/items?format=xlsx')

        assert response.status_code == 200
        wb = openpyxl.load_workbook(BytesIO(response.data))
        ws = wb.active
        assert ws.cell(row=3, column=1).value == '物料编码'
        assert ws.cell(row=4, column=1).value == 'ITEM-001'

    def test_export_transactions_csv(self, client, received):
        response = client.get('/inventory/export/transactions?format=csv')

        assert response.status_code == 200
        assert response.data.startswith(b'\xef\xbb\xbf')
        text = response.data.decode('utf-8-sig')
        assert received['transaction_number'] in text

    def test_export_unknown_kind(self, client):
        assert client.get('/inventory/export/users').status_code == 400
