"""
测试配置与公共 fixture
每个测试使用独立的内存 SQLite 数据库
"""
from datetime import datetime

import pytest

from app import create_app
from app.extensions import db
from app.models.catalog import Item
from app.models.stock import StockTransaction
from app.services.inventory_service import InventoryService
from app.services.transaction_service import StockTransactionService

NOW = datetime(2026, 3, 1, 9, 30)


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def catalog(app):
    """三个目录物料，尚未建立库存档案"""
    items = [
        Item(code='ITEM-001', name='香茅', unit='kg', type='原料', category='蔬菜', supplier1='曼谷农场'),
        Item(code='ITEM-002', name='鱼露', unit='瓶', type='原料', category='干货调料', supplier1='湄南食品'),
        Item(code='ITEM-003', name='外卖餐盒', unit='包', type='包材', category='包材'),
    ]
    db.session.add_all(items)
    db.session.commit()
    return items


@pytest.fixture
def stock_item(catalog):
    return InventoryService.create_stock_item('ITEM-001', min_quantity=10, max_quantity=200, location='冷库-A1')


@pytest.fixture
def receive():
    """收货辅助函数：receive(stock_item, qty, unit_cost=..., expiry_date=...)"""
    def _receive(stock_item, quantity, unit_cost=None, expiry_date=None, batch_number=None, now=NOW):
        return StockTransactionService.create_transaction(
            StockTransaction.TYPE_RECEIVE,
            [{
                'stock_item_id': stock_item.id,
                'quantity': quantity,
                'unit_cost': unit_cost,
                'expiry_date': expiry_date,
                'batch_number': batch_number,
            }],
            'chef',
            now=now,
        )
    return _receive


@pytest.fixture
def withdraw():
    """领用辅助函数 (创建待审批单据)"""
    def _withdraw(stock_item, quantity, unit_cost=None, now=NOW):
        return StockTransactionService.create_transaction(
            StockTransaction.TYPE_WITHDRAW,
            [{'stock_item_id': stock_item.id, 'quantity': quantity, 'unit_cost': unit_cost}],
            'cook',
            now=now,
        )
    return _withdraw
