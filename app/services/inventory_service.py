"""库存服务 - 库存项、批次与物料目录查询"""
from datetime import datetime, timedelta
from flask import current_app
from app.extensions import db
from app.exceptions import NotFound, ValidationError
from app.models.catalog import Item
from app.models.stock import StockItem, StockBatch
from app.services.batch_allocator import BatchAllocator
from app.utils.unit_of_work import atomic
from app.utils.validators import validate_item_code, validate_optional_string, validate_thresholds


class InventoryService:
    """库存项服务"""

    UPDATABLE_FIELDS = ('min_quantity', 'max_quantity', 'location', 'is_active')

    # ============== 库存项 ==============

    @staticmethod
    def get_stock_item(stock_item_id):
        stock_item = db.session.get(StockItem, stock_item_id)
        if not stock_item:
            raise NotFound(f'库存项 {stock_item_id} 不存在', payload={'stock_item_id': stock_item_id})
        return stock_item

    @staticmethod
    def get_stock_item_by_item_code(item_code):
        """按目录编码查找库存项，未建档返回 None"""
        return StockItem.query.join(Item).filter(Item.code == item_code).first()

    @staticmethod
    def create_stock_item(item_code, min_quantity=None, max_quantity=None, location=None):
        """
        为目录物料建立库存档案

        Args:
            item_code: 目录物料编码
            min_quantity / max_quantity: 库存阈值 (可选)
            location: 存放位置
        """
        validate_item_code(item_code)
        min_q, max_q = validate_thresholds(min_quantity, max_quantity)
        location = validate_optional_string(location, 'location', 64)

        item = Item.query.filter_by(code=item_code).first()
        if not item:
            raise NotFound(f'物料 {item_code} 不存在', payload={'item_code': item_code})
        if item.stock_item is not None:
            raise ValidationError(f'物料 {item_code} 已建立库存档案', payload={'item_code': item_code})

        with atomic():
            stock_item = StockItem(
                item=item,
                min_quantity=min_q,
                max_quantity=max_q,
                location=location,
            )
            db.session.add(stock_item)
            db.session.flush()

        current_app.logger.info(f'库存项已创建: {item_code} (#{stock_item.id})')
        return stock_item

    @staticmethod
    def get_or_create_stock_item(item_code):
        """收货时隐式建档"""
        existing = InventoryService.get_stock_item_by_item_code(item_code)
        if existing:
            return existing
        return InventoryService.create_stock_item(item_code)

    @staticmethod
    def update_stock_item(stock_item_id, data):
        """
        更新库存项设置，只处理 data 中出现的字段
        is_active=False 即软删除，库存项不会被物理删除
        """
        unknown = set(data) - set(InventoryService.UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f'不支持修改字段: {", ".join(sorted(unknown))}')

        stock_item = InventoryService.get_stock_item(stock_item_id)

        min_q = data.get('min_quantity', stock_item.min_quantity)
        max_q = data.get('max_quantity', stock_item.max_quantity)
        min_q, max_q = validate_thresholds(min_q, max_q)
        location = validate_optional_string(data.get('location'), 'location', 64)

        if 'is_active' in data and not isinstance(data['is_active'], bool):
            raise ValidationError('is_active 必须是布尔值', payload={'field': 'is_active'})

        with atomic():
            if 'min_quantity' in data:
                stock_item.min_quantity = min_q
            if 'max_quantity' in data:
                stock_item.max_quantity = max_q
            if 'location' in data:
                stock_item.location = location
            if 'is_active' in data:
                stock_item.is_active = data['is_active']

        return stock_item

    @staticmethod
    def list_stock_items(category=None, item_type=None, search=None, low_stock_only=False, is_active=True):
        """
        库存项列表，按物料名称排序

        Args:
            is_active: 默认只看启用中的，传 None 查看全部
        """
        query = StockItem.query.join(Item)

        if is_active is not None:
            query = query.filter(StockItem.is_active == is_active)
        if category:
            query = query.filter(Item.category == category)
        if item_type:
            query = query.filter(Item.type == item_type)
        if search:
            keyword = f"%{search}%"
            query = query.filter(Item.name.ilike(keyword) | Item.code.ilike(keyword))
        if low_stock_only:
            query = query.filter(
                StockItem.min_quantity.isnot(None),
                StockItem.current_quantity <= StockItem.min_quantity
            )

        return query.order_by(Item.name.asc()).all()

    @staticmethod
    def list_low_stock_items():
        return InventoryService.list_stock_items(low_stock_only=True)

    # ============== 批次 ==============

    @staticmethod
    def get_item_batches(stock_item_id):
        """库存项的可用批次 (FEFO 顺序)"""
        InventoryService.get_stock_item(stock_item_id)
        return BatchAllocator.available_batches(stock_item_id)

    @staticmethod
    def get_expiring_batches(days_ahead=None, today=None):
        """
        临期批次：有余量且到期日在 today + days_ahead 之内 (含已过期)
        """
        if days_ahead is None:
            days_ahead = current_app.config['INVENTORY_EXPIRY_WINDOW_DAYS']
        if days_ahead < 0:
            raise ValidationError('days_ahead 不能为负', payload={'field': 'days_ahead'})

        today = today or datetime.utcnow().date()
        cutoff = today + timedelta(days=days_ahead)

        return StockBatch.query.filter(
            StockBatch.current_quantity > 0,
            StockBatch.expiry_date.isnot(None),
            StockBatch.expiry_date <= cutoff
        ).order_by(StockBatch.expiry_date.asc(), StockBatch.id.asc()).all()

    # ============== 物料目录 ==============

    @staticmethod
    def list_catalog_items():
        """全部目录物料及其库存数量 (未建档的为 None)"""
        items = Item.query.order_by(Item.name.asc()).all()
        return [{
            'id': item.id,
            'code': item.code,
            'name': item.name,
            'unit': item.unit,
            'type': item.type,
            'category': item.category,
            'supplier1': item.supplier1,
            'supplier2': item.supplier2,
            'stock_item': {
                'id': item.stock_item.id,
                'current_quantity': float(item.stock_item.current_quantity),
            } if item.stock_item else None,
        } for item in items]
