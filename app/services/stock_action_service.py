"""库存业务操作 - 收货、领用、调整、审批，并记录操作日志"""
from app.exceptions import ValidationError
from app.models.stock import StockTransaction
from app.models.sys import ActivityLog
from app.services.inventory_service import InventoryService
from app.services.transaction_service import StockTransactionService
from app.utils.audit import log_activity
from app.utils.unit_of_work import atomic
from app.utils.validators import validate_item_code, validate_user

TARGET_TYPE = 'StockTransaction'


class StockActionService:
    """页面/接口层调用的库存操作，每个操作与其操作日志在同一事务内提交"""

    @staticmethod
    def receive_items(items, requested_by, description=None, reference=None, **extra):
        """
        收货入库 (自动审批)
        :param items: [{'item_code': 'ITEM-001', 'quantity': 100, 'unit_cost': 50,
                        'batch_number': 'LOT-001', 'expiry_date': '2026-01-31',
                        'manufacture_date': '2025-12-01'}, ...]
        """
        if not items or not isinstance(items, (list, tuple)):
            raise ValidationError('没有收货明细')
        if not all(isinstance(item, dict) for item in items):
            raise ValidationError('收货明细格式错误')

        with atomic():
            lines = []
            for item in items:
                stock_item = InventoryService.get_or_create_stock_item(validate_item_code(item.get('item_code')))
                lines.append({
                    'stock_item_id': stock_item.id,
                    'quantity': item.get('quantity'),
                    'unit_cost': item.get('unit_cost'),
                    'batch_number': item.get('batch_number'),
                    'expiry_date': item.get('expiry_date'),
                    'manufacture_date': item.get('manufacture_date'),
                })

            transaction = StockTransactionService.create_transaction(
                StockTransaction.TYPE_RECEIVE, lines, requested_by,
                description=description, reference=reference, **extra
            )
            log_activity(
                ActivityLog.STOCK_RECEIVE,
                user_id=requested_by,
                target_id=transaction.id,
                target_type=TARGET_TYPE,
                description=f'收货入库 {len(items)} 项',
                details={
                    'transaction_number': transaction.transaction_number,
                    'item_count': len(items),
                    'reference': reference,
                }
            )
        return transaction

    @staticmethod
    def withdraw_items(items, requested_by, description=None, reference=None, **extra):
        """
        领用出库 (需审批)
        :param items: [{'stock_item_id': 1, 'quantity': 20, 'purpose': '午市备料'}, ...]
        """
        with atomic():
            transaction = StockTransactionService.create_transaction(
                StockTransaction.TYPE_WITHDRAW, items, requested_by,
                description=description, reference=reference, **extra
            )
            log_activity(
                ActivityLog.STOCK_WITHDRAW,
                user_id=requested_by,
                target_id=transaction.id,
                target_type=TARGET_TYPE,
                description=f'领用出库 {len(items)} 项',
                details={
                    'transaction_number': transaction.transaction_number,
                    'item_count': len(items),
                    'reference': reference,
                }
            )
        return transaction

    @staticmethod
    def adjust_stock(stock_item_id, quantity, is_increase, reason, requested_by):
        """库存调整 (盘盈 ADJUST_IN / 盘亏 ADJUST_OUT，均需审批)"""
        if not isinstance(is_increase, bool):
            raise ValidationError('is_increase 必须是布尔值', payload={'field': 'is_increase'})
        if not reason:
            raise ValidationError('请填写调整原因', payload={'field': 'reason'})

        tx_type = StockTransaction.TYPE_ADJUST_IN if is_increase else StockTransaction.TYPE_ADJUST_OUT
        with atomic():
            transaction = StockTransactionService.create_transaction(
                tx_type,
                [{'stock_item_id': stock_item_id, 'quantity': quantity}],
                requested_by,
                description=reason,
            )
            log_activity(
                ActivityLog.STOCK_ADJUST,
                user_id=requested_by,
                target_id=transaction.id,
                target_type=TARGET_TYPE,
                description=f'库存调整 {"增加" if is_increase else "减少"} {quantity}',
                details={
                    'transaction_number': transaction.transaction_number,
                    'stock_item_id': stock_item_id,
                    'quantity': str(quantity),
                    'is_increase': is_increase,
                    'reason': reason,
                }
            )
        return transaction

    @staticmethod
    def approve(transaction_id, approved_by):
        with atomic():
            transaction = StockTransactionService.approve_transaction(transaction_id, approved_by)
            log_activity(
                ActivityLog.STOCK_APPROVED,
                user_id=approved_by,
                target_id=transaction.id,
                target_type=TARGET_TYPE,
                description=f'审批库存单据 {transaction.transaction_number}',
                details={'transaction_number': transaction.transaction_number, 'type': transaction.type}
            )
        return transaction

    @staticmethod
    def reject(transaction_id, rejected_by, reason=None):
        rejected_by = validate_user(rejected_by, 'rejected_by')
        with atomic():
            transaction = StockTransactionService.reject_transaction(transaction_id, reason)
            log_activity(
                ActivityLog.STOCK_REJECTED,
                user_id=rejected_by,
                target_id=transaction.id,
                target_type=TARGET_TYPE,
                description=f'驳回库存单据 {transaction.transaction_number}',
                details={
                    'transaction_number': transaction.transaction_number,
                    'type': transaction.type,
                    'reason': reason,
                }
            )
        return transaction
