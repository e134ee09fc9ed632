"""库存看板指标 - 每次调用都基于当前数据实时计算"""
from datetime import datetime, timedelta
from decimal import Decimal
from flask import current_app
from sqlalchemy import func
from app.extensions import db
from app.models.stock import StockItem, StockBatch, StockTransaction, StockTransactionItem


class InventoryKPIService:
    """库存 KPI 统计"""

    @staticmethod
    def get_inventory_kpis(today=None):
        """
        获取看板指标

        Args:
            today: 统计日期，默认当前 UTC 日期

        Returns:
            dict: total_items, total_value, low_stock_count, expiring_soon_count,
                  pending_transaction_count, today_received, today_withdrawn
        """
        today = today or datetime.utcnow().date()
        day_start = datetime.combine(today, datetime.min.time())
        day_end = day_start + timedelta(days=1)
        expiry_cutoff = today + timedelta(days=current_app.config['INVENTORY_EXPIRY_WINDOW_DAYS'])

        active_items = StockItem.query.filter(StockItem.is_active == True).all()  # noqa: E712

        total_value = sum(
            (item.current_quantity * (item.average_cost or 0) for item in active_items),
            Decimal('0')
        )

        low_stock_count = StockItem.query.filter(
            StockItem.is_active == True,  # noqa: E712
            StockItem.min_quantity.isnot(None),
            StockItem.current_quantity <= StockItem.min_quantity
        ).count()

        expiring_soon_count = StockBatch.query.filter(
            StockBatch.current_quantity > 0,
            StockBatch.expiry_date.isnot(None),
            StockBatch.expiry_date <= expiry_cutoff
        ).count()

        pending_count = StockTransaction.query.filter_by(
            status=StockTransaction.STATUS_PENDING
        ).count()

        # 当日已审批单据按类型汇总明细数量
        rows = db.session.query(
            StockTransaction.type,
            func.sum(StockTransactionItem.quantity)
        ).join(StockTransactionItem).filter(
            StockTransaction.status == StockTransaction.STATUS_APPROVED,
            StockTransaction.approved_at >= day_start,
            StockTransaction.approved_at < day_end,
            StockTransaction.type.in_([StockTransaction.TYPE_RECEIVE, StockTransaction.TYPE_WITHDRAW])
        ).group_by(StockTransaction.type).all()
        today_totals = {tx_type: Decimal(str(qty or 0)) for tx_type, qty in rows}

        return {
            'total_items': len(active_items),
            'total_value': total_value,
            'low_stock_count': low_stock_count,
            'expiring_soon_count': expiring_soon_count,
            'pending_transaction_count': pending_count,
            'today_received': today_totals.get(StockTransaction.TYPE_RECEIVE, Decimal('0')),
            'today_withdrawn': today_totals.get(StockTransaction.TYPE_WITHDRAW, Decimal('0')),
        }
