"""批次分配 - 先到期先出 (FEFO)，到期日相同或无到期日时先进先出 (FIFO)"""
from decimal import Decimal
from flask import current_app
from app.extensions import db
from app.exceptions import InsufficientStock
from app.models.stock import StockBatch


class BatchAllocator:
    """出库批次分配"""

    @staticmethod
    def fefo_order():
        """排序：到期日升序 (无到期日排最后)，再按入库时间升序"""
        return (
            StockBatch.expiry_date.is_(None),
            StockBatch.expiry_date.asc(),
            StockBatch.created_at.asc(),
            StockBatch.id.asc(),
        )

    @staticmethod
    def available_batches(stock_item_id, lock=False):
        """有余量的批次，按 FEFO 排序"""
        query = StockBatch.query.filter(
            StockBatch.stock_item_id == stock_item_id,
            StockBatch.current_quantity > 0
        ).order_by(*BatchAllocator.fefo_order())
        if lock:
            query = query.with_for_update()
        return query.all()

    @staticmethod
    def plan(batches, requested_qty):
        """
        计算每个批次的扣减量 (不写库)

        Args:
            batches: 已按 FEFO 排好序的批次
            requested_qty: 需要扣减的总量

        Returns:
            (allocations, remaining): allocations 为 [(batch, qty), ...]，
            remaining 为批次不足时未能分配的数量
        """
        remaining = Decimal(requested_qty)
        allocations = []
        for batch in batches:
            if remaining <= 0:
                break
            deduct = min(remaining, batch.current_quantity)
            if deduct <= 0:
                continue
            allocations.append((batch, deduct))
            remaining -= deduct
        return allocations, max(remaining, Decimal('0'))

    @staticmethod
    def allocate(stock_item_id, requested_qty, strict=None):
        """
        从库存项的批次中扣减 requested_qty

        每个批次单独做原子递减。批次合计不足时：
        严格模式抛出 InsufficientStock (由外层工作单元整体回滚)；
        默认模式扣完现有批次，剩余部分记录告警后忽略。

        Returns:
            dict: {'allocations': [{'batch_id', 'quantity'}], 'shortfall': Decimal}
        """
        if strict is None:
            strict = current_app.config['INVENTORY_STRICT_ALLOCATION']

        batches = BatchAllocator.available_batches(stock_item_id, lock=True)
        allocations, shortfall = BatchAllocator.plan(batches, requested_qty)

        if shortfall > 0:
            available = sum((b.current_quantity for b in batches), Decimal('0'))
            if strict:
                raise InsufficientStock(
                    f'批次库存不足！可用: {available}, 申请: {requested_qty}',
                    payload={'stock_item_id': stock_item_id,
                             'available': float(available),
                             'requested': float(requested_qty)}
                )
            current_app.logger.warning(
                f'库存项 {stock_item_id} 批次不足，申请 {requested_qty}，'
                f'仅扣减 {available}，差额 {shortfall} 未分配'
            )

        for batch, qty in allocations:
            batch.current_quantity = StockBatch.current_quantity - qty
        db.session.flush()

        return {
            'allocations': [{'batch_id': batch.id, 'quantity': qty} for batch, qty in allocations],
            'shortfall': shortfall,
        }
