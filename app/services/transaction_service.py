"""库存单据服务 - 创建、审批、驳回以及入账"""
from datetime import datetime
from flask import current_app
from app.extensions import db
from app.exceptions import InvalidState, NotFound, ValidationError
from app.models.stock import StockItem, StockBatch, StockTransaction, StockTransactionItem
from app.services.batch_allocator import BatchAllocator
from app.services.numbering_service import TransactionNumberService
from app.utils.unit_of_work import atomic
from app.utils.validators import (
    AMOUNT_DIGITS, MONEY_DIGITS, fit_column, validate_non_negative, validate_optional_date,
    validate_optional_string, validate_positive_number, validate_user
)


class StockTransactionService:
    """
    库存单据生命周期

    RECEIVE / TRANSFER_IN / RETURN 创建即审批并立即入账；
    其余类型进入待审批，审批通过时才入账，驳回不影响库存。
    """

    # ============== 入参校验 ==============

    @staticmethod
    def normalize_items(items):
        """
        校验明细并转换为内部格式
        :param items: [{'stock_item_id': 1, 'quantity': 10, 'unit_cost': 50, ...}, ...]
        """
        if not items or not isinstance(items, (list, tuple)):
            raise ValidationError('单据至少需要一条明细')

        lines = []
        for index, raw in enumerate(items):
            if not isinstance(raw, dict):
                raise ValidationError(f'第 {index + 1} 条明细格式错误')
            stock_item_id = raw.get('stock_item_id')
            if isinstance(stock_item_id, bool) or not isinstance(stock_item_id, int):
                raise ValidationError(f'第 {index + 1} 条明细缺少库存项', payload={'field': 'stock_item_id'})

            quantity = validate_positive_number(raw.get('quantity'), 'quantity')
            unit_cost = validate_non_negative(raw.get('unit_cost'), 'unit_cost', MONEY_DIGITS)
            lines.append({
                'stock_item_id': stock_item_id,
                'quantity': quantity,
                'unit_cost': unit_cost,
                'total_cost': fit_column(quantity * unit_cost, 'total_cost', AMOUNT_DIGITS)
                if unit_cost is not None else None,
                'batch_number': validate_optional_string(raw.get('batch_number'), 'batch_number', 64),
                'expiry_date': validate_optional_date(raw.get('expiry_date'), 'expiry_date'),
                'manufacture_date': validate_optional_date(raw.get('manufacture_date'), 'manufacture_date'),
                'purpose': validate_optional_string(raw.get('purpose'), 'purpose', 255),
            })
        return lines

    @staticmethod
    def _check_stock_items_exist(lines):
        ids = {line['stock_item_id'] for line in lines}
        found = {row.id for row in StockItem.query.filter(StockItem.id.in_(ids)).all()}
        missing = sorted(ids - found)
        if missing:
            raise NotFound(f'库存项不存在: {missing}', payload={'stock_item_ids': missing})

    # ============== 生命周期 ==============

    @staticmethod
    def create_transaction(tx_type, items, requested_by, description=None, reference=None,
                           notes=None, attachment_url=None, attachment_name=None, now=None):
        """
        创建库存单据

        Args:
            tx_type: 单据类型 (StockTransaction.TYPES)
            items: 明细列表，见 normalize_items
            requested_by: 申请人标识
            now: 业务时间，默认当前 UTC 时间

        Returns:
            StockTransaction
        """
        if tx_type not in StockTransaction.TYPES:
            raise ValidationError(f'未知单据类型: {tx_type}', payload={'field': 'type'})
        requested_by = validate_user(requested_by)
        description = validate_optional_string(description, 'description', 255)
        reference = validate_optional_string(reference, 'reference', 128)
        notes = validate_optional_string(notes, 'notes')
        attachment_url = validate_optional_string(attachment_url, 'attachment_url', 512)
        attachment_name = validate_optional_string(attachment_name, 'attachment_name', 255)
        lines = StockTransactionService.normalize_items(items)
        StockTransactionService._check_stock_items_exist(lines)

        now = now or datetime.utcnow()
        auto_approve = tx_type in StockTransaction.AUTO_APPROVE_TYPES

        with atomic():
            transaction = StockTransaction(
                transaction_number=TransactionNumberService.next_transaction_number(now.date()),
                type=tx_type,
                status=StockTransaction.STATUS_APPROVED if auto_approve else StockTransaction.STATUS_PENDING,
                description=description,
                reference=reference,
                notes=notes,
                requested_by=requested_by,
                approved_by=requested_by if auto_approve else None,
                transaction_date=now,
                approved_at=now if auto_approve else None,
                attachment_url=attachment_url,
                attachment_name=attachment_name,
            )
            for line in lines:
                transaction.items.append(StockTransactionItem(**line))
            db.session.add(transaction)
            db.session.flush()

            if auto_approve:
                StockTransactionService.apply_to_stock(transaction)

        current_app.logger.info(
            f'库存单据已创建: {transaction.transaction_number} '
            f'[{tx_type}] 状态 {transaction.status}'
        )
        return transaction

    @staticmethod
    def approve_transaction(transaction_id, approved_by, now=None):
        """审批通过并入账，只允许待审批状态"""
        approved_by = validate_user(approved_by, 'approved_by')

        with atomic():
            transaction = StockTransactionService._lock_transaction(transaction_id)
            if transaction.status != StockTransaction.STATUS_PENDING:
                raise InvalidState(
                    f'单据 {transaction.transaction_number} 不是待审批状态',
                    payload={'status': transaction.status}
                )

            transaction.status = StockTransaction.STATUS_APPROVED
            transaction.approved_by = approved_by
            transaction.approved_at = now or datetime.utcnow()

            StockTransactionService.apply_to_stock(transaction)

        current_app.logger.info(f'库存单据已审批: {transaction.transaction_number} by {approved_by}')
        return transaction

    @staticmethod
    def reject_transaction(transaction_id, reason=None, now=None):
        """
        驳回单据，不影响库存

        默认不校验原状态 (已审批的单据也可被标记为驳回，但库存不会回滚)；
        INVENTORY_REJECT_PENDING_ONLY 开启时只允许驳回待审批单据。
        """
        reason = validate_optional_string(reason, 'reason', 255)
        with atomic():
            transaction = StockTransactionService._lock_transaction(transaction_id)

            if transaction.status != StockTransaction.STATUS_PENDING:
                if current_app.config['INVENTORY_REJECT_PENDING_ONLY']:
                    raise InvalidState(
                        f'单据 {transaction.transaction_number} 不是待审批状态',
                        payload={'status': transaction.status}
                    )
                current_app.logger.warning(
                    f'驳回非待审批单据 {transaction.transaction_number} '
                    f'(原状态 {transaction.status})，库存不做冲回'
                )

            transaction.status = StockTransaction.STATUS_REJECTED
            transaction.rejected_at = now or datetime.utcnow()
            transaction.reject_reason = reason

        current_app.logger.info(f'库存单据已驳回: {transaction.transaction_number}')
        return transaction

    @staticmethod
    def _lock_transaction(transaction_id):
        transaction = StockTransaction.query.filter_by(id=transaction_id) \
            .with_for_update().populate_existing().first()
        if not transaction:
            raise NotFound(f'单据 {transaction_id} 不存在', payload={'transaction_id': transaction_id})
        return transaction

    # ============== 入账 ==============

    @staticmethod
    def apply_to_stock(transaction):
        """
        按单据类型更新库存数量与成本

        - 增加类型加数量，减少类型减数量 (原子递增/递减)
        - 有单价时更新最近成本；收货时平均成本直接取本次单价
        - 收货创建新批次；领用按 FEFO 扣减批次
        - 调整/调拨/退回只影响汇总数量，不动批次
        """
        is_receive = transaction.type == StockTransaction.TYPE_RECEIVE
        is_withdraw = transaction.type == StockTransaction.TYPE_WITHDRAW

        for line in transaction.items:
            change = line.quantity if transaction.is_increase else -line.quantity

            stock_item = StockItem.query.filter_by(id=line.stock_item_id) \
                .with_for_update().populate_existing().one()
            stock_item.current_quantity = StockItem.current_quantity + change
            if line.unit_cost is not None:
                stock_item.last_cost = line.unit_cost
                if is_receive:
                    stock_item.average_cost = line.unit_cost

            if is_receive:
                db.session.add(StockBatch(
                    stock_item_id=line.stock_item_id,
                    batch_number=line.batch_number,
                    expiry_date=line.expiry_date,
                    manufacture_date=line.manufacture_date,
                    initial_quantity=line.quantity,
                    current_quantity=line.quantity,
                    unit_cost=line.unit_cost if line.unit_cost is not None else 0,
                    receive_transaction_id=transaction.id,
                ))
            elif is_withdraw:
                db.session.flush()
                BatchAllocator.allocate(line.stock_item_id, line.quantity)

        db.session.flush()

    # ============== 查询 ==============

    @staticmethod
    def get_transaction(transaction_id):
        transaction = db.session.get(StockTransaction, transaction_id)
        if not transaction:
            raise NotFound(f'单据 {transaction_id} 不存在', payload={'transaction_id': transaction_id})
        return transaction

    @staticmethod
    def list_transactions(tx_type=None, status=None, start_date=None, end_date=None,
                          stock_item_id=None, requested_by=None, limit=None):
        """单据列表，最新的在前"""
        if limit is None:
            limit = current_app.config['INVENTORY_TRANSACTION_LIMIT']

        query = StockTransaction.query
        if tx_type:
            query = query.filter(StockTransaction.type == tx_type)
        if status:
            query = query.filter(StockTransaction.status == status)
        if stock_item_id:
            query = query.filter(StockTransaction.items.any(StockTransactionItem.stock_item_id == stock_item_id))
        if requested_by:
            query = query.filter(StockTransaction.requested_by == requested_by)
        if start_date:
            query = query.filter(StockTransaction.transaction_date >= start_date)
        if end_date:
            query = query.filter(StockTransaction.transaction_date <= end_date)

        return query.order_by(
            StockTransaction.created_at.desc(), StockTransaction.id.desc()
        ).limit(limit).all()

    @staticmethod
    def list_pending_transactions():
        """待审批单据"""
        return StockTransactionService.list_transactions(
            status=StockTransaction.STATUS_PENDING,
            limit=current_app.config['INVENTORY_PENDING_LIMIT']
        )
