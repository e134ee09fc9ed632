from decimal import Decimal
from app.extensions import db
from app.utils.validators import QTY_DIGITS, MONEY_DIGITS, AMOUNT_DIGITS
from .base import BaseModel, serialize_value

QTY = db.Numeric(*QTY_DIGITS)
MONEY = db.Numeric(*MONEY_DIGITS)
AMOUNT = db.Numeric(*AMOUNT_DIGITS)


class StockItem(BaseModel):
    """
    库存项 (每个可追踪的目录物料一行)
    current_quantity 为汇总数量，批次明细见 StockBatch
    """
    __tablename__ = 'stock_items'

    item_id = db.Column(db.Integer, db.ForeignKey('catalog_items.id'), unique=True, nullable=False)
    current_quantity = db.Column(QTY, default=Decimal('0'), nullable=False)

    # 库存阈值 (可选)
    min_quantity = db.Column(QTY)
    max_quantity = db.Column(QTY)

    # 成本
    average_cost = db.Column(MONEY)  # 简化：收货时直接覆盖为最新单价，并非加权平均
    last_cost = db.Column(MONEY)

    location = db.Column(db.String(64))  # 存放位置, e.g. "冷库-A1"
    is_active = db.Column(db.Boolean, default=True, index=True, nullable=False)

    item = db.relationship('Item', back_populates='stock_item')
    batches = db.relationship('StockBatch', back_populates='stock_item', lazy='dynamic')
    transaction_items = db.relationship('StockTransactionItem', back_populates='stock_item', lazy='dynamic')

    @property
    def is_low_stock(self):
        """是否低于最低库存 (未设置阈值时不判断)"""
        if self.min_quantity is None:
            return False
        return self.current_quantity <= self.min_quantity

    def to_dict(self):
        data = super().to_dict()
        data['item'] = {
            'id': self.item.id,
            'code': self.item.code,
            'name': self.item.name,
            'unit': self.item.unit,
            'type': self.item.type,
            'category': self.item.category,
        } if self.item else None
        data['is_low_stock'] = self.is_low_stock
        data['batch_count'] = self.batches.count()
        return data


class StockBatch(BaseModel):
    """
    收货批次
    仅由 RECEIVE 单据创建；只会被出库扣减，不会再增加
    """
    __tablename__ = 'stock_batches'

    stock_item_id = db.Column(db.Integer, db.ForeignKey('stock_items.id'), index=True, nullable=False)
    batch_number = db.Column(db.String(64))
    expiry_date = db.Column(db.Date, index=True)
    manufacture_date = db.Column(db.Date)

    initial_quantity = db.Column(QTY, nullable=False)
    current_quantity = db.Column(QTY, nullable=False)
    unit_cost = db.Column(MONEY, default=Decimal('0'), nullable=False)

    # 来源收货单 (仅用于追溯，不级联)
    receive_transaction_id = db.Column(db.Integer, db.ForeignKey('stock_transactions.id'))

    __table_args__ = (
        db.CheckConstraint('current_quantity >= 0', name='ck_stock_batches_qty_non_negative'),
        db.CheckConstraint('current_quantity <= initial_quantity', name='ck_stock_batches_qty_le_initial'),
    )

    stock_item = db.relationship('StockItem', back_populates='batches')
    receive_transaction = db.relationship('StockTransaction')

    def to_dict(self):
        data = super().to_dict()
        item = self.stock_item.item if self.stock_item else None
        data['item_name'] = item.name if item else None
        data['unit'] = item.unit if item else None
        return data


class StockTransaction(BaseModel):
    """
    库存单据 (每次库存变动申请一张)
    状态只能 PENDING -> APPROVED 或 PENDING -> REJECTED
    """
    __tablename__ = 'stock_transactions'

    TYPE_RECEIVE = 'RECEIVE'            # 收货入库
    TYPE_WITHDRAW = 'WITHDRAW'          # 领用出库
    TYPE_ADJUST_IN = 'ADJUST_IN'        # 盘盈调整
    TYPE_ADJUST_OUT = 'ADJUST_OUT'      # 盘亏调整
    TYPE_TRANSFER_IN = 'TRANSFER_IN'    # 调拨入
    TYPE_TRANSFER_OUT = 'TRANSFER_OUT'  # 调拨出
    TYPE_RETURN = 'RETURN'              # 退回入库

    TYPES = (
        TYPE_RECEIVE, TYPE_WITHDRAW, TYPE_ADJUST_IN, TYPE_ADJUST_OUT,
        TYPE_TRANSFER_IN, TYPE_TRANSFER_OUT, TYPE_RETURN,
    )
    # 无需审批，创建即生效
    AUTO_APPROVE_TYPES = (TYPE_RECEIVE, TYPE_TRANSFER_IN, TYPE_RETURN)
    # 增加库存的类型，其余均为减少
    INCREASE_TYPES = (TYPE_RECEIVE, TYPE_ADJUST_IN, TYPE_TRANSFER_IN, TYPE_RETURN)

    STATUS_PENDING = 'PENDING'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

    transaction_number = db.Column(db.String(32), unique=True, index=True, nullable=False)
    type = db.Column(db.String(20), index=True, nullable=False)
    status = db.Column(db.String(20), default=STATUS_PENDING, index=True, nullable=False)

    description = db.Column(db.String(255))
    reference = db.Column(db.String(128))  # 外部单据号 (发票/采购单)
    notes = db.Column(db.Text)

    requested_by = db.Column(db.String(64), index=True, nullable=False)
    approved_by = db.Column(db.String(64))

    transaction_date = db.Column(db.DateTime, index=True)
    approved_at = db.Column(db.DateTime, index=True)
    rejected_at = db.Column(db.DateTime)
    reject_reason = db.Column(db.String(255))

    # 附件 (收据照片等)，文件本身由上传服务保存
    attachment_url = db.Column(db.String(512))
    attachment_name = db.Column(db.String(255))

    items = db.relationship(
        'StockTransactionItem', back_populates='transaction',
        cascade='all, delete-orphan', order_by='StockTransactionItem.id'
    )

    @property
    def is_auto_approve(self):
        return self.type in self.AUTO_APPROVE_TYPES

    @property
    def is_increase(self):
        return self.type in self.INCREASE_TYPES

    @property
    def total_quantity(self):
        return sum((i.quantity for i in self.items), Decimal('0'))

    @property
    def total_value(self):
        """单据总金额 (无单价的明细按 0 计)"""
        return sum((i.total_cost or Decimal('0') for i in self.items), Decimal('0'))

    def to_dict(self):
        data = super().to_dict()
        data['items'] = [i.to_dict() for i in self.items]
        data['total_value'] = serialize_value(self.total_value)
        return data


class StockTransactionItem(BaseModel):
    """单据明细，随单据一起创建，之后不可修改"""
    __tablename__ = 'stock_transaction_items'

    transaction_id = db.Column(db.Integer, db.ForeignKey('stock_transactions.id'), index=True, nullable=False)
    stock_item_id = db.Column(db.Integer, db.ForeignKey('stock_items.id'), index=True, nullable=False)

    quantity = db.Column(QTY, nullable=False)
    unit_cost = db.Column(MONEY)
    total_cost = db.Column(AMOUNT)

    # 收货专用
    batch_number = db.Column(db.String(64))
    expiry_date = db.Column(db.Date)
    manufacture_date = db.Column(db.Date)
    # 领用专用
    purpose = db.Column(db.String(255))

    transaction = db.relationship('StockTransaction', back_populates='items')
    stock_item = db.relationship('StockItem', back_populates='transaction_items')

    def to_dict(self):
        data = super().to_dict()
        item = self.stock_item.item if self.stock_item else None
        data['item_code'] = item.code if item else None
        data['item_name'] = item.name if item else None
        data['unit'] = item.unit if item else None
        return data


class TransactionCounter(db.Model):
    """
    单号日计数器
    每个自然日一行，在事务内加锁自增，保证 STK-YYYYMMDD-NNNN 不重复
    """
    __tablename__ = 'stock_transaction_counters'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    day = db.Column(db.String(8), unique=True, nullable=False)  # YYYYMMDD
    last_value = db.Column(db.Integer, default=0, nullable=False)
