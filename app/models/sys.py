from app.extensions import db
from .base import BaseModel


class ActivityLog(BaseModel):
    """系统操作审计"""
    __tablename__ = 'sys_activity_logs'

    STOCK_RECEIVE = 'STOCK_RECEIVE'
    STOCK_WITHDRAW = 'STOCK_WITHDRAW'
    STOCK_ADJUST = 'STOCK_ADJUST'
    STOCK_APPROVED = 'STOCK_APPROVED'
    STOCK_REJECTED = 'STOCK_REJECTED'

    action = db.Column(db.String(32), index=True)  # e.g. 'STOCK_RECEIVE'
    user_id = db.Column(db.String(64), index=True)
    target_id = db.Column(db.String(64))
    target_type = db.Column(db.String(64))  # e.g. 'StockTransaction'
    description = db.Column(db.String(255))
    details = db.Column(db.JSON)  # 附加信息
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(255))
