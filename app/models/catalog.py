from app.extensions import db
from .base import BaseModel


class Item(BaseModel):
    """
    物料目录 (采购/库存共用)
    code 为业务编码，例如 "ITEM-001"、"T01001"
    """
    __tablename__ = 'catalog_items'

    code = db.Column(db.String(32), unique=True, index=True, nullable=False)
    name = db.Column(db.String(128), index=True, nullable=False)
    unit = db.Column(db.String(32))      # 计量单位
    type = db.Column(db.String(64))      # 物料类型 (原料/包材/...)
    category = db.Column(db.String(64), index=True)
    supplier1 = db.Column(db.String(128))  # 主供应商
    supplier2 = db.Column(db.String(128))  # 备选供应商

    stock_item = db.relationship('StockItem', back_populates='item', uselist=False)

    def __repr__(self):
        return f'<Item {self.code} {self.name}>'
