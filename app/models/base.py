from datetime import date, datetime
from decimal import Decimal
from app.extensions import db


class BaseModel(db.Model):
    """
    模型基类
    包含：ID主键, 创建时间, 更新时间, 序列化方法
    """
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        """
        通用序列化方法：将模型转换为字典，便于 API 返回 JSON。
        过滤掉以 '_' 开头的私有属性；Decimal 转为 float。
        """
        data = {}
        for c in self.__table__.columns:
            if c.name.startswith('_'):
                continue
            data[c.name] = serialize_value(getattr(self, c.name))
        return data


def serialize_value(val):
    """把 ORM 字段值转换为 JSON 友好的类型"""
    if isinstance(val, (datetime, date)):
        return val.isoformat()
    if isinstance(val, Decimal):
        return float(val)
    return val
