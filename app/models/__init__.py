# 按照依赖顺序导入
from .base import BaseModel
from .catalog import Item
from .stock import StockItem, StockBatch, StockTransaction, StockTransactionItem, TransactionCounter
from .sys import ActivityLog
