class InventoryException(Exception):
    """库存系统基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv


class ValidationError(InventoryException):
    """输入数据不合法"""
    def __init__(self, message="Invalid data", payload=None):
        super().__init__(message, code=400, payload=payload)


class NotFound(InventoryException):
    """引用的单据或库存项不存在"""
    def __init__(self, message="Not found", payload=None):
        super().__init__(message, code=404, payload=payload)


class InvalidState(InventoryException):
    """单据状态不允许当前操作"""
    def __init__(self, message="Invalid state", payload=None):
        super().__init__(message, code=409, payload=payload)


class InsufficientStock(InventoryException):
    """批次余量不足 (仅在严格扣减模式下抛出)"""
    def __init__(self, message="Insufficient stock", payload=None):
        super().__init__(message, code=409, payload=payload)


class StoreError(InventoryException):
    """数据库层错误"""
    def __init__(self, message="Store failure", payload=None):
        super().__init__(message, code=503, payload=payload)
