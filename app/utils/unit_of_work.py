"""
工作单元 (Unit of Work)
把一次业务操作内的多次写入合并为一次提交，失败则整体回滚
"""
from contextlib import contextmanager
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from app.extensions import db
from app.exceptions import StoreError

_ACTIVE_KEY = 'unit_of_work_active'


@contextmanager
def atomic():
    """
    原子化执行块

    最外层块在正常结束时提交，任何异常都会回滚；
    嵌套调用直接加入外层工作单元，由外层统一提交。
    数据库异常回滚后以 StoreError 抛出 (保留原始异常链)。

    用法:
        with atomic():
            InventoryService.create_transaction(...)
            InventoryService.approve_transaction(...)
    """
    session = db.session()
    if session.info.get(_ACTIVE_KEY):
        yield session
        return

    session.info[_ACTIVE_KEY] = True
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        current_app.logger.error(f'数据库操作失败，已回滚: {e}')
        raise StoreError(f'数据库操作失败: {e.__class__.__name__}') from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.info.pop(_ACTIVE_KEY, None)
