"""
审计日志工具模块
用于记录库存相关的重要操作
"""
from flask import has_request_context, request
from app.models.sys import ActivityLog
from app.extensions import db


def log_activity(action, user_id=None, target_id=None, target_type=None, description=None, details=None):
    """
    记录操作日志 (加入当前会话，随外层工作单元一起提交)
    :param action: 操作名称 (如 ActivityLog.STOCK_RECEIVE)
    :param user_id: 操作人
    :param target_id: 目标对象ID
    :param target_type: 目标对象类型 (如 'StockTransaction')
    :param details: 详细信息 (dict)
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        forwarded = request.headers.get('X-Forwarded-For', '')
        ip_address = forwarded.split(',')[0].strip() or request.remote_addr
        user_agent = request.headers.get('User-Agent')

    log = ActivityLog(
        action=action,
        user_id=str(user_id) if user_id is not None else None,
        target_id=str(target_id) if target_id is not None else None,
        target_type=target_type,
        description=description,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent[:255] if user_agent else None,
    )
    db.session.add(log)
    return log
