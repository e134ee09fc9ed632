"""
业务入参校验
在写库之前完成，校验失败直接抛出 ValidationError
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re
from app.exceptions import ValidationError

ITEM_CODE_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

# 数值列 (总位数, 小数位)，模型与校验共用
QTY_DIGITS = (14, 3)
MONEY_DIGITS = (14, 4)
AMOUNT_DIGITS = (18, 4)

USER_MAX_LENGTH = 64


def to_decimal(value, field):
    """转换为 Decimal，拒绝布尔值、NaN 和无穷大"""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{field} 必须是数字', payload={'field': field})
    try:
        # float 先转字符串，避免二进制误差
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f'{field} 必须是数字', payload={'field': field})
    if not number.is_finite():
        raise ValidationError(f'{field} 必须是有限数值', payload={'field': field})
    return number


def fit_column(number, field, digits):
    """
    按列精度四舍五入，整数部分超出列宽时报错
    :param digits: (总位数, 小数位)，如 QTY_DIGITS
    """
    precision, scale = digits
    try:
        number = number.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f'{field} 数值过大', payload={'field': field})
    if number and number.adjusted() >= precision - scale:
        raise ValidationError(f'{field} 数值过大', payload={'field': field})
    return number


def validate_positive_number(value, field='quantity', digits=QTY_DIGITS):
    """验证正数 (按列精度取整后仍须大于0)"""
    number = fit_column(to_decimal(value, field), field, digits)
    if number <= 0:
        raise ValidationError(f'{field} 必须大于0', payload={'field': field})
    return number


def validate_non_negative(value, field, digits=QTY_DIGITS):
    """验证非负数 (None 视为未填写)"""
    if value is None:
        return None
    number = fit_column(to_decimal(value, field), field, digits)
    if number < 0:
        raise ValidationError(f'{field} 不能为负', payload={'field': field})
    return number


def validate_optional_date(value, field):
    """接受 date / datetime / ISO 日期字符串"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise ValidationError(f'{field} 日期格式应为 YYYY-MM-DD', payload={'field': field})


def validate_optional_string(value, field, max_length=None):
    """可选文本字段，空串视为未填写"""
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{field} 必须是文本', payload={'field': field})
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f'{field} 不能超过 {max_length} 个字符', payload={'field': field})
    return value


def validate_item_code(value):
    """验证物料编码格式"""
    if not value or not isinstance(value, str) or not ITEM_CODE_PATTERN.match(value):
        raise ValidationError('物料编码只能包含字母、数字、下划线和连字符', payload={'field': 'item_code'})
    return value


def validate_user(value, field='requested_by'):
    """操作人必须是非空标识"""
    if not isinstance(value, str) or value.strip() == '':
        raise ValidationError(f'{field} 不能为空', payload={'field': field})
    value = value.strip()
    if len(value) > USER_MAX_LENGTH:
        raise ValidationError(f'{field} 不能超过 {USER_MAX_LENGTH} 个字符', payload={'field': field})
    return value


def validate_thresholds(min_quantity, max_quantity):
    """最低/最高库存阈值"""
    min_q = validate_non_negative(min_quantity, 'min_quantity')
    max_q = validate_non_negative(max_quantity, 'max_quantity')
    if min_q is not None and max_q is not None and min_q > max_q:
        raise ValidationError('最低库存不能大于最高库存', payload={'field': 'min_quantity'})
    return min_q, max_q
