from datetime import datetime, time, timedelta
from flask import request, jsonify, send_file
from app.blueprints.inventory import inventory_bp
from app.exceptions import ValidationError
from app.models.base import serialize_value
from app.services.inventory_service import InventoryService
from app.services.transaction_service import StockTransactionService
from app.services.stock_action_service import StockActionService
from app.services.kpi_service import InventoryKPIService
from app.services.export_service import export_service, STOCK_ITEM_COLUMNS, TRANSACTION_COLUMNS
from app.utils.validators import validate_optional_date

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def get_payload():
    """读取 JSON 请求体，必须是对象"""
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError('请求体必须是 JSON 对象')
    return payload


def success(data=None, status=200, **extra):
    body = {'success': True, 'data': data}
    body.update(extra)
    return jsonify(body), status


def query_flag(name):
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


# ============== 看板 ==============

@inventory_bp.route('/kpis')
def kpis():
    """库存看板指标"""
    data = InventoryKPIService.get_inventory_kpis()
    return success({key: serialize_value(value) for key, value in data.items()})


# ============== 库存项 ==============

@inventory_bp.route('/items', methods=['GET'])
def list_items():
    stock_items = InventoryService.list_stock_items(
        category=request.args.get('category') or None,
        item_type=request.args.get('type') or None,
        search=request.args.get('q', '').strip() or None,
        low_stock_only=query_flag('low_stock'),
        is_active=None if query_flag('include_inactive') else True,
    )
    return success([s.to_dict() for s in stock_items])


@inventory_bp.route('/items', methods=['POST'])
def create_item():
    payload = get_payload()
    stock_item = InventoryService.create_stock_item(
        payload.get('item_code'),
        min_quantity=payload.get('min_quantity'),
        max_quantity=payload.get('max_quantity'),
        location=payload.get('location'),
    )
    return success(stock_item.to_dict(), status=201)


@inventory_bp.route('/items/<int:stock_item_id>', methods=['GET'])
def get_item(stock_item_id):
    return success(InventoryService.get_stock_item(stock_item_id).to_dict())


@inventory_bp.route('/items/<int:stock_item_id>', methods=['PATCH'])
def update_item(stock_item_id):
    stock_item = InventoryService.update_stock_item(stock_item_id, get_payload())
    return success(stock_item.to_dict())


@inventory_bp.route('/items/<int:stock_item_id>/batches')
def item_batches(stock_item_id):
    batches = InventoryService.get_item_batches(stock_item_id)
    return success([b.to_dict() for b in batches])


@inventory_bp.route('/batches/expiring')
def expiring_batches():
    days = request.args.get('days', type=int)
    batches = InventoryService.get_expiring_batches(days_ahead=days)
    return success([b.to_dict() for b in batches])


@inventory_bp.route('/catalog')
def catalog():
    return success(InventoryService.list_catalog_items())


# ============== 单据 ==============

def _transaction_filters():
    start = validate_optional_date(request.args.get('start_date'), 'start_date')
    end = validate_optional_date(request.args.get('end_date'), 'end_date')
    return {
        'tx_type': request.args.get('type') or None,
        'status': request.args.get('status') or None,
        'stock_item_id': request.args.get('stock_item_id', type=int),
        'requested_by': request.args.get('requested_by') or None,
        'start_date': datetime.combine(start, time.min) if start else None,
        'end_date': datetime.combine(end, time.max) if end else None,
        'limit': request.args.get('limit', type=int),
    }


@inventory_bp.route('/transactions', methods=['GET'])
def list_transactions():
    transactions = StockTransactionService.list_transactions(**_transaction_filters())
    return success([t.to_dict() for t in transactions])


@inventory_bp.route('/transactions/pending')
def pending_transactions():
    transactions = StockTransactionService.list_pending_transactions()
    return success([t.to_dict() for t in transactions])


@inventory_bp.route('/transactions/<int:transaction_id>')
def get_transaction(transaction_id):
    return success(StockTransactionService.get_transaction(transaction_id).to_dict())


@inventory_bp.route('/transactions', methods=['POST'])
def create_transaction():
    """通用创建接口 (调拨、退回等没有专门页面的类型)"""
    payload = get_payload()
    transaction = StockTransactionService.create_transaction(
        payload.get('type'),
        payload.get('items'),
        payload.get('requested_by'),
        description=payload.get('description'),
        reference=payload.get('reference'),
        notes=payload.get('notes'),
        attachment_url=payload.get('attachment_url'),
        attachment_name=payload.get('attachment_name'),
    )
    return success(transaction.to_dict(), status=201)


@inventory_bp.route('/receive', methods=['POST'])
def receive():
    """收货入库"""
    payload = get_payload()
    transaction = StockActionService.receive_items(
        payload.get('items'),
        payload.get('requested_by'),
        description=payload.get('description'),
        reference=payload.get('reference'),
        attachment_url=payload.get('attachment_url'),
        attachment_name=payload.get('attachment_name'),
    )
    return success(transaction.to_dict(), status=201)


@inventory_bp.route('/withdraw', methods=['POST'])
def withdraw():
    """领用出库 (待审批)"""
    payload = get_payload()
    transaction = StockActionService.withdraw_items(
        payload.get('items'),
        payload.get('requested_by'),
        description=payload.get('description'),
        reference=payload.get('reference'),
    )
    return success(transaction.to_dict(), status=201)


@inventory_bp.route('/adjust', methods=['POST'])
def adjust():
    """库存调整 (待审批)"""
    payload = get_payload()
    transaction = StockActionService.adjust_stock(
        payload.get('stock_item_id'),
        payload.get('quantity'),
        payload.get('is_increase'),
        payload.get('reason'),
        payload.get('requested_by'),
    )
    return success(transaction.to_dict(), status=201)


@inventory_bp.route('/transactions/<int:transaction_id>/approve', methods=['POST'])
def approve(transaction_id):
    payload = get_payload()
    transaction = StockActionService.approve(transaction_id, payload.get('approved_by'))
    return success(transaction.to_dict())


@inventory_bp.route('/transactions/<int:transaction_id>/reject', methods=['POST'])
def reject(transaction_id):
    payload = get_payload()
    transaction = StockActionService.reject(
        transaction_id, payload.get('rejected_by'), payload.get('reason')
    )
    return success(transaction.to_dict())


# ============== 导出 ==============

@inventory_bp.route('/export/<kind>')
def export(kind):
    """导出库存清单或单据流水 (?format=xlsx|csv)"""
    fmt = request.args.get('format', 'xlsx')
    if fmt not in ('xlsx', 'csv'):
        raise ValidationError(f'不支持的导出格式: {fmt}')

    if kind == 'items':
        rows = export_service.stock_item_rows(InventoryService.list_stock_items(is_active=None))
        columns, title = STOCK_ITEM_COLUMNS, '库存清单'
    elif kind == 'transactions':
        # 导出近 30 天的全部单据
        start = datetime.utcnow() - timedelta(days=30)
        transactions = StockTransactionService.list_transactions(start_date=start, limit=10000)
        rows = export_service.transaction_rows(transactions)
        columns, title = TRANSACTION_COLUMNS, '库存单据流水'
    else:
        raise ValidationError(f'不支持的导出类型: {kind}')

    filename_base = f'{kind}_{datetime.now().strftime("%Y%m%d_%H%M%S")}'
    if fmt == 'csv':
        output = export_service.export_to_csv(rows, columns)
        return send_file(output, mimetype='text/csv', as_attachment=True,
                         download_name=f'{filename_base}.csv')

    output = export_service.export_to_excel(rows, columns, sheet_name=title, title=title)
    return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True,
                     download_name=f'{filename_base}.xlsx')
