"""
数据导出服务
库存清单、单据流水导出为 Excel / CSV
"""
from io import BytesIO, StringIO
from datetime import date, datetime
from decimal import Decimal
from typing import List, Dict, Any
import csv

import openpyxl
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

STOCK_ITEM_COLUMNS = [
    {'field': 'code', 'header': '物料编码', 'width': 14},
    {'field': 'name', 'header': '物料名称', 'width': 25},
    {'field': 'category', 'header': '分类', 'width': 12},
    {'field': 'unit', 'header': '单位', 'width': 8},
    {'field': 'current_quantity', 'header': '当前库存', 'width': 12},
    {'field': 'min_quantity', 'header': '最低库存', 'width': 12},
    {'field': 'max_quantity', 'header': '最高库存', 'width': 12},
    {'field': 'average_cost', 'header': '平均成本', 'width': 12},
    {'field': 'stock_value', 'header': '库存金额', 'width': 14},
    {'field': 'location', 'header': '存放位置', 'width': 14},
    {'field': 'status', 'header': '状态', 'width': 10},
]

TRANSACTION_COLUMNS = [
    {'field': 'transaction_number', 'header': '单号', 'width': 20},
    {'field': 'type', 'header': '类型', 'width': 14},
    {'field': 'status', 'header': '状态', 'width': 10},
    {'field': 'item_code', 'header': '物料编码', 'width': 14},
    {'field': 'item_name', 'header': '物料名称', 'width': 25},
    {'field': 'quantity', 'header': '数量', 'width': 10},
    {'field': 'unit_cost', 'header': '单价', 'width': 10},
    {'field': 'total_cost', 'header': '金额', 'width': 12},
    {'field': 'batch_number', 'header': '批号', 'width': 14},
    {'field': 'expiry_date', 'header': '到期日', 'width': 12},
    {'field': 'requested_by', 'header': '申请人', 'width': 12},
    {'field': 'approved_by', 'header': '审批人', 'width': 12},
    {'field': 'transaction_date', 'header': '单据时间', 'width': 18},
]


def _cell_value(value):
    """处理特殊类型"""
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.strftime('%Y-%m-%d')
    if isinstance(value, Decimal):
        return float(value)
    if value is None:
        return ''
    return value


class ExportService:
    """数据导出服务"""

    @staticmethod
    def stock_status(stock_item):
        """停用优先于低库存"""
        if not stock_item.is_active:
            return '停用'
        return '低库存' if stock_item.is_low_stock else '正常'

    @staticmethod
    def stock_item_rows(stock_items):
        """库存清单行数据"""
        rows = []
        for s in stock_items:
            rows.append({
                'code': s.item.code,
                'name': s.item.name,
                'category': s.item.category,
                'unit': s.item.unit,
                'current_quantity': s.current_quantity,
                'min_quantity': s.min_quantity,
                'max_quantity': s.max_quantity,
                'average_cost': s.average_cost,
                'stock_value': s.current_quantity * (s.average_cost or 0),
                'location': s.location,
                'status': ExportService.stock_status(s),
            })
        return rows

    @staticmethod
    def transaction_rows(transactions):
        """单据流水行数据，每条明细一行"""
        rows = []
        for tx in transactions:
            for line in tx.items:
                item = line.stock_item.item
                rows.append({
                    'transaction_number': tx.transaction_number,
                    'type': tx.type,
                    'status': tx.status,
                    'item_code': item.code,
                    'item_name': item.name,
                    'quantity': line.quantity,
                    'unit_cost': line.unit_cost,
                    'total_cost': line.total_cost,
                    'batch_number': line.batch_number,
                    'expiry_date': line.expiry_date,
                    'requested_by': tx.requested_by,
                    'approved_by': tx.approved_by,
                    'transaction_date': tx.transaction_date,
                })
        return rows

    @staticmethod
    def export_to_excel(
        data: List[Dict[str, Any]],
        columns: List[Dict[str, Any]],
        sheet_name: str = "Sheet1",
        title: str = "数据导出"
    ) -> BytesIO:
        """
        导出数据到 Excel

        Args:
            data: 数据列表 [{"field1": value1, "field2": value2}, ...]
            columns: 列定义 [{"field": "field1", "header": "字段1", "width": 15}, ...]
            sheet_name: 工作表名称
            title: 报表标题

        Returns:
            BytesIO: Excel 文件流
        """
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = sheet_name

        # 样式定义
        title_font = Font(size=16, bold=True, color='FFFFFF')
        title_fill = PatternFill(start_color='0F766E', end_color='0F766E', fill_type='solid')
        header_font = Font(size=11, bold=True, color='FFFFFF')
        header_fill = PatternFill(start_color='14B8A6', end_color='14B8A6', fill_type='solid')
        cell_font = Font(size=10)
        border = Border(
            left=Side(style='thin', color='E5E7EB'),
            right=Side(style='thin', color='E5E7EB'),
            top=Side(style='thin', color='E5E7EB'),
            bottom=Side(style='thin', color='E5E7EB')
        )

        # 标题（合并单元格）
        ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(columns))
        title_cell = ws.cell(row=1, column=1, value=title)
        title_cell.font = title_font
        title_cell.fill = title_fill
        title_cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.row_dimensions[1].height = 30

        # 导出时间
        ws.merge_cells(start_row=2, start_column=1, end_row=2, end_column=len(columns))
        time_cell = ws.cell(row=2, column=1, value=f"导出时间: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        time_cell.font = Font(size=9, color='6B7280')
        time_cell.alignment = Alignment(horizontal='center')

        # 表头
        for col_idx, col_def in enumerate(columns, start=1):
            cell = ws.cell(row=3, column=col_idx, value=col_def['header'])
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal='center', vertical='center')
            cell.border = border
            ws.column_dimensions[get_column_letter(col_idx)].width = col_def.get('width', 15)

        # 数据
        for row_idx, row_data in enumerate(data, start=4):
            for col_idx, col_def in enumerate(columns, start=1):
                value = _cell_value(row_data.get(col_def['field']))
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.font = cell_font
                cell.border = border
                # 数字右对齐，其他左对齐
                if isinstance(value, (int, float)):
                    cell.alignment = Alignment(horizontal='right', vertical='center')
                else:
                    cell.alignment = Alignment(horizontal='left', vertical='center')

        # 冻结前三行（标题 + 时间 + 表头）
        ws.freeze_panes = 'A4'

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output

    @staticmethod
    def export_to_csv(
        data: List[Dict[str, Any]],
        columns: List[Dict[str, Any]]
    ) -> BytesIO:
        """导出数据到 CSV (UTF-8 with BOM，方便 Excel 直接打开)"""
        text_output = StringIO()
        writer = csv.DictWriter(
            text_output,
            fieldnames=[col['field'] for col in columns],
            extrasaction='ignore'
        )
        writer.writerow({col['field']: col['header'] for col in columns})
        for row in data:
            writer.writerow({col['field']: _cell_value(row.get(col['field'])) for col in columns})

        output = BytesIO()
        output.write('\ufeff'.encode('utf-8'))
        output.write(text_output.getvalue().encode('utf-8'))
        output.seek(0)
        return output


# 全局单例
export_service = ExportService()
