"""
Excel rendering of report rows.
"""

from decimal import Decimal

import openpyxl
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

HEADER_ROW = 3


def _cell_value(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, dict):
        # Payment method breakdowns
        return ', '.join(f'{key}: {_cell_value(amount)}' for key, amount in value.items())
    return value


def build_report_workbook(title, columns, rows, period=None):
    """
    Render rows into a workbook: title, bold header, one line per row and a
    bold totals line.

    ``columns`` is a sequence of ``(header, key, summed)``; summed columns
    are added up on the totals line.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = title[:31]

    # Title
    ws.cell(row=1, column=1, value=f"{title} - {period}" if period else title)
    ws.cell(row=1, column=1).font = Font(size=16, bold=True)

    # Headers
    for col, (header, _key, _summed) in enumerate(columns, 1):
        cell = ws.cell(row=HEADER_ROW, column=col, value=header)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')
        ws.column_dimensions[get_column_letter(col)].width = max(12, len(header) + 4)

    # Data
    for row_number, row in enumerate(rows, HEADER_ROW + 1):
        for col, (_header, key, _summed) in enumerate(columns, 1):
            ws.cell(row=row_number, column=col, value=_cell_value(row.get(key)))

    # Summary
    summary_row = HEADER_ROW + len(rows) + 1
    ws.cell(row=summary_row, column=1, value="Total")
    ws.cell(row=summary_row, column=1).font = Font(bold=True)
    for col, (_header, key, summed) in enumerate(columns, 1):
        if not summed or col == 1:
            continue
        total = sum(_cell_value(row.get(key)) or 0 for row in rows)
        cell = ws.cell(row=summary_row, column=col, value=total)
        cell.font = Font(bold=True)

    return wb
