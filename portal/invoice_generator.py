"""
Draft Invoice Generator

Builds the draft invoice workbook for a client's fee sheet.
"""

import io
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from portal.billing_engine import FeeSheet, summarize

logger = logging.getLogger(__name__)

# Styling constants
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
TOTAL_FONT = Font(bold=True)
BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)
CURRENCY_FORMAT = '"$"#,##0.00'

LINE_HEADERS = ["Service", "Complexity", "Price per Form", "Form Count", "Subtotal"]


def apply_header_style(ws, row_num: int):
    for cell in ws[row_num]:
        if cell.value is None:
            continue
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal='center', vertical='center')
        cell.border = BORDER


def auto_adjust_columns(ws):
    """Auto-adjust column widths based on content"""
    for column in ws.columns:
        column_letter = get_column_letter(column[0].column)
        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)


def generate_invoice(
    client: Dict[str, Any],
    sheet: FeeSheet,
    company_name: Optional[str] = None,
) -> bytes:
    """Render the draft invoice and return the .xlsx bytes."""
    summary = summarize(sheet)

    wb = Workbook()
    ws = wb.active
    ws.title = "Draft Invoice"

    ws.append([company_name or "Draft Invoice"])
    ws['A1'].font = Font(bold=True, size=14)
    ws.append(["Client", client.get("name") or ""])
    ws.append(["Client Type", (client.get("type") or "").capitalize()])
    ws.append(["Generated", datetime.now().strftime("%Y-%m-%d %H:%M:%S")])
    ws.append([])

    ws.append(LINE_HEADERS)
    apply_header_style(ws, ws.max_row)

    for line in summary["lines"]:
        ws.append([
            line["name"],
            line["complexity"].capitalize(),
            line["price_per_form"],
            line["form_count"],
            line["subtotal"],
        ])
        for col in (3, 5):
            ws.cell(row=ws.max_row, column=col).number_format = CURRENCY_FORMAT

    ws.append([])
    totals = [
        ("Subtotal", summary["subtotal"]),
        (f"Courtesy Discount {_reason(sheet.adjustments.discount_reason)}".strip(), -summary["discount"]),
        (f"Additional Fees {_reason(sheet.adjustments.additional_fees_reason)}".strip(), summary["additional_fees"]),
        ("Total", summary["total"]),
    ]
    for label, amount in totals:
        ws.append([label, None, None, None, amount])
        ws.cell(row=ws.max_row, column=5).number_format = CURRENCY_FORMAT
    for cell in ws[ws.max_row]:
        cell.font = TOTAL_FONT

    if summary["needs_approval"]:
        ws.append([])
        ws.append([f"Partner approval confirmed for {summary['discount_percent']}% discount"])

    auto_adjust_columns(ws)

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Generated draft invoice for client {client.get('id')}: total {summary['total']}")
    return buffer.getvalue()


def _reason(reason: str) -> str:
    return f"({reason})" if reason else ""
