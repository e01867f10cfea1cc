# fragrance_hub/exports.py
"""
File exports: product spreadsheet (xlsx), CSV/JSON reports and order PDFs.

Everything is rendered in memory and returned as bytes; routers stream the
result back with a dated filename.
"""
from __future__ import annotations
import io
import json
import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence

import pandas as pd
from fpdf import FPDF
from fpdf.enums import XPos, YPos
from openpyxl.styles import Font, PatternFill

from fragrance_hub.db_models import ORDER_TYPE_LABELS, OrderType
from fragrance_hub.settings import settings

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

PRODUCT_COLUMNS = ["Commercial Name", "Code Name", "Item Number", "Current Stock", "Price", "Stock Status"]
COLUMN_WIDTHS = {"A": 40, "B": 20, "C": 20, "D": 15, "E": 15, "F": 20}

HEADER_FILL = "366092"
STATUS_FILLS = {
    "OUT OF STOCK": "C00000",
    "LOW STOCK": "FF6600",
    "IN STOCK": "00B050",
}
LOW_STOCK_HIGHLIGHT = 5


def export_filename(name: str, extension: str = "xlsx", today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{name}_{today.isoformat()}.{extension}"


def export_status(product: Any) -> str:
    stock = product.current_stock or 0
    min_stock = product.min_stock if product.min_stock is not None else 5
    if stock <= 0:
        return "OUT OF STOCK"
    if stock <= min_stock:
        return "LOW STOCK"
    return "IN STOCK"


def _fill(rgb: str) -> PatternFill:
    return PatternFill(start_color=rgb, end_color=rgb, fill_type="solid")


def _stock_fill(stock: int) -> PatternFill:
    if stock <= 0:
        return _fill(STATUS_FILLS["OUT OF STOCK"])
    if stock <= LOW_STOCK_HIGHLIGHT:
        return _fill(STATUS_FILLS["LOW STOCK"])
    return _fill(STATUS_FILLS["IN STOCK"])


# ============================================================================
# XLSX
# ============================================================================

def products_frame(products: Iterable[Any]) -> pd.DataFrame:
    rows = [
        {
            "Commercial Name": p.commercial_name,
            "Code Name": p.code,
            "Item Number": p.item_number,
            "Current Stock": int(p.current_stock or 0),
            "Price": float(p.price or 0),
            "Stock Status": export_status(p),
        }
        for p in products
    ]
    return pd.DataFrame(rows, columns=PRODUCT_COLUMNS)


def products_to_xlsx(products: Iterable[Any]) -> bytes:
    """One row per product, colour coded by stock status."""
    df = products_frame(products)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Products", index=False)
        ws = writer.sheets["Products"]

        white_bold = Font(bold=True, color="FFFFFF")
        for cell in ws[1]:
            cell.font = white_bold
            cell.fill = _fill(HEADER_FILL)

        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            stock_cell, status_cell = row[3], row[5]
            stock_cell.fill = _stock_fill(int(stock_cell.value or 0))
            status_cell.fill = _fill(STATUS_FILLS.get(status_cell.value, STATUS_FILLS["IN STOCK"]))
            status_cell.font = white_bold

        for column, width in COLUMN_WIDTHS.items():
            ws.column_dimensions[column].width = width

    logger.info(f"Products xlsx exported: {len(df)} rows")
    return buf.getvalue()


def read_products_xlsx(data: bytes) -> pd.DataFrame:
    df = pd.read_excel(io.BytesIO(data), sheet_name="Products", dtype={"Code Name": str, "Item Number": str})
    return df


# ============================================================================
# CSV / JSON reports
# ============================================================================

def inventory_csv(products: Sequence[Any]) -> bytes:
    rows = [
        {
            "code": p.code,
            "item_number": p.item_number,
            "commercial_name": p.commercial_name,
            "product_type": p.product_type,
            "category": p.category,
            "current_stock": p.current_stock,
            "min_stock": p.min_stock,
            "reorder_point": p.reorder_point,
            "price": float(p.price or 0),
            "value": (p.current_stock or 0) * float(p.price or 0),
            "status": export_status(p),
        }
        for p in products
    ]
    df = pd.DataFrame(rows, columns=[
        "code", "item_number", "commercial_name", "product_type", "category",
        "current_stock", "min_stock", "reorder_point", "price", "value", "status",
    ])
    return df.to_csv(index=False).encode("utf-8-sig")


def sales_csv(orders: Sequence[Any]) -> bytes:
    rows = []
    for o in orders:
        for item in o.items or []:
            rows.append({
                "order_number": o.order_number,
                "date": o.created_at.date().isoformat() if o.created_at else "",
                "customer": o.customer_name,
                "order_type": OrderType.parse(o.order_type).value,
                "status": getattr(o.status, "value", o.status),
                "product": item.product_name,
                "quantity": item.quantity,
                "unit_price": float(item.unit_price),
                "total_price": float(item.total_price),
            })
    df = pd.DataFrame(rows, columns=[
        "order_number", "date", "customer", "order_type", "status",
        "product", "quantity", "unit_price", "total_price",
    ])
    return df.to_csv(index=False).encode("utf-8-sig")


REPORT_KINDS = ("inventory", "sales")


def report_to_csv(kind: str, products: Sequence[Any] = (), orders: Sequence[Any] = ()) -> bytes:
    if kind == "inventory":
        return inventory_csv(products)
    if kind == "sales":
        return sales_csv(orders)
    raise ValueError(f"Unknown report kind: {kind}")


def report_to_json(report: Any) -> bytes:
    """Pydantic report models or plain dicts."""
    if hasattr(report, "model_dump"):
        report = report.model_dump(mode="json")
    return json.dumps(report, indent=2, default=str).encode("utf-8")


# ============================================================================
# Order PDFs
# ============================================================================

HEADER_BAND = (66, 139, 202)


def _text(value: Any) -> str:
    # core fonts are latin-1 only
    return str(value if value is not None else "").encode("latin-1", "replace").decode("latin-1")


def _money(value: Any) -> str:
    return f"{settings.CURRENCY} {float(value or 0):,.2f}"


def _fmt_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


class OrderPDF(FPDF):
    def header(self):
        self.set_fill_color(*HEADER_BAND)
        self.rect(0, 0, self.w, 22, style="F")
        self.set_text_color(255, 255, 255)
        self.set_font("Helvetica", "B", 16)
        self.set_xy(10, 7)
        self.cell(0, 8, "Stock Tracker - Order Details")
        self.set_text_color(0, 0, 0)
        self.set_y(30)

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(120, 120, 120)
        self.cell(0, 10, f"Page {self.page_no()} of {{nb}}", align="C")
        self.set_text_color(0, 0, 0)


def _line(pdf: FPDF, label: str, value: Any) -> None:
    pdf.set_font("Helvetica", "B", 10)
    pdf.cell(45, 6, _text(label))
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 6, _text(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _section(pdf: FPDF, title: str) -> None:
    pdf.ln(3)
    pdf.set_font("Helvetica", "B", 12)
    pdf.cell(0, 8, title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _render_order(pdf: FPDF, order: Any) -> None:
    pdf.add_page()
    order_type = OrderType.parse(order.order_type)

    _section(pdf, "Order Information")
    _line(pdf, "Order Number:", order.order_number)
    _line(pdf, "Date:", _fmt_date(order.created_at))
    _line(pdf, "Status:", getattr(order.status, "value", order.status).capitalize())
    _line(pdf, "Order Type:", ORDER_TYPE_LABELS[order_type])
    if order.pickup_by_staff:
        _line(pdf, "Pickup Person:", order.pickup_person_name or "")
        _line(pdf, "Pickup Phone:", order.pickup_person_phone or "")

    _section(pdf, "Customer")
    _line(pdf, "Name:", order.customer_name)
    _line(pdf, "Email:", order.customer_email or "-")
    _line(pdf, "Phone:", order.customer_phone or "-")

    _section(pdf, "Items")
    widths = (95, 25, 35, 35)
    pdf.set_font("Helvetica", "B", 10)
    pdf.set_fill_color(230, 230, 230)
    for width, title in zip(widths, ("Product", "Quantity", "Unit Price", "Total")):
        pdf.cell(width, 8, title, border=1, fill=True, align="C")
    pdf.ln()
    pdf.set_font("Helvetica", "", 9)
    for item in order.items or []:
        pdf.cell(widths[0], 7, _text(item.product_name)[:55], border=1)
        pdf.cell(widths[1], 7, str(item.quantity), border=1, align="C")
        pdf.cell(widths[2], 7, _money(item.unit_price), border=1, align="R")
        pdf.cell(widths[3], 7, _money(item.total_price), border=1, align="R")
        pdf.ln()

    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(sum(widths[:3]), 9, "Total Amount:", align="R")
    pdf.cell(widths[3], 9, _money(order.total_amount), align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    if order.notes:
        _section(pdf, "Notes")
        pdf.set_font("Helvetica", "", 10)
        pdf.multi_cell(0, 6, _text(order.notes))


def orders_to_pdf(orders: Sequence[Any]) -> bytes:
    """One page (or more) per order, page numbers across the whole document."""
    pdf = OrderPDF(format="A4")
    pdf.set_auto_page_break(auto=True, margin=20)
    for order in orders:
        _render_order(pdf, order)
    if not orders:
        pdf.add_page()
        pdf.set_font("Helvetica", "", 11)
        pdf.cell(0, 8, "No orders selected")
    return bytes(pdf.output())


def order_to_pdf(order: Any) -> bytes:
    return orders_to_pdf([order])


def order_pdf_filename(orders: List[Any], today: Optional[date] = None) -> str:
    if len(orders) == 1:
        return f"order_{orders[0].order_number}.pdf"
    return export_filename("orders", "pdf", today)
