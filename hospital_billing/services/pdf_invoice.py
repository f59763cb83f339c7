# FILE: hospital_billing/services/pdf_invoice.py
from __future__ import annotations

from datetime import date, datetime
from io import BytesIO
from typing import Any, Iterable, Mapping, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from hospital_billing.core.config import settings
from hospital_billing.services.billing_math import money2

X0 = 18 * mm


def _fmt_date(d: Any) -> str:
    if not d:
        return ""
    if isinstance(d, (datetime, date)):
        return d.strftime("%d-%m-%Y")
    return str(d)


def _fmt_dt(dt: Any) -> str:
    if not dt:
        return ""
    if isinstance(dt, datetime):
        return dt.strftime("%d-%m-%Y %H:%M")
    return str(dt)


def _money(x: Any) -> str:
    return f"{money2(x):,.2f}"


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _new_canvas() -> tuple[canvas.Canvas, BytesIO]:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    return c, buf


def _draw_header(c: canvas.Canvas, main_title: str, sub_title: str = "") -> float:
    w, h = A4
    y = h - 20 * mm

    c.setFont("Helvetica-Bold", 14)
    c.drawString(X0, y, settings.HOSPITAL_NAME)

    y -= 7 * mm
    c.setFont("Helvetica-Bold", 12)
    c.drawString(X0, y, main_title)

    if sub_title:
        y -= 5 * mm
        c.setFont("Helvetica", 10)
        c.drawString(X0, y, sub_title)

    y -= 4 * mm
    c.setStrokeColor(colors.grey)
    c.setLineWidth(0.6)
    c.line(X0, y, w - X0, y)
    y -= 6 * mm
    return y


def _table_header(c: canvas.Canvas, y: float, headers: Sequence[str],
                  col_points: Sequence[float]) -> float:
    c.setFont("Helvetica-Bold", 9)
    for i, htxt in enumerate(headers):
        c.drawString(X0 + sum(col_points[:i]), y, htxt)
    y -= 4 * mm
    c.setLineWidth(0.4)
    c.line(X0, y, X0 + sum(col_points), y)
    y -= 5 * mm
    c.setFont("Helvetica", 9)
    return y


def _table(
    c: canvas.Canvas,
    y: float,
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    col_widths_mm: Sequence[float],
    title: str,
) -> float:
    col_points = [w * mm for w in col_widths_mm]
    y = _table_header(c, y, headers, col_points)
    for row in rows:
        if y < 25 * mm:
            c.showPage()
            y = _draw_header(c, title, "Continued")
            y = _table_header(c, y, headers, col_points)
        for i, cell in enumerate(row):
            c.drawString(X0 + sum(col_points[:i]), y, (cell or "")[:60])
        y -= 4 * mm
    return y


def _ensure_room(c: canvas.Canvas, y: float, needed_mm: float, title: str) -> float:
    if y < (25 + needed_mm) * mm:
        c.showPage()
        return _draw_header(c, title, "Continued")
    return y


def build_invoice_pdf(details: Mapping[str, Any]) -> bytes:
    """
    details: output of invoice_service.invoice_details (patient / items /
    payments may be ORM objects or dicts).
    """
    title = "Invoice"
    c, buf = _new_canvas()
    y = _draw_header(c, title, f"No. {details['invoice_number']}")

    patient = details.get("patient")
    c.setFont("Helvetica", 9)
    lines = [
        f"Bill to  : {_get(patient, 'name', '')} ({_get(patient, 'patient_code', '')})",
        f"Phone    : {_get(patient, 'phone', '') or '-'}",
        f"Issued   : {_fmt_dt(details.get('created_at'))}",
        f"Due date : {_fmt_date(details.get('due_date'))}",
        f"Status   : {str(details.get('status', '')).upper()}",
    ]
    if details.get("description"):
        lines.append(f"Notes    : {details['description']}")
    for ln in lines:
        c.drawString(X0, y, ln)
        y -= 4 * mm
    y -= 4 * mm

    item_rows = [[
        str(n),
        _get(it, "item_name", ""),
        str(_get(it, "item_type", "")),
        str(_get(it, "quantity", "")),
        _money(_get(it, "unit_price")),
        _money(_get(it, "total_price")),
    ] for n, it in enumerate(details.get("items") or [], start=1)]
    y = _table(c, y, ["#", "Item", "Type", "Qty", "Unit Price", "Amount"],
               item_rows, [8, 72, 28, 12, 25, 25], title)

    y = _ensure_room(c, y, 40, title)
    y -= 4 * mm
    label_x = X0 + 110 * mm
    value_x = X0 + 170 * mm
    totals = [
        ("Subtotal", details.get("subtotal")),
        (f"Service charge ({(settings.SERVICE_CHARGE_RATE * 100).normalize():f}%)",
         details.get("service_charge")),
        ("Total", details.get("total")),
        ("Paid", details.get("paid_amount")),
        ("Outstanding", details.get("outstanding_amount")),
    ]
    for label, value in totals:
        bold = label in {"Total", "Outstanding"}
        c.setFont("Helvetica-Bold" if bold else "Helvetica", 9)
        c.drawString(label_x, y, label)
        c.drawRightString(value_x, y, _money(value))
        y -= 5 * mm

    payments = details.get("payments") or []
    if payments:
        y = _ensure_room(c, y, 20, title)
        y -= 4 * mm
        c.setFont("Helvetica-Bold", 10)
        c.drawString(X0, y, "Payments")
        y -= 6 * mm
        pay_rows = [[
            _fmt_dt(_get(p, "paid_at")),
            str(_get(p, "method", "")),
            _get(p, "reference", "") or "-",
            _money(_get(p, "amount")),
        ] for p in payments]
        y = _table(c, y, ["Date", "Method", "Reference", "Amount"], pay_rows,
                   [40, 40, 60, 30], title)

    c.showPage()
    c.save()
    return buf.getvalue()
