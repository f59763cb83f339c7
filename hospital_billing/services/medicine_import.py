from __future__ import annotations

import csv
import enum
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from io import BytesIO, StringIO
from typing import Any, Dict, Iterable, List, Optional, Tuple

from openpyxl import Workbook, load_workbook
from sqlalchemy import func
from sqlalchemy.orm import Session

from hospital_billing.core.config import settings
from hospital_billing.models.medicine import Medicine
from hospital_billing.services.activity_logger import log_activity
from hospital_billing.services.billing_math import MONEY_LIMIT, Q2

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# -----------------------------
# Template columns (header names)
# -----------------------------
TEMPLATE_HEADERS = [
    "Medicine Name",
    "Category",
    "Unit Price",
    "Buy Price",
    "Stock Quantity",
    "Low Stock Threshold",
    "Unit",
]
TEMPLATE_SAMPLE = ["Paracetamol 500mg", "Pain Relief", "5.50", "3.20", "200", "20", "tablets"]

# Header spellings seen in real sheets, per field
FIELD_ALIASES: Dict[str, List[str]] = {
    "name": ["Medicine Name", "Name", "medicineName", "Medicine", "Item Name"],
    "category": ["Category", "Type"],
    "unit_price": ["Unit Price", "unitPrice", "Price", "price", "Sale Price",
                   "Selling Price", "MRP"],
    "buy_price": ["Buy Price", "buyPrice", "Cost Price", "Purchase Price"],
    "stock_quantity": ["Stock Quantity", "stockQuantity", "Stock", "Quantity", "Qty"],
    "low_stock_threshold": ["Low Stock Threshold", "lowStockThreshold", "Threshold",
                            "Min Stock", "Reorder Level"],
    "unit": ["Unit", "Units", "UOM"],
}

NA_SET = {"", "-", "na", "n/a", "null", "none", "nil"}

PLAIN_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
GROUPED_NUMBER_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")
# INTEGER column range
MAX_INT = 2**31 - 1


def _norm_key(h: Any) -> str:
    s = ("" if h is None else str(h)).replace("\ufeff", "").strip().lower()
    return re.sub(r"[^a-z0-9]", "", s)


HEADER_ALIASES: Dict[str, str] = {
    _norm_key(alias): fld
    for fld, aliases in FIELD_ALIASES.items() for alias in aliases
}


def resolve_header(h: Any) -> Optional[str]:
    return HEADER_ALIASES.get(_norm_key(h))


# -----------------------------
# Row lifecycle
# -----------------------------
class RowState(str, enum.Enum):
    PARSED = "parsed"
    VALID = "valid"
    INVALID = "invalid"
    PERSISTED = "persisted"
    PERSIST_FAILED = "persist_failed"


ROW_TRANSITIONS = {
    RowState.PARSED: {RowState.VALID, RowState.INVALID},
    RowState.VALID: {RowState.PERSISTED, RowState.PERSIST_FAILED},
    RowState.INVALID: set(),
    RowState.PERSISTED: set(),
    RowState.PERSIST_FAILED: set(),
}


@dataclass
class ImportRow:
    row: int
    raw: Dict[str, Any]
    state: RowState = RowState.PARSED
    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def advance(self, new_state: RowState) -> None:
        if new_state not in ROW_TRANSITIONS[self.state]:
            raise ValueError(f"Row {self.row}: {self.state.value} -> {new_state.value} not allowed")
        self.state = new_state


@dataclass
class ImportPreview:
    total_rows: int
    valid_medicines: List[Dict[str, Any]]
    errors: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "valid_medicines": self.valid_medicines,
            "errors": self.errors,
        }


@dataclass
class ImportCommitResult:
    imported: int
    failed: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {"imported": self.imported, "failed": self.failed}


# -----------------------------
# Cell parsing
# -----------------------------
def _safe_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    if s.lower() in NA_SET:
        return None
    return s


class OutOfRangeError(ValueError):
    """A well-formed number the database column cannot hold."""


def _parse_decimal(v: Any) -> Optional[Decimal]:
    """
    - accepts 12, 12.50 and thousands-grouped 1,234.50
    - empty/NA -> None
    - exponents, comma decimals (5,50) and anything else -> ValueError
    """
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError(f"Invalid number '{v}'")
    if isinstance(v, (Decimal, int, float)):
        d = v if isinstance(v, Decimal) else Decimal(str(v))
    else:
        s = str(v).strip()
        if s.lower() in NA_SET:
            return None
        if GROUPED_NUMBER_RE.match(s):
            s = s.replace(",", "")
        elif not PLAIN_NUMBER_RE.match(s):
            raise ValueError(f"Invalid number '{v}'")
        try:
            d = Decimal(s)
        except InvalidOperation as e:
            raise ValueError(f"Invalid number '{v}'") from e
    if not d.is_finite():
        raise ValueError(f"Invalid number '{v}'")
    return d


def _parse_int(v: Any) -> Optional[int]:
    d = _parse_decimal(v)
    if d is None:
        return None
    # bound the magnitude before int() expands it
    if d.adjusted() > 9:
        raise OutOfRangeError(f"'{v}' is too large")
    if d != d.to_integral_value():
        raise ValueError(f"'{v}' is not a whole number")
    n = int(d)
    if abs(n) > MAX_INT:
        raise OutOfRangeError(f"'{v}' is too large")
    return n


def _money_problem(d: Decimal) -> Optional[str]:
    if abs(d) >= MONEY_LIMIT:
        return f"must be less than {MONEY_LIMIT:,.0f}"
    if d != d.quantize(Q2):
        return "must have at most 2 decimal places"
    return None


def _is_blank_row(values: Iterable[Any]) -> bool:
    # NA tokens ("-", "N/A") count as content so such rows are reported
    return all(v is None or not str(v).strip() for v in values)


# -----------------------------
# File -> rows
# -----------------------------
def _map_row(headers: List[Optional[str]], values: List[Any]) -> Dict[str, Any]:
    d: Dict[str, Any] = {}
    for j, fld in enumerate(headers):
        if not fld:
            continue
        v = values[j] if j < len(values) else None
        # first non-empty column wins when two headers alias the same field
        if _safe_text(d.get(fld)) is None:
            d[fld] = v
    return d


def parse_upload_to_rows(filename: str, content_type: str,
                         raw: bytes) -> Tuple[str, List[ImportRow]]:
    """
    Returns (file_type, rows) with canonical field keys.
    Supports CSV/TSV/TXT and XLSX; header is row 1, wholly blank rows are dropped.
    """
    name = (filename or "").lower()

    if name.endswith(".xlsx") or content_type == XLSX_CONTENT_TYPE:
        try:
            wb = load_workbook(BytesIO(raw), read_only=True, data_only=True)
        except Exception as e:
            raise ValueError(f"Could not read Excel file: {e}") from e
        ws = wb.active
        grid = [list(r) for r in ws.iter_rows(values_only=True)]
        wb.close()
        return ("xlsx", _rows_from_grid(grid))

    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = raw.decode("latin-1", errors="replace")

    sample = text[:2048]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=[",", "\t", ";", "|"])
        delim = dialect.delimiter
    except csv.Error:
        delim = ","

    grid = [list(r) for r in csv.reader(StringIO(text), delimiter=delim)]
    return ("csv", _rows_from_grid(grid))


def _rows_from_grid(grid: List[List[Any]]) -> List[ImportRow]:
    if not grid:
        return []
    headers = [resolve_header(h) for h in grid[0]]
    if not any(headers):
        raise ValueError("No recognised columns in header row")

    out: List[ImportRow] = []
    for i, values in enumerate(grid[1:], start=2):  # header is row 1
        if _is_blank_row(values):
            continue
        out.append(ImportRow(row=i, raw=_map_row(headers, values)))
    return out


# -----------------------------
# Validation (no DB)
# -----------------------------
def validate_medicine_data(raw: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    One row of canonical fields -> (typed data, errors). Every field is checked
    so the caller sees all problems in the row at once.
    """
    errors: List[str] = []

    name = _safe_text(raw.get("name"))
    if not name:
        errors.append("Medicine name is required")
    elif len(name) > 255:
        errors.append("Medicine name is too long (max 255 characters)")

    category = _safe_text(raw.get("category"))
    if not category:
        errors.append("Category is required")
    elif len(category) > 100:
        errors.append("Category is too long (max 100 characters)")

    unit_price: Optional[Decimal] = None
    try:
        unit_price = _parse_decimal(raw.get("unit_price"))
        if unit_price is None:
            errors.append("Unit price is required")
        elif unit_price < 0:
            errors.append("Unit price cannot be negative")
        elif _money_problem(unit_price):
            errors.append(f"Unit price {_money_problem(unit_price)}")
    except ValueError:
        errors.append(f"Unit price must be a number (got '{raw.get('unit_price')}')")

    buy_price: Optional[Decimal] = None
    try:
        buy_price = _parse_decimal(raw.get("buy_price"))
        if buy_price is not None and buy_price < 0:
            errors.append("Buy price cannot be negative")
        elif buy_price is not None and _money_problem(buy_price):
            errors.append(f"Buy price {_money_problem(buy_price)}")
    except ValueError:
        errors.append(f"Buy price must be a number (got '{raw.get('buy_price')}')")

    stock: Optional[int] = None
    try:
        stock = _parse_int(raw.get("stock_quantity"))
        if stock is None:
            errors.append("Stock quantity is required")
        elif stock < 0:
            errors.append("Stock quantity cannot be negative")
    except OutOfRangeError:
        errors.append(f"Stock quantity must be between 0 and {MAX_INT}")
    except ValueError:
        errors.append(
            f"Stock quantity must be a whole number (got '{raw.get('stock_quantity')}')")

    threshold: Optional[int] = None
    try:
        threshold = _parse_int(raw.get("low_stock_threshold"))
        if threshold is not None and threshold <= 0:
            errors.append("Low stock threshold must be a positive whole number")
    except OutOfRangeError:
        errors.append(f"Low stock threshold must be between 1 and {MAX_INT}")
    except ValueError:
        errors.append("Low stock threshold must be a positive whole number "
                      f"(got '{raw.get('low_stock_threshold')}')")

    if errors:
        return {}, errors

    return {
        "name": name,
        "category": category,
        "unit_price": str(unit_price.quantize(Q2)),
        "buy_price": str((buy_price or Decimal("0")).quantize(Q2)),
        "stock_quantity": stock,
        "low_stock_threshold": threshold or settings.LOW_STOCK_DEFAULT_THRESHOLD,
        "unit": _safe_text(raw.get("unit")) or "pieces",
    }, []


def _raw_for_output(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (None if v is None else str(v)) for k, v in raw.items()}


def validate_medicine_rows(rows: List[ImportRow]) -> ImportPreview:
    valid: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []

    for r in rows:
        data, errs = validate_medicine_data(r.raw)
        if errs:
            r.errors = errs
            r.advance(RowState.INVALID)
            errors.append({"row": r.row, "data": _raw_for_output(r.raw), "errors": errs})
        else:
            r.data = data
            r.advance(RowState.VALID)
            valid.append({"row": r.row, "data": data})

    return ImportPreview(total_rows=len(rows), valid_medicines=valid, errors=errors)


def preview_upload(filename: str, content_type: str, raw: bytes) -> ImportPreview:
    _, rows = parse_upload_to_rows(filename, content_type, raw)
    return validate_medicine_rows(rows)


# -----------------------------
# Persistence
# -----------------------------
def persist_medicines(db: Session, medicines: List[Dict[str, Any]],
                      *, user_id: Optional[int] = None) -> ImportCommitResult:
    """
    medicines: [{"row": n, "data": {...}}] as returned by the preview.
    Each medicine is inserted in its own savepoint; one failure does not block
    the rest.
    """
    imported = 0
    failed: List[Dict[str, Any]] = []
    seen_names = set()

    for idx, entry in enumerate(medicines, start=1):
        row_no = entry.get("row") or idx
        r = ImportRow(row=row_no, raw=dict(entry.get("data") or {}))

        data, errs = validate_medicine_data(r.raw)
        if errs:
            r.advance(RowState.INVALID)
            failed.append({"row": row_no, "name": r.raw.get("name"), "error": "; ".join(errs)})
            continue
        r.data = data
        r.advance(RowState.VALID)

        key = data["name"].lower()
        exists = (db.query(Medicine.id).filter(
            func.lower(Medicine.name) == key).first())
        if exists or key in seen_names:
            r.advance(RowState.PERSIST_FAILED)
            failed.append({
                "row": row_no,
                "name": data["name"],
                "error": f"Medicine '{data['name']}' already exists",
            })
            continue

        try:
            with db.begin_nested():
                db.add(
                    Medicine(
                        name=data["name"],
                        category=data["category"],
                        unit_price=Decimal(data["unit_price"]),
                        buy_price=Decimal(data["buy_price"]),
                        stock_quantity=data["stock_quantity"],
                        low_stock_threshold=data["low_stock_threshold"],
                        unit=data["unit"],
                    ))
                db.flush()
        except Exception:
            # savepoint already rolled back; the batch carries on
            logger.exception("Medicine import row %s (%s) failed", row_no, data["name"])
            r.advance(RowState.PERSIST_FAILED)
            failed.append({"row": row_no, "name": data["name"], "error": "Could not save medicine"})
            continue

        r.advance(RowState.PERSISTED)
        seen_names.add(key)
        imported += 1

    if imported:
        log_activity(
            db,
            type_="medicine",
            title="Medicines imported",
            description=f"{imported} medicine(s) imported, {len(failed)} failed",
            user_id=user_id,
        )
    db.commit()
    logger.info("Medicine import: imported=%s failed=%s", imported, len(failed))
    return ImportCommitResult(imported=imported, failed=failed)


# -----------------------------
# Templates
# -----------------------------
def build_template_csv() -> bytes:
    output = StringIO()
    w = csv.writer(output)
    w.writerow(TEMPLATE_HEADERS)
    w.writerow(TEMPLATE_SAMPLE)
    return output.getvalue().encode("utf-8-sig")


def build_template_xlsx() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Medicines"
    ws.append(TEMPLATE_HEADERS)
    ws.append(TEMPLATE_SAMPLE)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
