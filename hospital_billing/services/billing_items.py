# hospital_billing/services/billing_items.py
"""
Billable lines before they are posted to an invoice.

Each item type is its own frozen dataclass carrying the reference it needs:

    MedicineCharge        -> medicine_id   (dispensing decrements stock)
    RoomCharge            -> room_id       (one line per occupied day)
    MedicalServiceCharge  -> service_id    (catalogue service)
    CustomServiceCharge   -> no reference  (free-text service, admission fee)

InvoiceItemBuilder collects lines and hands out an immutable tuple on
build(); nothing downstream edits a posted line in place.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from hospital_billing.models.billing import InvoiceItem, ItemType
from hospital_billing.services.billing_math import line_total, money2
from hospital_billing.services.errors import ValidationError


@dataclass(frozen=True)
class MedicineCharge:
    medicine_id: int
    name: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class RoomCharge:
    room_id: int
    name: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class MedicalServiceCharge:
    service_id: int
    name: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class CustomServiceCharge:
    name: str
    quantity: int
    unit_price: Decimal


ChargeLine = Union[MedicineCharge, RoomCharge, MedicalServiceCharge,
                   CustomServiceCharge]


def item_type_of(line: ChargeLine) -> ItemType:
    if isinstance(line, MedicineCharge):
        return ItemType.MEDICINE
    if isinstance(line, RoomCharge):
        return ItemType.ROOM
    if isinstance(line, MedicalServiceCharge):
        return ItemType.MEDICAL_SERVICE
    if isinstance(line, CustomServiceCharge):
        return ItemType.SERVICE
    raise TypeError(f"Unknown charge line {type(line).__name__}")


def reference_of(line: ChargeLine) -> Optional[int]:
    if isinstance(line, MedicineCharge):
        return line.medicine_id
    if isinstance(line, RoomCharge):
        return line.room_id
    if isinstance(line, MedicalServiceCharge):
        return line.service_id
    if isinstance(line, CustomServiceCharge):
        return None
    raise TypeError(f"Unknown charge line {type(line).__name__}")


def charge_line_from_input(
    item_type: str,
    *,
    name: str,
    quantity: int,
    unit_price,
    ref_id: Optional[int] = None,
) -> ChargeLine:
    """
    Builds the variant for an API payload row (item_type tag + optional ref).
    """
    try:
        kind = ItemType(item_type)
    except ValueError:
        raise ValidationError(f"Unknown item type '{item_type}'",
                              details={"item_type": item_type})

    price = money2(unit_price)
    if kind == ItemType.SERVICE:
        return CustomServiceCharge(name=name, quantity=quantity, unit_price=price)

    if ref_id is None:
        raise ValidationError(f"{kind.value} item '{name}' needs a reference id",
                              details={"item_type": kind.value})
    if kind == ItemType.MEDICINE:
        return MedicineCharge(medicine_id=ref_id, name=name, quantity=quantity,
                              unit_price=price)
    if kind == ItemType.ROOM:
        return RoomCharge(room_id=ref_id, name=name, quantity=quantity,
                          unit_price=price)
    return MedicalServiceCharge(service_id=ref_id, name=name, quantity=quantity,
                                unit_price=price)


def to_invoice_item(line: ChargeLine) -> InvoiceItem:
    price = money2(line.unit_price)
    return InvoiceItem(
        item_type=item_type_of(line).value,
        item_ref_id=reference_of(line),
        item_name=line.name,
        quantity=int(line.quantity),
        unit_price=price,
        total_price=line_total(line.quantity, price),
    )


class InvoiceItemBuilder:
    def __init__(self) -> None:
        self._lines: List[ChargeLine] = []

    def add(self, line: ChargeLine) -> "InvoiceItemBuilder":
        name = (line.name or "").strip()
        if not name:
            raise ValidationError("Item name is required")
        if int(line.quantity) <= 0:
            raise ValidationError(f"Quantity for '{name}' must be at least 1")
        if money2(line.unit_price) < 0:
            raise ValidationError(f"Unit price for '{name}' cannot be negative")
        self._lines.append(line)
        return self

    def medicine(self, medicine_id: int, name: str, quantity: int,
                 unit_price) -> "InvoiceItemBuilder":
        return self.add(
            MedicineCharge(medicine_id, name, quantity, money2(unit_price)))

    def room_day(self, room_id: int, name: str,
                 daily_rate) -> "InvoiceItemBuilder":
        return self.add(RoomCharge(room_id, name, 1, money2(daily_rate)))

    def medical_service(self, service_id: int, name: str, quantity: int,
                        unit_price) -> "InvoiceItemBuilder":
        return self.add(
            MedicalServiceCharge(service_id, name, quantity, money2(unit_price)))

    def service(self, name: str, quantity: int,
                unit_price) -> "InvoiceItemBuilder":
        return self.add(CustomServiceCharge(name, quantity, money2(unit_price)))

    def __len__(self) -> int:
        return len(self._lines)

    def build(self) -> Tuple[ChargeLine, ...]:
        return tuple(self._lines)
