"""
Point-of-sale billing for the pharmacy counter.

A :class:`Bill` lives in memory while the cashier builds it.  Every line
keeps the stock level seen when the item was picked and its quantity is
clamped to ``[1, available_stock]``.  Totals are recomputed from the
lines on every read, so there is no stored total to drift.

:func:`commit_bill` writes the bill header, its line items and the stock
decrements.  In strict mode (the default) the three steps share one
transaction; in best-effort mode a failed decrement is logged and
returned as a warning while the bill stays recorded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.conf import settings
from django.utils import timezone

from backoffice.exceptions import (
    DataAccessError,
    DuplicateLineItem,
    EmptyBill,
    BillingError,
    InsufficientStock,
    RowNotFound,
    StockExceeded,
)
from .inventory import set_stock_level
from .numbering import insert_numbered

logger = logging.getLogger(__name__)

WALK_IN_CUSTOMER = 'Walk-in Customer'
HUNDRED = Decimal('100')


def to_decimal(value: Any) -> Decimal:
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal

    def as_payload(self) -> Dict[str, str]:
        return {
            'subtotal': str(self.subtotal),
            'discountAmount': str(self.discount_amount),
            'taxAmount': str(self.tax_amount),
            'total': str(self.total),
        }


@dataclass
class LineItem:
    line_id: int
    inventory_id: Optional[int]
    item_name: str
    quantity: int
    unit_price: Decimal
    available_stock: int
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None

    @property
    def total_price(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass
class CommitResult:
    bill: Dict[str, Any]
    items: List[Dict[str, Any]]
    totals: Totals
    warnings: List[str] = field(default_factory=list)


def _field(item, name: str):
    return item[name] if isinstance(item, Mapping) else getattr(item, name)


def calculate_totals(items: Iterable, discount_percent=0, tax_percent=0) -> Totals:
    """Subtotal, discount, tax and grand total for ``items``.

    Items may be :class:`LineItem` objects or mappings carrying
    ``quantity`` and ``unit_price``.  Percentages are not range checked
    here; :class:`Bill` and the API serializers do that.
    """
    subtotal = sum(
        (int(_field(i, 'quantity')) * to_decimal(_field(i, 'unit_price')) for i in items),
        Decimal('0'),
    )
    discount_amount = subtotal * to_decimal(discount_percent) / HUNDRED
    tax_amount = (subtotal - discount_amount) * to_decimal(tax_percent) / HUNDRED
    return Totals(subtotal, discount_amount, tax_amount, subtotal - discount_amount + tax_amount)


def validate_percent(value, label: str) -> Decimal:
    pct = to_decimal(value)
    if pct < 0 or pct > HUNDRED:
        raise BillingError(f'{label} must be between 0 and 100')
    return pct


def quote(items: Iterable, discount_percent=0, tax_percent=0) -> Totals:
    return calculate_totals(
        items,
        validate_percent(discount_percent, 'discount'),
        validate_percent(tax_percent, 'tax'),
    )


class Bill:
    def __init__(self, patient_name: Optional[str] = None, payment_method: str = 'cash',
                 notes: Optional[str] = None) -> None:
        self.patient_name = patient_name
        self.payment_method = payment_method
        self.notes = notes
        self.clear()

    def clear(self) -> None:
        self.lines: List[LineItem] = []
        self.discount_percent = Decimal('0')
        self.tax_percent = Decimal('0')
        self._next_line_id = 1

    def add_item(self, stock_item: Mapping[str, Any], quantity: int = 1) -> LineItem:
        """Add an inventory row to the bill, rejecting it when stock is short."""
        available = int(stock_item.get('current_stock') or 0)
        if quantity < 1 or quantity > available:
            raise StockExceeded(
                f"only {available} units of {stock_item['item_name']} available, {quantity} requested"
            )
        if any(line.inventory_id == stock_item['id'] for line in self.lines):
            raise DuplicateLineItem(f"{stock_item['item_name']} is already on the bill")
        line = LineItem(
            line_id=self._next_line_id,
            inventory_id=stock_item['id'],
            item_name=stock_item['item_name'],
            quantity=quantity,
            unit_price=to_decimal(stock_item.get('unit_price')),
            available_stock=available,
            batch_number=stock_item.get('batch_number'),
            expiry_date=stock_item.get('expiry_date'),
        )
        self._next_line_id += 1
        self.lines.append(line)
        return line

    def line(self, line_id: int) -> LineItem:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        raise BillingError(f'no line {line_id} on this bill')

    def set_quantity(self, line_id: int, quantity: int) -> LineItem:
        line = self.line(line_id)
        line.quantity = max(1, min(quantity, line.available_stock))
        return line

    def change_quantity(self, line_id: int, delta: int) -> LineItem:
        return self.set_quantity(line_id, self.line(line_id).quantity + delta)

    def remove_item(self, line_id: int) -> None:
        self.lines.remove(self.line(line_id))

    def set_discount(self, percent) -> None:
        self.discount_percent = validate_percent(percent, 'discount')

    def set_tax(self, percent) -> None:
        self.tax_percent = validate_percent(percent, 'tax')

    @property
    def totals(self) -> Totals:
        return calculate_totals(self.lines, self.discount_percent, self.tax_percent)


def search_stock(store, query: str) -> List[Dict[str, Any]]:
    q = (query or '').strip()
    if len(q) < 2:
        return []
    return store.fetch_rows(
        'inventory',
        {'item_name__icontains': q, 'current_stock__gt': 0},
        order=['item_name'],
        limit=10,
    )


def build_bill(store, lines: Iterable[Mapping[str, Any]], *, discount_percent=0, tax_percent=0,
               patient_name=None, payment_method='cash', notes=None) -> Bill:
    """Rebuild a bill from ``{inventory_id, quantity}`` pairs using current stock rows."""
    lines = list(lines)
    ids = [line['inventory_id'] for line in lines]
    rows = {row['id']: row for row in store.fetch_rows('inventory', {'id__in': ids})}
    bill = Bill(patient_name=patient_name, payment_method=payment_method, notes=notes)
    for line in lines:
        row = rows.get(line['inventory_id'])
        if row is None:
            raise RowNotFound('inventory', line['inventory_id'])
        bill.add_item(row, line['quantity'])
    bill.set_discount(discount_percent)
    bill.set_tax(tax_percent)
    return bill


def _decrement_stock(store, line: LineItem) -> None:
    rows = store.fetch_rows('inventory', {'id': line.inventory_id})
    if not rows:
        raise RowNotFound('inventory', line.inventory_id)
    item = rows[0]
    if item['current_stock'] < line.quantity:
        raise InsufficientStock(line.item_name, item['current_stock'], line.quantity)
    set_stock_level(store, item, item['current_stock'] - line.quantity)


def _write_bill(store, bill: Bill, totals: Totals, user_id) -> tuple:
    header = insert_numbered(store, 'pharmacy_bills', 'bill_number', 'PB', timezone.localdate(), {
        'patient_name': bill.patient_name or WALK_IN_CUSTOMER,
        'subtotal': totals.subtotal,
        'discount_percent': bill.discount_percent,
        'discount_amount': totals.discount_amount,
        'tax_percent': bill.tax_percent,
        'tax_amount': totals.tax_amount,
        'total_amount': totals.total,
        'payment_method': bill.payment_method,
        'payment_status': 'paid',
        'notes': bill.notes,
        'created_by_id': user_id,
    })
    items = store.insert_rows('pharmacy_bill_items', [
        {
            'bill_id': header['id'],
            'inventory_id': line.inventory_id,
            'item_name': line.item_name,
            'batch_number': line.batch_number,
            'expiry_date': line.expiry_date,
            'quantity': line.quantity,
            'unit_price': line.unit_price,
            'total_price': line.total_price,
        }
        for line in bill.lines
    ])
    return header, items


def commit_bill(store, bill: Bill, user_id=None, strict: Optional[bool] = None) -> CommitResult:
    if not bill.lines:
        raise EmptyBill('cannot complete an empty bill')
    if strict is None:
        strict = settings.BILLING_STRICT_COMMIT
    totals = bill.totals
    warnings: List[str] = []

    if strict:
        with store.atomic():
            header, items = _write_bill(store, bill, totals, user_id)
            for line in bill.lines:
                _decrement_stock(store, line)
    else:
        header, items = _write_bill(store, bill, totals, user_id)
        for line in bill.lines:
            try:
                _decrement_stock(store, line)
            except DataAccessError as exc:
                logger.warning('bill %s: stock not updated for %s: %s', header['bill_number'], line.item_name, exc)
                warnings.append(f'{line.item_name}: {exc}')

    logger.info('bill %s completed: %d line(s), total %s', header['bill_number'], len(items), totals.total)
    bill.clear()
    return CommitResult(bill=header, items=items, totals=totals, warnings=warnings)


def list_bills(store, limit: int = 50) -> List[Dict[str, Any]]:
    return store.fetch_rows('pharmacy_bills', order=['-id'], limit=limit)


def bill_detail(store, bill_id: int) -> Dict[str, Any]:
    rows = store.fetch_rows('pharmacy_bills', {'id': bill_id})
    if not rows:
        raise RowNotFound('pharmacy_bills', bill_id)
    bill = rows[0]
    bill['items'] = store.fetch_rows('pharmacy_bill_items', {'bill_id': bill_id}, order=['id'])
    return bill
