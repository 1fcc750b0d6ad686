from decimal import Decimal

import pytest
from django.utils import timezone

from backoffice.data_access import InMemoryDataAccess
from backoffice.exceptions import (
    BillingError,
    DuplicateLineItem,
    EmptyBill,
    InsufficientStock,
    IntegrityConflict,
    StockExceeded,
)
from backoffice.services.billing import (
    Bill,
    build_bill,
    calculate_totals,
    commit_bill,
    quote,
    search_stock,
)


def stock(store, name, current_stock, unit_price='10.00', **extra):
    return store.insert_row('inventory', {
        'item_name': name, 'current_stock': current_stock, 'minimum_stock': 5,
        'unit_price': Decimal(unit_price), **extra,
    })


def test_totals_for_discounted_taxed_bill():
    items = [{'quantity': 2, 'unit_price': 10}, {'quantity': 1, 'unit_price': 5}]
    t = calculate_totals(items, 10, 5)
    assert t.subtotal == Decimal('25')
    assert t.discount_amount == Decimal('2.5')
    assert t.subtotal - t.discount_amount == Decimal('22.5')
    assert t.tax_amount == Decimal('1.125')
    assert t.total == Decimal('23.625')


@pytest.mark.parametrize('items,discount,tax', [
    ([], 0, 0),
    ([{'quantity': 3, 'unit_price': '0.10'}], 12.5, 7),
    ([{'quantity': 7, 'unit_price': '19.99'}, {'quantity': 1, 'unit_price': '0.01'}], 33, 18),
    ([{'quantity': 1000, 'unit_price': '123.45'}], 100, 100),
])
def test_total_is_subtotal_minus_discount_plus_tax(items, discount, tax):
    t = calculate_totals(items, discount, tax)
    assert t.total == t.subtotal - t.discount_amount + t.tax_amount


def test_zero_percentages_leave_subtotal():
    t = calculate_totals([{'quantity': 4, 'unit_price': '2.75'}], 0, 0)
    assert t.total == t.subtotal == Decimal('11.00')


def test_quote_rejects_out_of_range_percent():
    with pytest.raises(BillingError):
        quote([{'quantity': 1, 'unit_price': 1}], discount_percent=120)
    with pytest.raises(BillingError):
        quote([{'quantity': 1, 'unit_price': 1}], tax_percent=-1)


def test_add_item_over_stock_is_rejected_and_bill_unchanged(store):
    row = stock(store, 'Paracetamol', 3)
    bill = Bill()
    bill.add_item(stock(store, 'Ibuprofen', 10), 2)
    before = (list(bill.lines), bill.totals)
    with pytest.raises(StockExceeded):
        bill.add_item(row, 4)
    assert (bill.lines, bill.totals) == before


def test_duplicate_item_is_rejected(store):
    row = stock(store, 'Paracetamol', 3)
    bill = Bill()
    bill.add_item(row, 1)
    with pytest.raises(DuplicateLineItem):
        bill.add_item(row, 1)


def test_quantity_changes_are_clamped_to_stock(store):
    bill = Bill()
    line = bill.add_item(stock(store, 'Paracetamol', 3), 1)
    bill.change_quantity(line.line_id, 10)
    assert line.quantity == 3
    bill.change_quantity(line.line_id, -10)
    assert line.quantity == 1
    bill.set_quantity(line.line_id, 2)
    assert bill.totals.subtotal == Decimal('20.00')


def test_totals_follow_every_mutation(store):
    bill = Bill()
    a = bill.add_item(stock(store, 'A item', 5, '10.00'), 2)
    bill.add_item(stock(store, 'B item', 5, '5.00'), 1)
    bill.set_discount(10)
    bill.set_tax(5)
    assert bill.totals.total == Decimal('23.625')
    bill.remove_item(a.line_id)
    assert bill.totals.subtotal == Decimal('5.00')
    with pytest.raises(BillingError):
        bill.set_discount(101)
    assert bill.discount_percent == Decimal('10')


def test_search_stock_needs_two_characters_and_stock(store):
    stock(store, 'Paracetamol 500mg', 10)
    stock(store, 'Paracetamol syrup', 0)
    stock(store, 'Amoxicillin', 4)
    assert search_stock(store, 'p') == []
    names = [r['item_name'] for r in search_stock(store, 'PARA')]
    assert names == ['Paracetamol 500mg']


def test_search_stock_limits_to_ten_rows_by_name(store):
    for i in range(12):
        stock(store, f'Vitamin {chr(76 - i)}', 1)
    rows = search_stock(store, 'vitamin')
    assert len(rows) == 10
    assert [r['item_name'] for r in rows] == sorted(r['item_name'] for r in rows)


def test_commit_writes_header_items_and_decrements_stock(store):
    a = stock(store, 'Paracetamol', 10, '10.00')
    b = stock(store, 'Ibuprofen', 5, '5.00')
    bill = build_bill(store, [{'inventory_id': a['id'], 'quantity': 2}, {'inventory_id': b['id'], 'quantity': 1}],
                      discount_percent=10, tax_percent=5)
    result = commit_bill(store, bill, user_id=7)

    assert result.warnings == []
    assert result.bill['bill_number'].startswith('PB-')
    assert result.bill['bill_number'].endswith('-0001')
    assert result.bill['patient_name'] == 'Walk-in Customer'
    assert result.bill['payment_status'] == 'paid'
    assert result.bill['total_amount'] == Decimal('23.625')
    assert [i['quantity'] for i in result.items] == [2, 1]
    assert store.fetch_rows('inventory', {'id': a['id']})[0]['current_stock'] == 8
    assert store.fetch_rows('inventory', {'id': b['id']})[0]['current_stock'] == 4
    assert bill.lines == []


def test_commit_numbers_bills_sequentially(store):
    row = stock(store, 'Paracetamol', 10)
    numbers = []
    for _ in range(2):
        bill = Bill()
        bill.add_item(store.fetch_rows('inventory', {'id': row['id']})[0], 1)
        numbers.append(commit_bill(store, bill).bill['bill_number'])
    assert numbers[0].endswith('-0001') and numbers[1].endswith('-0002')


class ConcurrentTill(InMemoryDataAccess):
    """Hides existing bill numbers from the first ``stale_reads`` lookups,
    as if another till had just taken them."""

    def __init__(self, stale_reads):
        super().__init__()
        self.stale_reads = stale_reads

    def fetch_rows(self, table, filter=None, *args, **kwargs):
        if self.stale_reads and filter and 'bill_number__startswith' in filter:
            self.stale_reads -= 1
            return []
        return super().fetch_rows(table, filter, *args, **kwargs)


def sell_one(store, row):
    bill = Bill()
    bill.add_item(store.fetch_rows('inventory', {'id': row['id']})[0], 1)
    return commit_bill(store, bill, strict=True)


def test_commit_renumbers_when_number_was_just_taken():
    store = ConcurrentTill(stale_reads=1)
    taken = f'PB-{timezone.localdate():%Y%m%d}-0001'
    store.insert_row('pharmacy_bills', {'bill_number': taken})
    row = stock(store, 'Paracetamol', 10)

    result = sell_one(store, row)
    assert result.bill['bill_number'].endswith('-0002')
    assert len(store.fetch_rows('pharmacy_bills')) == 2
    assert store.fetch_rows('inventory', {'id': row['id']})[0]['current_stock'] == 9


def test_commit_gives_up_after_repeated_number_conflicts():
    store = ConcurrentTill(stale_reads=100)
    store.insert_row('pharmacy_bills', {'bill_number': f'PB-{timezone.localdate():%Y%m%d}-0001'})
    row = stock(store, 'Paracetamol', 10)

    with pytest.raises(IntegrityConflict):
        sell_one(store, row)
    assert len(store.fetch_rows('pharmacy_bills')) == 1
    assert store.fetch_rows('inventory', {'id': row['id']})[0]['current_stock'] == 10


def test_empty_bill_is_rejected(store):
    with pytest.raises(EmptyBill):
        commit_bill(store, Bill())


def test_strict_commit_rolls_back_when_stock_ran_out(store):
    a = stock(store, 'Paracetamol', 10)
    b = stock(store, 'Ibuprofen', 5)
    bill = Bill()
    bill.add_item(a, 2)
    bill.add_item(b, 5)
    # another till sold most of the ibuprofen in the meantime
    store.update_row('inventory', b['id'], {'current_stock': 1})

    with pytest.raises(InsufficientStock):
        commit_bill(store, bill, strict=True)

    assert store.fetch_rows('pharmacy_bills') == []
    assert store.fetch_rows('pharmacy_bill_items') == []
    assert store.fetch_rows('inventory', {'id': a['id']})[0]['current_stock'] == 10
    assert len(bill.lines) == 2


def test_best_effort_commit_keeps_bill_and_reports_warnings(store):
    a = stock(store, 'Paracetamol', 10)
    b = stock(store, 'Ibuprofen', 5)
    bill = Bill()
    bill.add_item(a, 2)
    bill.add_item(b, 5)
    store.delete_row('inventory', b['id'])

    result = commit_bill(store, bill, strict=False)

    assert len(result.warnings) == 1 and result.warnings[0].startswith('Ibuprofen')
    assert len(store.fetch_rows('pharmacy_bills')) == 1
    assert len(store.fetch_rows('pharmacy_bill_items')) == 2
    assert store.fetch_rows('inventory', {'id': a['id']})[0]['current_stock'] == 8


def test_stock_status_follows_decrement(store):
    row = stock(store, 'Paracetamol', 6)
    bill = Bill()
    bill.add_item(row, 6)
    commit_bill(store, bill)
    assert store.fetch_rows('inventory', {'id': row['id']})[0]['status'] == 'out_of_stock'
