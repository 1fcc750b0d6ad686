from datetime import date
from decimal import Decimal

import pytest

from backoffice.data_access import InMemoryDataAccess, OrmDataAccess, get_data_access
from backoffice.exceptions import DataAccessError, IntegrityConflict, RowNotFound, UnknownTable


@pytest.fixture(params=['memory', 'orm'])
def any_store(request):
    if request.param == 'orm':
        request.getfixturevalue('db')
        return OrmDataAccess()
    return InMemoryDataAccess()


def seed(store):
    return [
        store.insert_row('inventory', {'item_name': 'Amoxicillin', 'current_stock': 0, 'minimum_stock': 5}),
        store.insert_row('inventory', {'item_name': 'Paracetamol', 'current_stock': 40, 'minimum_stock': 5,
                                       'expiry_date': date(2030, 1, 1), 'unit_price': Decimal('0.50')}),
        store.insert_row('inventory', {'item_name': 'paracetamol syrup', 'current_stock': 3, 'minimum_stock': 5}),
    ]


def names(rows):
    return [r['item_name'] for r in rows]


def test_insert_returns_row_with_id(any_store):
    row = any_store.insert_row('suppliers', {'name': 'MediSupply'})
    assert row['id'] and row['name'] == 'MediSupply'


def test_lookups(any_store):
    seed(any_store)
    assert names(any_store.fetch_rows('inventory', {'item_name__icontains': 'PARA'}, order=['item_name'])) == \
        ['Paracetamol', 'paracetamol syrup']
    assert names(any_store.fetch_rows('inventory', {'current_stock__gt': 0, 'current_stock__lte': 3})) == \
        ['paracetamol syrup']
    assert names(any_store.fetch_rows('inventory', {'expiry_date__isnull': False})) == ['Paracetamol']
    assert names(any_store.fetch_rows('inventory', {'item_name__startswith': 'Amox'})) == ['Amoxicillin']


def test_order_and_limit(any_store):
    seed(any_store)
    rows = any_store.fetch_rows('inventory', order=['-current_stock'], limit=2)
    assert [r['current_stock'] for r in rows] == [40, 3]


def test_update_and_delete_unknown_rows(any_store):
    with pytest.raises(RowNotFound):
        any_store.update_row('inventory', 12345, {'current_stock': 1})
    with pytest.raises(RowNotFound):
        any_store.delete_row('inventory', 12345)


def test_atomic_rolls_back(any_store):
    first, *_ = seed(any_store)
    with pytest.raises(RuntimeError):
        with any_store.atomic():
            any_store.update_row('inventory', first['id'], {'current_stock': 99})
            any_store.insert_row('suppliers', {'name': 'Ghost'})
            raise RuntimeError('boom')
    assert any_store.fetch_rows('inventory', {'id': first['id']})[0]['current_stock'] == 0
    assert any_store.fetch_rows('suppliers') == []


def test_unique_conflict_leaves_transaction_usable(any_store):
    with any_store.atomic():
        any_store.insert_row('pharmacy_bills', {'bill_number': 'PB-20250101-0001'})
        with pytest.raises(IntegrityConflict):
            any_store.insert_row('pharmacy_bills', {'bill_number': 'PB-20250101-0001'})
        any_store.insert_row('pharmacy_bills', {'bill_number': 'PB-20250101-0002'})
    numbers = sorted(r['bill_number'] for r in any_store.fetch_rows('pharmacy_bills'))
    assert numbers == ['PB-20250101-0001', 'PB-20250101-0002']


def test_on_commit_waits_for_outermost_block(store):
    calls = []
    with store.atomic():
        with store.atomic():
            store.on_commit(lambda: calls.append('kept'))
        assert calls == []
    assert calls == ['kept']

    with pytest.raises(RuntimeError):
        with store.atomic():
            store.on_commit(lambda: calls.append('dropped'))
            raise RuntimeError('boom')
    assert calls == ['kept']

    store.on_commit(lambda: calls.append('now'))
    assert calls == ['kept', 'now']


@pytest.mark.django_db
def test_orm_on_commit_follows_the_transaction(django_capture_on_commit_callbacks):
    calls = []
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        OrmDataAccess().on_commit(lambda: calls.append(1))
        assert calls == []
    assert len(callbacks) == 1
    assert calls == [1]


def test_unknown_table(any_store):
    with pytest.raises(UnknownTable):
        any_store.fetch_rows('patients')


def test_in_memory_rejects_unknown_lookup(store):
    with pytest.raises(DataAccessError):
        store.fetch_rows('inventory', {'item_name__regex': '.*'})


def test_configured_store(settings):
    settings.HMS_DATA_ACCESS = 'backoffice.data_access.InMemoryDataAccess'
    assert isinstance(get_data_access(), InMemoryDataAccess)
