"""
Row-level data access used by the back-office services.

Services receive a store object instead of talking to the ORM directly,
so that they can run against the database in production and against an
in-memory fake in tests.  Both stores speak the same small vocabulary:

* ``fetch_rows(table, filter, order, limit)`` returns a list of dicts
* ``insert_row(table, row)`` returns the stored row including its ``id``
* ``insert_rows(table, rows)`` inserts several rows in order
* ``update_row(table, id, patch)`` / ``delete_row(table, id)``
* ``atomic()`` groups writes so that they commit together or not at all
* ``on_commit(func)`` runs ``func`` once the surrounding ``atomic()`` commits

Filters are Django-style: ``{'current_stock__gt': 0}``.  Only the
lookups listed in :data:`LOOKUPS` are understood by the fake.
"""
from __future__ import annotations

import copy
import itertools
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from django.apps import apps
from django.conf import settings
from django.core.exceptions import FieldError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils.module_loading import import_string

from .exceptions import DataAccessError, IntegrityConflict, RowNotFound, UnknownTable

TABLES = {
    'inventory': 'backoffice.InventoryItem',
    'pharmacy_bills': 'backoffice.PharmacyBill',
    'pharmacy_bill_items': 'backoffice.PharmacyBillItem',
    'suppliers': 'backoffice.Supplier',
    'purchase_orders': 'backoffice.PurchaseOrder',
    'purchase_order_items': 'backoffice.PurchaseOrderItem',
    'staff_schedules': 'backoffice.StaffSchedule',
    'appointments': 'backoffice.Appointment',
}

# columns the in-memory store keeps unique, mirroring the model constraints
UNIQUE_FIELDS = {
    'pharmacy_bills': ('bill_number',),
    'purchase_orders': ('po_number',),
}

LOOKUPS = ('exact', 'gt', 'gte', 'lt', 'lte', 'in', 'icontains', 'startswith', 'isnull')

Row = Dict[str, Any]


def get_data_access():
    """Instantiate the store configured by ``HMS_DATA_ACCESS``."""
    return import_string(settings.HMS_DATA_ACCESS)()


class OrmDataAccess:
    """Store backed by the Django ORM."""

    def _model(self, table: str):
        try:
            return apps.get_model(TABLES[table])
        except KeyError:
            raise UnknownTable(table) from None

    def fetch_rows(self, table: str, filter: Optional[Row] = None,
                   order: Optional[List[str]] = None, limit: Optional[int] = None) -> List[Row]:
        model = self._model(table)
        try:
            qs = model.objects.filter(**(filter or {}))
            if order:
                qs = qs.order_by(*order)
            if limit:
                qs = qs[:limit]
            return list(qs.values())
        except (DatabaseError, FieldError) as exc:
            raise DataAccessError(f'fetch from {table} failed: {exc}') from exc

    def insert_row(self, table: str, row: Row) -> Row:
        model = self._model(table)
        try:
            # savepoint, so a conflict leaves an enclosing atomic block usable
            with transaction.atomic():
                obj = model.objects.create(**row)
            return model.objects.filter(pk=obj.pk).values().get()
        except IntegrityError as exc:
            raise IntegrityConflict(f'insert into {table} conflicts: {exc}') from exc
        except (DatabaseError, FieldError, TypeError) as exc:
            raise DataAccessError(f'insert into {table} failed: {exc}') from exc

    def insert_rows(self, table: str, rows: Iterable[Row]) -> List[Row]:
        with self.atomic():
            return [self.insert_row(table, row) for row in rows]

    def update_row(self, table: str, row_id, patch: Row) -> None:
        try:
            updated = self._model(table).objects.filter(pk=row_id).update(**patch)
        except (DatabaseError, FieldError) as exc:
            raise DataAccessError(f'update of {table} row {row_id} failed: {exc}') from exc
        if not updated:
            raise RowNotFound(table, row_id)

    def delete_row(self, table: str, row_id) -> None:
        try:
            deleted, _ = self._model(table).objects.filter(pk=row_id).delete()
        except DatabaseError as exc:
            raise DataAccessError(f'delete of {table} row {row_id} failed: {exc}') from exc
        if not deleted:
            raise RowNotFound(table, row_id)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with transaction.atomic():
            yield

    def on_commit(self, func: Callable[[], None]) -> None:
        transaction.on_commit(func)


def _matches(value: Any, lookup: str, expected: Any) -> bool:
    if lookup == 'exact':
        return value == expected
    if lookup == 'isnull':
        return (value is None) == bool(expected)
    if lookup == 'in':
        return value in expected
    if value is None:
        return False
    if lookup == 'icontains':
        return str(expected).lower() in str(value).lower()
    if lookup == 'startswith':
        return str(value).startswith(str(expected))
    if lookup == 'gt':
        return value > expected
    if lookup == 'gte':
        return value >= expected
    if lookup == 'lt':
        return value < expected
    if lookup == 'lte':
        return value <= expected
    raise DataAccessError(f'unsupported lookup {lookup}')


class InMemoryDataAccess:
    """Dict-backed store with the same contract as :class:`OrmDataAccess`."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[Any, Row]] = defaultdict(dict)
        self._ids = defaultdict(lambda: itertools.count(1))
        self._depth = 0
        self._pending: List[Callable[[], None]] = []

    def _table(self, table: str) -> Dict[Any, Row]:
        if table not in TABLES:
            raise UnknownTable(table)
        return self.tables[table]

    def seed(self, table: str, rows: Iterable[Row]) -> List[Row]:
        return [self.insert_row(table, row) for row in rows]

    def fetch_rows(self, table: str, filter: Optional[Row] = None,
                   order: Optional[List[str]] = None, limit: Optional[int] = None) -> List[Row]:
        conditions = []
        for key, expected in (filter or {}).items():
            field, _, lookup = key.partition('__')
            lookup = lookup or 'exact'
            if lookup not in LOOKUPS:
                raise DataAccessError(f'unsupported lookup {lookup}')
            conditions.append((field, lookup, expected))
        rows = [
            dict(row) for row in self._table(table).values()
            if all(_matches(row.get(f), lk, exp) for f, lk, exp in conditions)
        ]
        for key in reversed(order or []):
            field = key.lstrip('-')
            rows.sort(key=lambda r: (r.get(field) is not None, r.get(field)), reverse=key.startswith('-'))
        return rows[:limit] if limit else rows

    def insert_row(self, table: str, row: Row) -> Row:
        stored = dict(row)
        rows = self._table(table)
        for field in UNIQUE_FIELDS.get(table, ()):
            value = stored.get(field)
            if value is not None and any(r.get(field) == value for r in rows.values()):
                raise IntegrityConflict(f'insert into {table} conflicts: {field} {value!r} exists')
        if stored.get('id') is None:
            stored['id'] = next(self._ids[table])
            while stored['id'] in rows:
                stored['id'] = next(self._ids[table])
        rows[stored['id']] = stored
        return dict(stored)

    def insert_rows(self, table: str, rows: Iterable[Row]) -> List[Row]:
        with self.atomic():
            return [self.insert_row(table, row) for row in rows]

    def update_row(self, table: str, row_id, patch: Row) -> None:
        rows = self._table(table)
        if row_id not in rows:
            raise RowNotFound(table, row_id)
        rows[row_id].update(patch)

    def delete_row(self, table: str, row_id) -> None:
        rows = self._table(table)
        if row_id not in rows:
            raise RowNotFound(table, row_id)
        del rows[row_id]

    @contextmanager
    def atomic(self) -> Iterator[None]:
        snapshot = copy.deepcopy(dict(self.tables))
        queued = len(self._pending)
        self._depth += 1
        try:
            yield
        except BaseException:
            self.tables.clear()
            self.tables.update(snapshot)
            del self._pending[queued:]
            raise
        finally:
            self._depth -= 1
        if not self._depth:
            callbacks, self._pending = self._pending, []
            for func in callbacks:
                func()

    def on_commit(self, func: Callable[[], None]) -> None:
        if self._depth:
            self._pending.append(func)
        else:
            func()
