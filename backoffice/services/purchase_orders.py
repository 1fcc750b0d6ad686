"""
Purchase order lifecycle.

Orders only move forward::

    draft -> submitted -> approved -> received
      \\________\\___________\\-> cancelled

``received`` and ``cancelled`` are terminal.  Transitions are checked
against the stored status at the moment of the write; two operators
editing the same order race and the last write wins.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.utils import timezone

from backoffice.exceptions import InvalidTransition, RowNotFound
from .billing import to_decimal
from .inventory import set_stock_level
from .numbering import insert_numbered

logger = logging.getLogger(__name__)

STATUSES = ('draft', 'submitted', 'approved', 'received', 'cancelled')

TRANSITIONS = {
    'draft': {'submitted', 'cancelled'},
    'submitted': {'approved', 'cancelled'},
    'approved': {'received', 'cancelled'},
    'received': set(),
    'cancelled': set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


def order_total(items: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((int(i['quantity']) * to_decimal(i['unit_price']) for i in items), Decimal('0'))


def get_order(store, order_id: int) -> Dict[str, Any]:
    rows = store.fetch_rows('purchase_orders', {'id': order_id})
    if not rows:
        raise RowNotFound('purchase_orders', order_id)
    order = rows[0]
    order['items'] = store.fetch_rows('purchase_order_items', {'purchase_order_id': order_id}, order=['id'])
    return order


def list_orders(store, status: Optional[str] = None) -> List[Dict[str, Any]]:
    return store.fetch_rows('purchase_orders', {'status': status} if status else None, order=['-id'])


def create_order(store, supplier_id: int, items: List[Mapping[str, Any]],
                 expected_delivery: Optional[date] = None, notes: Optional[str] = None,
                 user_id: Optional[int] = None) -> Dict[str, Any]:
    if not items:
        raise ValueError('a purchase order needs at least one item')
    if not store.fetch_rows('suppliers', {'id': supplier_id}):
        raise RowNotFound('suppliers', supplier_id)
    linked = {item['inventory_item_id'] for item in items if item.get('inventory_item_id')}
    if linked:
        known = {row['id'] for row in store.fetch_rows('inventory', {'id__in': sorted(linked)})}
        missing = sorted(linked - known)
        if missing:
            raise RowNotFound('inventory', missing[0])
    with store.atomic():
        order = insert_numbered(store, 'purchase_orders', 'po_number', 'PO', timezone.localdate(), {
            'supplier_id': supplier_id,
            'status': 'draft',
            'expected_delivery': expected_delivery,
            'total_amount': order_total(items),
            'notes': notes,
            'created_by_id': user_id,
        })
        order['items'] = store.insert_rows('purchase_order_items', [
            {
                'purchase_order_id': order['id'],
                'inventory_item_id': item.get('inventory_item_id'),
                'item_name': item['item_name'],
                'quantity': int(item['quantity']),
                'unit_price': to_decimal(item['unit_price']),
                'total_price': int(item['quantity']) * to_decimal(item['unit_price']),
                'received_quantity': 0,
                'status': 'pending',
            }
            for item in items
        ])
    logger.info('purchase order %s created with %d item(s)', order['po_number'], len(items))
    return order


def update_order_status(store, order_id: int, new_status: str, user_id: Optional[int] = None) -> Dict[str, Any]:
    rows = store.fetch_rows('purchase_orders', {'id': order_id})
    if not rows:
        raise RowNotFound('purchase_orders', order_id)
    current = rows[0]['status']
    if not can_transition(current, new_status):
        raise InvalidTransition(current, new_status)

    patch: Dict[str, Any] = {'status': new_status, 'updated_at': timezone.now()}
    if new_status == 'approved':
        patch['approved_by_id'] = user_id
        patch['approved_at'] = timezone.now()
    elif new_status == 'received':
        patch['actual_delivery'] = timezone.localdate()
    store.update_row('purchase_orders', order_id, patch)
    logger.info('purchase order %s: %s -> %s', order_id, current, new_status)
    return {**rows[0], **patch}


def _item_status(ordered: int, received: int) -> str:
    if received >= ordered:
        return 'received'
    if received > 0:
        return 'partial'
    return 'pending'


def receive_order(store, order_id: int, received: Iterable[Mapping[str, Any]],
                  user_id: Optional[int] = None) -> Dict[str, Any]:
    """Book delivered quantities into stock and close the order.

    ``received`` is a list of ``{item_id, received_quantity}`` naming each
    order line at most once.  Linked inventory rows have their stock
    increased and ``last_restocked`` set.
    """
    received = list(received)
    repeated = [i for i, n in Counter(e['item_id'] for e in received).items() if n > 1]
    if repeated:
        raise ValueError(f'order line {repeated[0]} is listed more than once')
    with store.atomic():
        order = get_order(store, order_id)
        if not can_transition(order['status'], 'received'):
            raise InvalidTransition(order['status'], 'received')
        items = {item['id']: item for item in order['items']}
        today = timezone.localdate()
        for entry in received:
            item = items.get(entry['item_id'])
            if item is None:
                raise RowNotFound('purchase_order_items', entry['item_id'])
            qty = int(entry['received_quantity'])
            store.update_row('purchase_order_items', item['id'], {
                'received_quantity': qty,
                'status': _item_status(item['quantity'], qty),
            })
            if item.get('inventory_item_id') and qty > 0:
                stock = store.fetch_rows('inventory', {'id': item['inventory_item_id']})
                if not stock:
                    raise RowNotFound('inventory', item['inventory_item_id'])
                set_stock_level(store, stock[0], stock[0]['current_stock'] + qty, last_restocked=today)
        update_order_status(store, order_id, 'received', user_id)
    return get_order(store, order_id)


def order_stats(orders: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    counts = Counter(order['status'] for order in orders)
    stats = {status: counts.get(status, 0) for status in STATUSES}
    stats['total'] = sum(counts.values())
    return stats
