"""
Inventory views: stock CRUD, the billing search box and stock alerts.

All access is limited to administrators and pharmacists.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backoffice.data_access import get_data_access
from backoffice.exceptions import RowNotFound
from backoffice.permissions import IsPharmacyStaff
from backoffice.serializers.inventory import (
    InventoryItemSerializer,
    InventoryListQuerySerializer,
    InventorySearchQuerySerializer,
)
from backoffice.services.audit import log_action
from backoffice.services.billing import search_stock
from backoffice.services.inventory import inventory_alerts, inventory_summary, invalidate_alerts, stock_status
from .payload import camelize


def _get_item(store, item_id):
    rows = store.fetch_rows('inventory', {'id': item_id})
    if not rows:
        raise RowNotFound('inventory', item_id)
    return rows[0]


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def inventory_collection(request):
    store = get_data_access()
    if request.method == 'POST':
        s = InventoryItemSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        row = s.to_row()
        row['status'] = stock_status(row)
        item = store.insert_row('inventory', row)
        invalidate_alerts()
        log_action(user=request.user, action='inventory_create', object_type='inventory', object_id=item['id'],
                   detail={'itemName': item['item_name'], 'stock': item['current_stock']})
        return Response({'ok': True, 'data': camelize(item)}, status=201)

    q = InventoryListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    filters = {}
    if q.validated_data.get('q'):
        filters['item_name__icontains'] = q.validated_data['q']
    if q.validated_data.get('status'):
        filters['status'] = q.validated_data['status']
    items = store.fetch_rows('inventory', filters, order=['item_name'])
    return Response({'ok': True, 'data': camelize(items), 'summary': inventory_summary(items)})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def inventory_detail(request, item_id: int):
    store = get_data_access()
    item = _get_item(store, item_id)
    if request.method == 'GET':
        return Response({'ok': True, 'data': camelize(item)})

    if request.method == 'DELETE':
        store.delete_row('inventory', item_id)
        invalidate_alerts()
        log_action(user=request.user, action='inventory_delete', object_type='inventory', object_id=item_id,
                   detail={'itemName': item['item_name']})
        return Response({'ok': True})

    s = InventoryItemSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patch = s.to_row()
    merged = {**item, **patch}
    patch['status'] = stock_status(merged)
    patch['updated_at'] = timezone.now()
    store.update_row('inventory', item_id, patch)
    invalidate_alerts()
    log_action(user=request.user, action='inventory_update', object_type='inventory', object_id=item_id,
               detail={'fields': sorted(s.validated_data)})
    return Response({'ok': True, 'data': camelize({**merged, **patch})})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def inventory_search(request):
    """Billing search box: in-stock items whose name contains ``q``."""
    q = InventorySearchQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    rows = search_stock(get_data_access(), q.validated_data['q'])
    return Response({'ok': True, 'data': camelize(rows)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def inventory_alerts_view(request):
    return Response({'ok': True, 'data': inventory_alerts(get_data_access())})
