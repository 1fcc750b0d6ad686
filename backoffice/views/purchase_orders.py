"""
Purchase order views.

Administrators and pharmacists create and progress orders; only
administrators may approve one.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backoffice.data_access import get_data_access
from backoffice.exceptions import InvalidTransition
from backoffice.permissions import IsPharmacyStaff, ADMIN_ROLES
from backoffice.serializers.purchase_orders import (
    CreateOrderSerializer,
    OrderListQuerySerializer,
    OrderStatusSerializer,
    ReceiveOrderSerializer,
)
from backoffice.services import purchase_orders as orders
from backoffice.services.audit import log_action
from backoffice.services.inventory import ALERTS_CACHE_KEY
from backoffice.services.notify import broadcast_refresh
from .payload import camelize


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def order_collection(request):
    store = get_data_access()
    if request.method == 'POST':
        s = CreateOrderSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        order = orders.create_order(
            store, vd['supplierId'], s.order_items(),
            expected_delivery=vd.get('expectedDelivery'), notes=vd.get('notes'), user_id=request.user.id,
        )
        log_action(user=request.user, action='po_create', object_type='purchase_order', object_id=order['id'],
                   detail={'poNumber': order['po_number'], 'total': str(order['total_amount'])})
        return Response({'ok': True, 'data': camelize(order)}, status=201)

    q = OrderListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'ok': True, 'data': camelize(orders.list_orders(store, q.validated_data.get('status')))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def order_detail(request, order_id: int):
    return Response({'ok': True, 'data': camelize(orders.get_order(get_data_access(), order_id))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def order_status(request, order_id: int):
    s = OrderStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    new_status = s.validated_data['status']
    if new_status == 'approved' and request.user.role not in ADMIN_ROLES:
        return Response({'ok': False, 'detail': 'only administrators can approve purchase orders'}, status=403)
    store = get_data_access()
    try:
        if new_status == 'received':
            # receiving without quantities books every line in full
            current = orders.get_order(store, order_id)
            full = [{'item_id': i['id'], 'received_quantity': i['quantity']} for i in current['items']]
            order = orders.receive_order(store, order_id, full, user_id=request.user.id)
        else:
            order = orders.update_order_status(store, order_id, new_status, user_id=request.user.id)
    except InvalidTransition as e:
        return Response({'ok': False, 'detail': str(e)}, status=409)
    log_action(user=request.user, action='po_status', object_type='purchase_order', object_id=order_id,
               detail={'status': new_status})
    if new_status == 'received':
        broadcast_refresh([ALERTS_CACHE_KEY, 'inventory'])
    return Response({'ok': True, 'data': camelize(order)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def order_receive(request, order_id: int):
    s = ReceiveOrderSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        order = orders.receive_order(get_data_access(), order_id, s.received(), user_id=request.user.id)
    except InvalidTransition as e:
        return Response({'ok': False, 'detail': str(e)}, status=409)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    log_action(user=request.user, action='po_receive', object_type='purchase_order', object_id=order_id,
               detail={'items': [dict(i) for i in s.validated_data['items']]})
    broadcast_refresh([ALERTS_CACHE_KEY, 'inventory'])
    return Response({'ok': True, 'data': camelize(order)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def order_stats(request):
    return Response({'ok': True, 'data': orders.order_stats(get_data_access().fetch_rows('purchase_orders'))})
