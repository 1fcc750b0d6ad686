"""
Pharmacy billing views.

The client keeps the bill while the cashier builds it and asks the
server for totals after every change (``quote``).  Completing a bill
rebuilds it from current stock rows, so client-side totals and stock
figures are never trusted.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backoffice.data_access import get_data_access
from backoffice.exceptions import BillingError, InsufficientStock
from backoffice.permissions import IsPharmacyStaff
from backoffice.serializers.billing import BillListQuerySerializer, CompleteBillSerializer, QuoteSerializer
from backoffice.services.audit import log_action
from backoffice.services.billing import bill_detail as load_bill, build_bill, commit_bill, list_bills, quote
from backoffice.services.inventory import ALERTS_CACHE_KEY
from backoffice.services.notify import broadcast_refresh
from backoffice.services.reporting import pharmacy_dashboard as build_dashboard
from .payload import camelize


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def bill_quote(request):
    s = QuoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    items = [{'quantity': i['quantity'], 'unit_price': i['unitPrice']} for i in vd['items']]
    totals = quote(items, vd['discountPercent'], vd['taxPercent'])
    return Response({'ok': True, 'data': totals.as_payload()})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def bill_complete(request):
    s = CompleteBillSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    store = get_data_access()
    try:
        bill = build_bill(
            store,
            [{'inventory_id': i['inventoryId'], 'quantity': i['quantity']} for i in vd['items']],
            discount_percent=vd['discountPercent'],
            tax_percent=vd['taxPercent'],
            patient_name=vd.get('patientName'),
            payment_method=vd['paymentMethod'],
            notes=vd.get('notes'),
        )
        result = commit_bill(store, bill, user_id=request.user.id)
    except BillingError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    except InsufficientStock as e:
        return Response({'ok': False, 'detail': str(e)}, status=409)

    log_action(user=request.user, action='bill_complete', object_type='pharmacy_bill', object_id=result.bill['id'],
               detail={'billNumber': result.bill['bill_number'], 'total': str(result.totals.total),
                       'warnings': result.warnings})
    broadcast_refresh([ALERTS_CACHE_KEY, 'inventory'])
    return Response({
        'ok': True,
        'data': {**camelize(result.bill), 'items': camelize(result.items)},
        'totals': result.totals.as_payload(),
        'warnings': result.warnings,
    }, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def bill_list(request):
    q = BillListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'ok': True, 'data': camelize(list_bills(get_data_access(), q.validated_data['limit']))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def bill_detail(request, bill_id: int):
    return Response({'ok': True, 'data': camelize(load_bill(get_data_access(), bill_id))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def pharmacy_dashboard(request):
    return Response({'ok': True, 'data': build_dashboard(get_data_access())})
