from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backoffice.data_access import get_data_access
from backoffice.exceptions import RowNotFound
from backoffice.permissions import IsPharmacyStaff
from backoffice.serializers.suppliers import SupplierSerializer
from backoffice.services.audit import log_action
from .payload import camelize


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def supplier_collection(request):
    store = get_data_access()
    if request.method == 'POST':
        s = SupplierSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        supplier = store.insert_row('suppliers', s.to_row())
        log_action(user=request.user, action='supplier_create', object_type='supplier', object_id=supplier['id'],
                   detail={'name': supplier['name']})
        return Response({'ok': True, 'data': camelize(supplier)}, status=201)
    status_filter = request.query_params.get('status')
    rows = store.fetch_rows('suppliers', {'status': status_filter} if status_filter else None, order=['name'])
    return Response({'ok': True, 'data': camelize(rows)})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsPharmacyStaff])
def supplier_detail(request, supplier_id: int):
    store = get_data_access()
    rows = store.fetch_rows('suppliers', {'id': supplier_id})
    if not rows:
        raise RowNotFound('suppliers', supplier_id)
    supplier = rows[0]
    if request.method == 'GET':
        return Response({'ok': True, 'data': camelize(supplier)})

    if request.method == 'DELETE':
        # suppliers with orders are kept for history; deactivate them instead
        if store.fetch_rows('purchase_orders', {'supplier_id': supplier_id}, limit=1):
            return Response({'ok': False, 'detail': 'supplier has purchase orders, set it inactive instead'}, status=409)
        store.delete_row('suppliers', supplier_id)
        log_action(user=request.user, action='supplier_delete', object_type='supplier', object_id=supplier_id)
        return Response({'ok': True})

    s = SupplierSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patch = {**s.to_row(), 'updated_at': timezone.now()}
    store.update_row('suppliers', supplier_id, patch)
    log_action(user=request.user, action='supplier_update', object_type='supplier', object_id=supplier_id,
               detail={'fields': sorted(s.validated_data)})
    return Response({'ok': True, 'data': camelize({**supplier, **patch})})
