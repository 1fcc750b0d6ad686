"""
Integration tests for the back-office API.

These exercise the pharmacy counter, purchasing and schedule endpoints
end to end against the ORM store, including role based access.  Run
with::

    pytest -q backoffice/tests
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase, APIClient

from ..auth_views import LoginRateThrottle
from ..models import (
    Appointment,
    AuditEvent,
    InventoryItem,
    PharmacyBill,
    PurchaseOrder,
    StaffSchedule,
    Supplier,
    User,
)


def week_payload(**available):
    days = [{'dayOfWeek': i, 'isAvailable': False, 'startTime': '09:00', 'endTime': '17:00',
             'slotDuration': 30, 'breakStart': '', 'breakEnd': ''} for i in range(7)]
    for key, overrides in available.items():
        days[int(key[1:])].update({'isAvailable': True, **overrides})
    return {'days': days}


class BackofficeAPITests(APITestCase):
    def setUp(self) -> None:
        self.admin = User.objects.create_user(username='admin1', password='P@ssw0rd1', role='admin')
        self.pharmacist = User.objects.create_user(username='pharm1', password='P@ssw0rd1', role='pharmacist')
        self.receptionist = User.objects.create_user(username='recep1', password='P@ssw0rd1', role='receptionist')
        self.doctor = User.objects.create_user(username='doctor1', password='P@ssw0rd1', role='doctor')
        self.other_doctor = User.objects.create_user(username='doctor2', password='P@ssw0rd1', role='doctor')

        self.supplier = Supplier.objects.create(name='MediSupply Co')
        self.para = InventoryItem.objects.create(
            item_name='Paracetamol 500mg', current_stock=10, minimum_stock=2, unit_price=Decimal('10.00'),
            supplier=self.supplier, expiry_date=timezone.localdate() + timedelta(days=365),
        )
        self.ibu = InventoryItem.objects.create(
            item_name='Ibuprofen 400mg', current_stock=5, minimum_stock=2, unit_price=Decimal('5.00'),
        )
        self.client = APIClient()

    def as_user(self, user) -> None:
        self.client.force_authenticate(user=user)

    # ------------------------------------------------------------------
    # auth
    # ------------------------------------------------------------------
    def test_login_returns_token_jwt_and_stored_role(self) -> None:
        resp = self.client.post(reverse('login_view'),
                                {'username': 'pharm1', 'password': 'P@ssw0rd1', 'role': 'admin'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['role'], 'pharmacist')
        self.assertTrue(resp.data['token'])
        self.assertTrue(resp.data['jwt_access'])
        self.assertTrue(AuditEvent.objects.filter(action='login', user=self.pharmacist).exists())

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {resp.data['token']}")
        self.assertEqual(self.client.get('/api/inventory').status_code, 200)

    def test_login_with_wrong_password(self) -> None:
        resp = self.client.post(reverse('login_view'), {'username': 'pharm1', 'password': 'nope'}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.data['ok'])

    def test_login_attempts_are_throttled(self) -> None:
        with mock.patch.object(LoginRateThrottle, 'THROTTLE_RATES', {'login': '2/min'}):
            for _ in range(2):
                resp = self.client.post(reverse('login_view'), {'username': 'pharm1', 'password': 'nope'},
                                        format='json')
                self.assertEqual(resp.status_code, 400)
            resp = self.client.post(reverse('login_view'), {'username': 'pharm1', 'password': 'P@ssw0rd1'},
                                    format='json')
        self.assertEqual(resp.status_code, 429)
        self.assertFalse(resp.data['ok'])

    def test_anonymous_requests_are_rejected(self) -> None:
        resp = self.client.get('/api/inventory')
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(resp.data['ok'])

    # ------------------------------------------------------------------
    # inventory
    # ------------------------------------------------------------------
    def test_inventory_crud_and_search(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.post('/api/inventory', {
            'itemName': '<b>Cetirizine</b> 10mg', 'currentStock': 0, 'minimumStock': 5, 'unitPrice': '0.35',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        item_id = resp.data['data']['id']
        self.assertEqual(resp.data['data']['itemName'], 'Cetirizine 10mg')
        self.assertEqual(resp.data['data']['status'], 'out_of_stock')

        resp = self.client.put(f'/api/inventory/{item_id}', {'currentStock': 50}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(InventoryItem.objects.get(id=item_id).status, 'available')

        resp = self.client.get('/api/inventory/search', {'q': 'ceti'})
        self.assertEqual([r['itemName'] for r in resp.data['data']], ['Cetirizine 10mg'])
        resp = self.client.get('/api/inventory/search', {'q': 'c'})
        self.assertEqual(resp.data['data'], [])

        self.assertEqual(self.client.delete(f'/api/inventory/{item_id}').status_code, 200)
        self.assertEqual(self.client.get(f'/api/inventory/{item_id}').status_code, 404)

    def test_inventory_alerts(self) -> None:
        InventoryItem.objects.create(item_name='Gauze', current_stock=0, minimum_stock=5)
        InventoryItem.objects.create(item_name='Saline', current_stock=3, minimum_stock=5,
                                     expiry_date=timezone.localdate() + timedelta(days=10))
        self.as_user(self.admin)
        resp = self.client.get('/api/inventory/alerts')
        self.assertEqual(resp.status_code, 200)
        counts = resp.data['data']['counts']
        self.assertEqual(counts, {'lowStock': 1, 'expiringSoon': 1, 'outOfStock': 1})

    def test_receptionist_cannot_touch_inventory(self) -> None:
        self.as_user(self.receptionist)
        self.assertEqual(self.client.get('/api/inventory').status_code, 403)

    # ------------------------------------------------------------------
    # billing
    # ------------------------------------------------------------------
    def test_quote_recomputes_totals(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.post('/api/pharmacy/bills/quote', {
            'items': [{'quantity': 2, 'unitPrice': '10'}, {'quantity': 1, 'unitPrice': '5'}],
            'discountPercent': 10, 'taxPercent': 5,
        }, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data['data']['total']), Decimal('23.625'))

        resp = self.client.post('/api/pharmacy/bills/quote', {'items': [], 'discountPercent': 150}, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_complete_bill_decrements_stock(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.post('/api/pharmacy/bills/complete', {
            'items': [{'inventoryId': self.para.id, 'quantity': 2}, {'inventoryId': self.ibu.id, 'quantity': 1}],
            'discountPercent': 10, 'taxPercent': 5, 'paymentMethod': 'card',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['warnings'], [])
        self.assertEqual(Decimal(resp.data['totals']['total']), Decimal('23.625'))
        self.assertEqual(resp.data['data']['patientName'], 'Walk-in Customer')
        self.assertTrue(resp.data['data']['billNumber'].startswith('PB-'))

        self.para.refresh_from_db()
        self.ibu.refresh_from_db()
        self.assertEqual((self.para.current_stock, self.ibu.current_stock), (8, 4))

        bill_id = resp.data['data']['id']
        detail = self.client.get(f'/api/pharmacy/bills/{bill_id}')
        self.assertEqual(len(detail.data['data']['items']), 2)
        self.assertEqual(len(self.client.get('/api/pharmacy/bills').data['data']), 1)

    def test_complete_bill_over_stock_writes_nothing(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.post('/api/pharmacy/bills/complete', {
            'items': [{'inventoryId': self.para.id, 'quantity': 2}, {'inventoryId': self.ibu.id, 'quantity': 6}],
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(PharmacyBill.objects.exists())
        self.para.refresh_from_db()
        self.assertEqual(self.para.current_stock, 10)

    def test_complete_bill_rejects_duplicates_and_unknown_items(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.post('/api/pharmacy/bills/complete', {
            'items': [{'inventoryId': self.para.id, 'quantity': 1}, {'inventoryId': self.para.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post('/api/pharmacy/bills/complete', {
            'items': [{'inventoryId': 9999, 'quantity': 1}],
        }, format='json')
        self.assertEqual(resp.status_code, 404)

    def test_bill_number_collision_conflicts(self) -> None:
        PharmacyBill.objects.create(bill_number='PB-20250101-0001')
        self.as_user(self.pharmacist)
        with mock.patch('backoffice.services.numbering.next_document_number', return_value='PB-20250101-0001'):
            resp = self.client.post('/api/pharmacy/bills/complete', {
                'items': [{'inventoryId': self.para.id, 'quantity': 1}],
            }, format='json')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data['error']['code'], 'conflict')
        self.assertEqual(PharmacyBill.objects.count(), 1)
        self.para.refresh_from_db()
        self.assertEqual(self.para.current_stock, 10)

    def test_dashboard(self) -> None:
        self.as_user(self.pharmacist)
        self.client.post('/api/pharmacy/bills/complete', {
            'items': [{'inventoryId': self.ibu.id, 'quantity': 1}],
        }, format='json')
        resp = self.client.get('/api/pharmacy/dashboard')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['today']['billCount'], 1)
        self.assertEqual(Decimal(resp.data['data']['today']['revenue']), Decimal('5.00'))

    # ------------------------------------------------------------------
    # purchase orders
    # ------------------------------------------------------------------
    def _create_order(self):
        resp = self.client.post('/api/purchase-orders', {
            'supplierId': self.supplier.id,
            'items': [
                {'inventoryItemId': self.para.id, 'itemName': 'Paracetamol 500mg', 'quantity': 20, 'unitPrice': '1.50'},
                {'itemName': 'Gauze', 'quantity': 4, 'unitPrice': '2.25'},
            ],
            'expectedDelivery': (date.today() + timedelta(days=7)).isoformat(),
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        return resp.data['data']

    def test_purchase_order_lifecycle(self) -> None:
        self.as_user(self.pharmacist)
        order = self._create_order()
        self.assertEqual(order['status'], 'draft')
        self.assertEqual(Decimal(order['totalAmount']), Decimal('39.00'))
        url = f"/api/purchase-orders/{order['id']}"

        self.assertEqual(self.client.post(f'{url}/status', {'status': 'submitted'}, format='json').status_code, 200)
        resp = self.client.post(f'{url}/status', {'status': 'approved'}, format='json')
        self.assertEqual(resp.status_code, 403)

        self.as_user(self.admin)
        resp = self.client.post(f'{url}/status', {'status': 'approved'}, format='json')
        self.assertEqual(resp.status_code, 200)
        po = PurchaseOrder.objects.get(id=order['id'])
        self.assertEqual(po.approved_by_id, self.admin.id)
        self.assertIsNotNone(po.approved_at)

        para_line = next(i for i in order['items'] if i['itemName'] == 'Paracetamol 500mg')
        resp = self.client.post(f'{url}/receive', {
            'items': [{'itemId': para_line['id'], 'receivedQuantity': 20}],
        }, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['status'], 'received')
        self.para.refresh_from_db()
        self.assertEqual(self.para.current_stock, 30)
        self.assertEqual(self.para.last_restocked, timezone.localdate())

        stats = self.client.get('/api/purchase-orders/stats').data['data']
        self.assertEqual((stats['total'], stats['received']), (1, 1))

    def test_order_with_unknown_inventory_item_is_404(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.post('/api/purchase-orders', {
            'supplierId': self.supplier.id,
            'items': [{'inventoryItemId': 9999, 'itemName': 'Ghost', 'quantity': 1, 'unitPrice': '1.00'}],
        }, format='json')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data['error']['code'], 'not_found')
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_receipt_listing_a_line_twice_is_rejected(self) -> None:
        self.as_user(self.admin)
        order = self._create_order()
        url = f"/api/purchase-orders/{order['id']}"
        for status in ('submitted', 'approved'):
            self.client.post(f'{url}/status', {'status': status}, format='json')
        para_line = next(i for i in order['items'] if i['itemName'] == 'Paracetamol 500mg')
        resp = self.client.post(f'{url}/receive', {
            'items': [{'itemId': para_line['id'], 'receivedQuantity': 10},
                      {'itemId': para_line['id'], 'receivedQuantity': 10}],
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.para.refresh_from_db()
        self.assertEqual(self.para.current_stock, 10)
        self.assertEqual(PurchaseOrder.objects.get(id=order['id']).status, 'approved')

    def test_invalid_transition_conflicts(self) -> None:
        self.as_user(self.admin)
        order = self._create_order()
        resp = self.client.post(f"/api/purchase-orders/{order['id']}/status", {'status': 'received'}, format='json')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(PurchaseOrder.objects.get(id=order['id']).status, 'draft')

        self.client.post(f"/api/purchase-orders/{order['id']}/status", {'status': 'cancelled'}, format='json')
        resp = self.client.post(f"/api/purchase-orders/{order['id']}/status", {'status': 'submitted'}, format='json')
        self.assertEqual(resp.status_code, 409)

    def test_unknown_order_is_404(self) -> None:
        self.as_user(self.admin)
        resp = self.client.get('/api/purchase-orders/4242')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data['error']['code'], 'not_found')

    def test_supplier_with_orders_cannot_be_deleted(self) -> None:
        self.as_user(self.admin)
        self._create_order()
        resp = self.client.delete(f'/api/suppliers/{self.supplier.id}')
        self.assertEqual(resp.status_code, 409)
        resp = self.client.put(f'/api/suppliers/{self.supplier.id}', {'status': 'inactive'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Supplier.objects.get(id=self.supplier.id).status, 'inactive')

    # ------------------------------------------------------------------
    # schedules
    # ------------------------------------------------------------------
    def test_save_and_load_week(self) -> None:
        self.as_user(self.receptionist)
        url = f'/api/staff/{self.doctor.id}/schedule?type=doctor'
        resp = self.client.post(url, week_payload(d1={'breakStart': '12:00', 'breakEnd': '13:00'}, d3={}),
                                format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['summary'], 'Mon, Wed')
        self.assertEqual(StaffSchedule.objects.filter(staff=self.doctor).count(), 2)

        self.as_user(self.doctor)
        resp = self.client.get(url)
        self.assertEqual(resp.status_code, 200)
        monday = resp.data['data'][1]
        self.assertEqual((monday['startTime'], monday['breakStart']), ('09:00', '12:00'))

    def test_invalid_week_names_the_day(self) -> None:
        self.as_user(self.admin)
        resp = self.client.post(f'/api/staff/{self.doctor.id}/schedule?type=doctor',
                                week_payload(d2={'startTime': '10:00', 'endTime': '09:00'}), format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['dayOfWeek'], 2)
        self.assertEqual(resp.data['reason'], 'start must be before end')
        self.assertFalse(StaffSchedule.objects.exists())

    def test_staff_cannot_read_or_edit_other_schedules(self) -> None:
        self.as_user(self.other_doctor)
        url = f'/api/staff/{self.doctor.id}/schedule'
        self.assertEqual(self.client.get(url).status_code, 403)
        self.as_user(self.doctor)
        self.assertEqual(self.client.post(url, week_payload(), format='json').status_code, 403)

    def test_apply_monday_to_weekdays(self) -> None:
        self.as_user(self.receptionist)
        payload = week_payload()
        payload['days'][1].update({'startTime': '07:00', 'endTime': '13:00'})
        resp = self.client.post('/api/staff/schedule/apply-weekdays', payload, format='json')
        self.assertEqual(resp.status_code, 200)
        days = resp.data['data']
        self.assertEqual([d['isAvailable'] for d in days], [False, True, True, True, True, True, False])
        self.assertEqual(days[4]['startTime'], '07:00')

    def test_slots_mark_booked_times(self) -> None:
        self.as_user(self.admin)
        self.client.post(f'/api/staff/{self.doctor.id}/schedule?type=doctor',
                         week_payload(d1={'startTime': '09:00', 'endTime': '10:00'}), format='json')
        monday = date(2025, 1, 6)
        Appointment.objects.create(doctor=self.doctor, patient_name='A', appointment_date=monday,
                                   appointment_time='09:30')
        resp = self.client.get(f'/api/staff/{self.doctor.id}/slots', {'date': monday.isoformat()})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([(s['time'], s['available']) for s in resp.data['data']],
                         [('09:00', True), ('09:30', False)])

        resp = self.client.get(f'/api/staff/{self.doctor.id}/slots', {'date': monday.isoformat(), 'time': '09:30'})
        self.assertEqual(resp.data['data']['reason'], 'Time slot already booked')

    def test_healthz(self) -> None:
        resp = self.client.get('/healthz')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['ok'])
