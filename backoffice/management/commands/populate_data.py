"""
Management command to populate the database with demo data.
"""
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.utils import timezone

from backoffice.data_access import get_data_access
from backoffice.models import User, Supplier, InventoryItem, Appointment
from backoffice.services import purchase_orders, schedules
from backoffice.services.inventory import stock_status

USERS = [
    ("admin1", "admin", "Alice", "Admin"),
    ("pharm1", "pharmacist", "Paul", "Pharmacist"),
    ("recep1", "receptionist", "Rita", "Reception"),
    ("doctor1", "doctor", "Dana", "Doctor"),
    ("nurse1", "nurse", "Nina", "Nurse"),
]


class Command(BaseCommand):
    help = 'Populate database with demo data (password: 123456)'

    def handle(self, *args, **options):
        self.stdout.write('Creating demo data...')
        users = self.create_users()
        suppliers = self.create_suppliers()
        items = self.create_inventory(suppliers)
        self.create_purchase_order(suppliers[0], items, users['admin1'])
        self.create_schedules(users['doctor1'], users['nurse1'])
        self.create_appointments(users['doctor1'])
        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_users(self):
        users = {}
        for username, role, first, last in USERS:
            user, _ = User.objects.update_or_create(
                username=username,
                defaults={'role': role, 'first_name': first, 'last_name': last,
                          'password': make_password('123456'), 'is_active': True},
            )
            users[username] = user
        return users

    def create_suppliers(self):
        data = [
            {'name': 'MediSupply Co', 'contact_person': 'John Carter', 'email': 'orders@medisupply.example',
             'phone': '555-0100', 'payment_terms': 'Net 30', 'lead_time_days': 5},
            {'name': 'PharmaDirect', 'contact_person': 'Mary Lee', 'email': 'sales@pharmadirect.example',
             'phone': '555-0200', 'payment_terms': 'Net 15', 'lead_time_days': 3},
        ]
        return [Supplier.objects.get_or_create(name=d['name'], defaults=d)[0] for d in data]

    def create_inventory(self, suppliers):
        today = timezone.localdate()
        data = [
            ('Paracetamol 500mg', 'Analgesic', 500, 50, Decimal('0.50'), 400),
            ('Amoxicillin 250mg', 'Antibiotic', 40, 50, Decimal('1.20'), 200),
            ('Ibuprofen 400mg', 'Analgesic', 0, 30, Decimal('0.80'), 300),
            ('Cetirizine 10mg', 'Antihistamine', 120, 20, Decimal('0.35'), 20),
            ('Insulin Glargine', 'Hormone', 15, 10, Decimal('24.00'), 90),
        ]
        items = []
        for i, (name, category, stock, minimum, price, shelf_days) in enumerate(data):
            row = {
                'category': category, 'batch_number': f'B{2024 + i}-{i:03d}',
                'expiry_date': today + timedelta(days=shelf_days), 'current_stock': stock,
                'minimum_stock': minimum, 'unit_price': price, 'supplier': suppliers[i % len(suppliers)],
                'location': f'Shelf {chr(65 + i)}',
            }
            row['status'] = stock_status(row, today)
            item, _ = InventoryItem.objects.get_or_create(item_name=name, defaults=row)
            items.append(item)
        return items

    def create_purchase_order(self, supplier, items, user):
        if supplier.purchase_orders.exists():
            return
        purchase_orders.create_order(
            get_data_access(), supplier.id,
            [{'inventory_item_id': item.id, 'item_name': item.item_name, 'quantity': 100,
              'unit_price': item.unit_price} for item in items[:2]],
            expected_delivery=timezone.localdate() + timedelta(days=supplier.lead_time_days),
            notes='Monthly restock', user_id=user.id,
        )

    def create_schedules(self, doctor, nurse):
        store = get_data_access()
        week = schedules.default_week()
        week[schedules.MONDAY] = schedules.DaySchedule(
            day_of_week=schedules.MONDAY, is_available=True, start_time='09:00', end_time='17:00',
            break_start='12:00', break_end='13:00',
        )
        schedules.save_week(store, doctor.id, 'doctor', schedules.apply_monday_to_weekdays(week))
        schedules.save_week(store, nurse.id, 'nurse', schedules.apply_monday_to_weekdays(week))

    def create_appointments(self, doctor):
        day = timezone.localdate()
        while schedules.day_of_week(day) not in schedules.WEEKDAYS:
            day += timedelta(days=1)
        for t, patient in [('09:00', 'Sam Patient'), ('09:30', 'Kim Patient')]:
            Appointment.objects.get_or_create(doctor=doctor, appointment_date=day, appointment_time=t,
                                              defaults={'patient_name': patient})
