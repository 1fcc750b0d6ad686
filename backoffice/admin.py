"""
Django admin registrations for the back-office models.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import (
    User,
    Supplier,
    InventoryItem,
    PharmacyBill,
    PharmacyBillItem,
    PurchaseOrder,
    PurchaseOrderItem,
    StaffSchedule,
    Appointment,
    AuditEvent,
)


@admin.register(User)
class BackofficeUserAdmin(UserAdmin):
    list_display = ('username', 'first_name', 'last_name', 'role', 'is_active')
    list_filter = ('role', 'is_active')
    fieldsets = UserAdmin.fieldsets + (('Role', {'fields': ('role',)}),)


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ('item_name', 'batch_number', 'current_stock', 'minimum_stock', 'expiry_date', 'status')
    list_filter = ('status', 'category')
    search_fields = ('item_name', 'batch_number')


class PharmacyBillItemInline(admin.TabularInline):
    model = PharmacyBillItem
    extra = 0


@admin.register(PharmacyBill)
class PharmacyBillAdmin(admin.ModelAdmin):
    list_display = ('bill_number', 'patient_name', 'total_amount', 'payment_method', 'created_at')
    search_fields = ('bill_number', 'patient_name')
    inlines = [PharmacyBillItemInline]


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ('po_number', 'supplier', 'status', 'order_date', 'total_amount')
    list_filter = ('status',)
    inlines = [PurchaseOrderItemInline]


@admin.register(StaffSchedule)
class StaffScheduleAdmin(admin.ModelAdmin):
    list_display = ('staff', 'staff_type', 'day_of_week', 'start_time', 'end_time', 'is_available')
    list_filter = ('staff_type', 'day_of_week')


admin.site.register(Supplier)
admin.site.register(Appointment)
admin.site.register(AuditEvent)
