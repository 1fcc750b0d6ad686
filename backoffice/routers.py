"""
URL mappings for the back-office API.

Trailing slashes are omitted to match the paths the front-end calls.
"""
from django.urls import path, include

from .auth_views import login_view, jwt_refresh_view, jwt_logout_view
from .views import billing, health, inventory, purchase_orders, schedules, suppliers

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),

    path('api/inventory', inventory.inventory_collection, name='inventory'),
    path('api/inventory/search', inventory.inventory_search, name='inventory_search'),
    path('api/inventory/alerts', inventory.inventory_alerts_view, name='inventory_alerts'),
    path('api/inventory/<int:item_id>', inventory.inventory_detail, name='inventory_detail'),

    path('api/pharmacy/bills', billing.bill_list, name='bill_list'),
    path('api/pharmacy/bills/quote', billing.bill_quote, name='bill_quote'),
    path('api/pharmacy/bills/complete', billing.bill_complete, name='bill_complete'),
    path('api/pharmacy/bills/<int:bill_id>', billing.bill_detail, name='bill_detail'),
    path('api/pharmacy/dashboard', billing.pharmacy_dashboard, name='pharmacy_dashboard'),

    path('api/suppliers', suppliers.supplier_collection, name='suppliers'),
    path('api/suppliers/<int:supplier_id>', suppliers.supplier_detail, name='supplier_detail'),

    path('api/purchase-orders', purchase_orders.order_collection, name='purchase_orders'),
    path('api/purchase-orders/stats', purchase_orders.order_stats, name='purchase_order_stats'),
    path('api/purchase-orders/<int:order_id>', purchase_orders.order_detail, name='purchase_order_detail'),
    path('api/purchase-orders/<int:order_id>/status', purchase_orders.order_status, name='purchase_order_status'),
    path('api/purchase-orders/<int:order_id>/receive', purchase_orders.order_receive, name='purchase_order_receive'),

    path('api/staff/schedule/apply-weekdays', schedules.apply_weekdays, name='schedule_apply_weekdays'),
    path('api/staff/<int:staff_id>/schedule', schedules.staff_schedule, name='staff_schedule'),
    path('api/staff/<int:staff_id>/slots', schedules.staff_slots, name='staff_slots'),
]
