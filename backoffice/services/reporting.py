from decimal import Decimal
from typing import Any, Dict

from django.utils import timezone

from .billing import to_decimal
from .inventory import inventory_alerts
from .purchase_orders import order_stats


def pharmacy_dashboard(store) -> Dict[str, Any]:
    """Today's sales, purchase order counts and alert counts for the pharmacy."""
    now = timezone.localtime()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    bills = store.fetch_rows('pharmacy_bills', {'created_at__gte': start_of_day})
    revenue = sum((to_decimal(b['total_amount']) for b in bills), Decimal('0'))
    return {
        'today': {
            'date': now.date().isoformat(),
            'billCount': len(bills),
            'revenue': str(revenue),
        },
        'purchaseOrders': order_stats(store.fetch_rows('purchase_orders')),
        'alerts': inventory_alerts(store)['counts'],
    }
