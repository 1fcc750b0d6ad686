"""
Stock status and inventory alerts.

Alerts are served from the Django cache.  Stock writes drop the cached
alerts once their transaction commits, so the next read rebuilds them
from committed rows.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

logger = logging.getLogger(__name__)

ALERTS_CACHE_KEY = 'inventory:alerts'
STATUSES = ('available', 'low_stock', 'out_of_stock', 'expired')


def stock_status(item: Mapping[str, Any], today: Optional[date] = None) -> str:
    today = today or timezone.localdate()
    expiry = item.get('expiry_date')
    if expiry and expiry <= today:
        return 'expired'
    stock = item.get('current_stock') or 0
    if stock <= 0:
        return 'out_of_stock'
    if stock <= (item.get('minimum_stock') or 0):
        return 'low_stock'
    return 'available'


def set_stock_level(store, item: Mapping[str, Any], new_stock: int, **extra) -> Dict[str, Any]:
    """Write ``new_stock`` for an inventory row, keeping its status in step."""
    patch = {
        'current_stock': new_stock,
        'status': stock_status({**item, 'current_stock': new_stock}),
        'updated_at': timezone.now(),
        **extra,
    }
    store.update_row('inventory', item['id'], patch)
    store.on_commit(invalidate_alerts)
    return patch


def build_inventory_alerts(store, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or timezone.localdate()
    horizon = today + timedelta(days=settings.INVENTORY_EXPIRY_WARNING_DAYS)
    in_stock = store.fetch_rows('inventory', {'current_stock__gt': 0}, order=['item_name'])
    low = [r for r in in_stock if r['current_stock'] <= (r.get('minimum_stock') or 0)]
    expiring = [r for r in in_stock if r.get('expiry_date') and r['expiry_date'] <= horizon]
    out = store.fetch_rows('inventory', {'current_stock': 0}, order=['item_name'])
    return {
        'lowStock': [_brief(r) for r in low],
        'expiringSoon': [_brief(r) for r in expiring],
        'outOfStock': [_brief(r) for r in out],
        'counts': {'lowStock': len(low), 'expiringSoon': len(expiring), 'outOfStock': len(out)},
        'generatedAt': timezone.now().isoformat(),
    }


def inventory_alerts(store, today: Optional[date] = None) -> Dict[str, Any]:
    cached = cache.get(ALERTS_CACHE_KEY)
    if cached:
        return cached
    return refresh_inventory_alerts(store, today)


def refresh_inventory_alerts(store, today: Optional[date] = None) -> Dict[str, Any]:
    alerts = build_inventory_alerts(store, today)
    cache.set(ALERTS_CACHE_KEY, alerts, settings.INVENTORY_ALERT_CACHE_SECONDS)
    if alerts['counts']['outOfStock']:
        logger.warning('%d inventory item(s) out of stock', alerts['counts']['outOfStock'])
    return alerts


def invalidate_alerts() -> None:
    cache.delete(ALERTS_CACHE_KEY)


def inventory_summary(items: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> Dict[str, int]:
    counts = Counter(stock_status(item, today) for item in items)
    summary = {status: counts.get(status, 0) for status in STATUSES}
    summary['total'] = sum(counts.values())
    return summary


def _brief(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'id': row['id'],
        'itemName': row['item_name'],
        'currentStock': row['current_stock'],
        'minimumStock': row.get('minimum_stock'),
        'expiryDate': row.get('expiry_date'),
    }
