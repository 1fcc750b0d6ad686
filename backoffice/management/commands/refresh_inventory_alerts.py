from django.core.management.base import BaseCommand
from django.utils import timezone

from backoffice.data_access import get_data_access
from backoffice.services.inventory import ALERTS_CACHE_KEY, refresh_inventory_alerts
from backoffice.services.notify import broadcast_refresh


class Command(BaseCommand):
    help = "Rebuild the cached inventory alerts and broadcast a WebSocket refresh event."

    def handle(self, *args, **options):
        alerts = refresh_inventory_alerts(get_data_access())
        broadcast_refresh([ALERTS_CACHE_KEY])
        counts = alerts['counts']
        self.stdout.write(self.style.SUCCESS(
            f"Alerts refreshed at {timezone.now()}: {counts['lowStock']} low, "
            f"{counts['expiringSoon']} expiring, {counts['outOfStock']} out of stock"
        ))
