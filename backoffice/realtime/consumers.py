import json
from channels.generic.websocket import AsyncWebsocketConsumer

from backoffice.services.notify import UPDATES_GROUP


class UpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes cache refresh notices (stock, alerts) to open dashboards."""

    async def connect(self):
        await self.channel_layer.group_add(UPDATES_GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(UPDATES_GROUP, self.channel_name)

    async def broadcast_refresh(self, event):
        # event: {"type": "broadcast.refresh", "version": int, "ts": "...", "keys": [...]}
        await self.send(json.dumps(event))
