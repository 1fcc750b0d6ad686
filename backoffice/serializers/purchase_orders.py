from rest_framework import serializers

from .text import clean_text


class OrderLineSerializer(serializers.Serializer):
    inventoryItemId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    itemName = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    unitPrice = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)

    def validate_itemName(self, v):
        return clean_text(v)


class CreateOrderSerializer(serializers.Serializer):
    supplierId = serializers.IntegerField(min_value=1)
    items = OrderLineSerializer(many=True)
    expectedDelivery = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True)

    def validate_items(self, v):
        if not v:
            raise serializers.ValidationError('add at least one item')
        return v

    def validate_notes(self, v):
        return clean_text(v) or None

    def order_items(self):
        return [
            {
                'inventory_item_id': line.get('inventoryItemId'),
                'item_name': line['itemName'],
                'quantity': line['quantity'],
                'unit_price': line['unitPrice'],
            }
            for line in self.validated_data['items']
        ]


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['submitted', 'approved', 'received', 'cancelled'])


class ReceiveLineSerializer(serializers.Serializer):
    itemId = serializers.IntegerField(min_value=1)
    receivedQuantity = serializers.IntegerField(min_value=0)


class ReceiveOrderSerializer(serializers.Serializer):
    items = ReceiveLineSerializer(many=True)

    def validate_items(self, v):
        ids = [line['itemId'] for line in v]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError('each order line may appear only once')
        return v

    def received(self):
        return [
            {'item_id': line['itemId'], 'received_quantity': line['receivedQuantity']}
            for line in self.validated_data['items']
        ]


class OrderListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['draft', 'submitted', 'approved', 'received', 'cancelled'], required=False)
