from rest_framework import serializers

from .text import clean_text


class InventoryItemSerializer(serializers.Serializer):
    itemName = serializers.CharField(max_length=255)
    category = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    batchNumber = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    expiryDate = serializers.DateField(required=False, allow_null=True)
    currentStock = serializers.IntegerField(min_value=0, required=False, default=0)
    minimumStock = serializers.IntegerField(min_value=0, required=False, default=0)
    maximumStock = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    reorderPoint = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    unitPrice = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True)
    location = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    supplierId = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    FIELD_MAP = {
        'itemName': 'item_name',
        'category': 'category',
        'batchNumber': 'batch_number',
        'expiryDate': 'expiry_date',
        'currentStock': 'current_stock',
        'minimumStock': 'minimum_stock',
        'maximumStock': 'maximum_stock',
        'reorderPoint': 'reorder_point',
        'unitPrice': 'unit_price',
        'location': 'location',
        'supplierId': 'supplier_id',
    }

    def validate_itemName(self, v):
        v = clean_text(v)
        if len(v) < 2:
            raise serializers.ValidationError('item name needs at least 2 characters')
        return v

    def validate_category(self, v):
        return clean_text(v)

    def validate_location(self, v):
        return clean_text(v)

    def to_row(self):
        return {self.FIELD_MAP[k]: v for k, v in self.validated_data.items()}


class InventorySearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')


class InventoryListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=['available', 'low_stock', 'out_of_stock', 'expired'], required=False)
