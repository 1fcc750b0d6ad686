from rest_framework import serializers

from .text import clean_text

PERCENT = dict(max_digits=7, decimal_places=4, min_value=0, max_value=100, required=False, default=0)


class QuoteLineSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    unitPrice = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class QuoteSerializer(serializers.Serializer):
    items = QuoteLineSerializer(many=True)
    discountPercent = serializers.DecimalField(**PERCENT)
    taxPercent = serializers.DecimalField(**PERCENT)


class BillLineSerializer(serializers.Serializer):
    inventoryId = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class CompleteBillSerializer(serializers.Serializer):
    items = BillLineSerializer(many=True)
    discountPercent = serializers.DecimalField(**PERCENT)
    taxPercent = serializers.DecimalField(**PERCENT)
    patientName = serializers.CharField(max_length=255, required=False, allow_blank=True)
    paymentMethod = serializers.ChoiceField(choices=['cash', 'card', 'insurance', 'upi'], required=False, default='cash')
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    def validate_items(self, v):
        if not v:
            raise serializers.ValidationError('add at least one item')
        ids = [line['inventoryId'] for line in v]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError('each item may appear only once')
        return v

    def validate_patientName(self, v):
        return clean_text(v) or None

    def validate_notes(self, v):
        return clean_text(v) or None


class BillListQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False, default=50)
