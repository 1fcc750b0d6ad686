from rest_framework import serializers

from .text import clean_text


class SupplierSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    contactPerson = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)
    address = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)
    paymentTerms = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    leadTimeDays = serializers.IntegerField(min_value=0, required=False, default=7)
    status = serializers.ChoiceField(choices=['active', 'inactive'], required=False, default='active')
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True)

    FIELD_MAP = {
        'name': 'name',
        'contactPerson': 'contact_person',
        'email': 'email',
        'phone': 'phone',
        'address': 'address',
        'paymentTerms': 'payment_terms',
        'leadTimeDays': 'lead_time_days',
        'status': 'status',
        'notes': 'notes',
    }

    def validate_name(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('supplier name is required')
        return v

    def validate_contactPerson(self, v):
        return clean_text(v)

    def validate_address(self, v):
        return clean_text(v)

    def validate_notes(self, v):
        return clean_text(v)

    def to_row(self):
        return {self.FIELD_MAP[k]: v for k, v in self.validated_data.items()}
