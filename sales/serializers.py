"""
Serializers for the sales API.
"""
from rest_framework import serializers

from sales.models import Sale, TicketTier, WebhookLog


class TicketTierSerializer(serializers.ModelSerializer):
    class Meta:
        model = TicketTier
        fields = ['id', 'name', 'price', 'remaining_qty', 'initial_qty', 'updated_at']
        read_only_fields = fields


class TicketTierUpdateSerializer(serializers.Serializer):
    price = serializers.IntegerField(required=False, min_value=1)
    remaining_qty = serializers.IntegerField(required=False, min_value=0)
    initial_qty = serializers.IntegerField(required=False, min_value=0)


class WebhookLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = WebhookLog
        fields = [
            'id', 'status', 'attempts', 'last_attempt_at',
            'response_status', 'response_body', 'error_message', 'created_at',
        ]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    partner_code = serializers.CharField(source='partner.partner_code', read_only=True, default=None)

    class Meta:
        model = Sale
        fields = [
            'id', 'partner_id', 'partner_code', 'status', 'buyer_name', 'buyer_mobile',
            'amount', 'transaction_id_last4', 'screenshot_path', 'tickets_data',
            'rejection_reason', 'submitted_at', 'approved_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields
