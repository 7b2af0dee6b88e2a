from rest_framework import serializers
from decimal import Decimal

from .choices import InstallmentMethodChoices


class PaymentInputSerializer(serializers.Serializer):
    saleId = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(
        choices=InstallmentMethodChoices.choices, default=InstallmentMethodChoices.CASH
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    paymentDate = serializers.DateTimeField(required=False, allow_null=True)

    def validate_amount(self, value):
        """Validate amount is positive"""
        if value <= Decimal("0"):
            raise serializers.ValidationError("Payment amount must be greater than 0")
        return value


class InstallmentReferenceSerializer(serializers.Serializer):
    installmentId = serializers.IntegerField()


class CustomerReferenceSerializer(serializers.Serializer):
    customerId = serializers.IntegerField()
