from rest_framework import serializers
from decimal import Decimal

from discount.choices import DiscountTypeChoices
from .choices import CreditFilterChoices, SALE_PAYMENT_METHODS
from .models import SaleRecord


class SaleLineInputSerializer(serializers.Serializer):
    """One line of a new sale"""

    productId = serializers.IntegerField()
    batchId = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    unitPrice = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    customDiscountType = serializers.ChoiceField(
        choices=DiscountTypeChoices.choices, required=False, allow_null=True
    )
    customDiscountValue = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )

    def validate_quantity(self, value):
        if value <= Decimal("0"):
            raise serializers.ValidationError("Quantity must be greater than 0")
        return value

    def validate_unitPrice(self, value):
        if value is not None and value < Decimal("0"):
            raise serializers.ValidationError("Price cannot be negative")
        return value

    def validate(self, attrs):
        kind, value = attrs.get("customDiscountType"), attrs.get("customDiscountValue")
        if (kind is None) != (value is None):
            raise serializers.ValidationError(
                "Custom discount needs both a type and a value."
            )
        if value is not None:
            if value < 0:
                raise serializers.ValidationError(
                    {"customDiscountValue": "Discount cannot be negative."}
                )
            if kind == DiscountTypeChoices.PERCENTAGE and value > Decimal("100"):
                raise serializers.ValidationError(
                    {"customDiscountValue": "Percentage cannot exceed 100."}
                )
        return attrs


def _reject_duplicate_lines(items):
    seen = set()
    for line in items:
        key = (line["productId"], line.get("batchId"))
        if key in seen:
            raise serializers.ValidationError(
                f"Product {key[0]} appears more than once for the same batch."
            )
        seen.add(key)
    return items


class SaleInputSerializer(serializers.Serializer):
    """
    Input for a new sale.

    Omitting campaignId applies the company's active default campaign;
    an explicit null sells without any campaign.
    """

    billNumber = serializers.CharField(max_length=60, required=False, allow_blank=True)
    companyId = serializers.IntegerField(required=False, allow_null=True)
    customerId = serializers.IntegerField(required=False, allow_null=True)
    campaignId = serializers.IntegerField(required=False, allow_null=True)
    paymentMethod = serializers.ChoiceField(choices=SALE_PAYMENT_METHODS)
    amountPaid = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        allow_null=True,
        min_value=Decimal("0"),
    )
    date = serializers.DateTimeField(required=False, allow_null=True)
    items = SaleLineInputSerializer(many=True, allow_empty=False)

    def validate_items(self, value):
        return _reject_duplicate_lines(value)


class ReturnLineSerializer(serializers.Serializer):
    productId = serializers.IntegerField()
    batchId = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)

    def validate_quantity(self, value):
        if value <= Decimal("0"):
            raise serializers.ValidationError("Return quantity must be greater than 0")
        return value


class ReturnRequestSerializer(serializers.Serializer):
    pristineSaleId = serializers.IntegerField()
    currentActiveSaleId = serializers.IntegerField()
    items = ReturnLineSerializer(many=True, allow_empty=False)

    def validate_items(self, value):
        return _reject_duplicate_lines(value)


class UndoReturnSerializer(serializers.Serializer):
    masterSaleId = serializers.IntegerField()
    logEntryId = serializers.CharField()


class SaleListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    pageSize = serializers.IntegerField(min_value=1, max_value=500, required=False, allow_null=True)
    search = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CreditSaleFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=CreditFilterChoices.choices, default=CreditFilterChoices.OPEN
    )
    customerId = serializers.IntegerField(required=False, allow_null=True)
    dateFrom = serializers.DateField(required=False, allow_null=True)
    dateTo = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        date_from, date_to = attrs.get("dateFrom"), attrs.get("dateTo")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError("dateFrom must not be after dateTo")
        return attrs


class SaleRecordSerializer(serializers.ModelSerializer):
    """Read-side representation of a sale record"""

    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)
    installments = serializers.SerializerMethodField()

    class Meta:
        model = SaleRecord
        fields = [
            "id",
            "bill_number",
            "record_type",
            "status",
            "date",
            "company",
            "customer",
            "customer_name",
            "original_sale",
            "items",
            "returned_items_log",
            "applied_discount_summary",
            "subtotal_original",
            "total_item_discount_amount",
            "total_cart_discount_amount",
            "net_subtotal",
            "tax_rate",
            "tax_amount",
            "total_amount",
            "payment_method",
            "amount_paid_by_customer",
            "change_due_to_customer",
            "is_credit_sale",
            "credit_outstanding_amount",
            "credit_payment_status",
            "credit_last_payment_date",
            "campaign",
            "installments",
        ]
        read_only_fields = fields

    def get_installments(self, obj):
        """Installments always hang off the pristine original"""
        pristine = obj.original_sale if obj.original_sale_id else obj
        return [
            {
                "id": installment.pk,
                "amountPaid": str(installment.amount_paid),
                "paymentDate": installment.payment_date.isoformat(),
                "method": installment.method,
                "notes": installment.notes,
            }
            for installment in pristine.installments.all()
        ]


def sale_to_dict(record):
    data = dict(SaleRecordSerializer(record).data)
    if hasattr(record, "has_returns"):
        data["has_returns"] = record.has_returns
    return data
