from django.conf import settings
from django.db.models import Prefetch, Q
from django.utils import timezone
import logging

from base import exceptions
from base.money import ZERO, clamp, epsilon, is_zero, quantize, to_decimal
from base.transactions import service_transaction
from base.utility import paginate
from base.validation import validate_input
from customer.choices import INITIAL_PAYMENT_NOTE, InstallmentMethodChoices
from customer.models import Customer, PaymentInstallment
from discount.models import DiscountCampaign
from discount.services import CampaignService
from inventory.models import Product, ProductBatch
from inventory.services import InventoryService
from inventory.units import UnitDefinition
from setting.services import get_tax_rate
from user.models import Company
from .choices import CreditFilterChoices, CreditPaymentStatusChoices, OPEN_CREDIT_STATUSES
from .documents import SaleLineItem, encode
from .models import SaleRecord, get_next_bill_number
from .pricing import price_items
from .serializers import CreditSaleFilterSerializer, SaleInputSerializer, SaleListQuerySerializer

logger = logging.getLogger(__name__)


class SaleService:
    """Service class for creating and reading sales"""

    @staticmethod
    def _resolve_campaign(company_id, data):
        if "campaignId" not in data:
            return CampaignService.get_active_campaign(company_id)
        if data["campaignId"] is None:
            return None

        campaign = DiscountCampaign.objects.filter(
            company_id=company_id, pk=data["campaignId"]
        ).first()
        if campaign is None:
            raise exceptions.NotFoundError(f"Discount campaign {data['campaignId']} not found.")
        if not campaign.is_active:
            raise exceptions.ValidationError(f"Discount campaign {campaign.name} is not active.")
        return campaign

    @staticmethod
    def _build_line(company_id, line, global_tax_rate):
        """Turn an input line into a SaleLineItem priced from the catalog"""
        product = Product.objects.filter(company_id=company_id, pk=line["productId"]).first()
        if product is None:
            raise exceptions.NotFoundError(f"Product {line['productId']} not found.")

        batch = None
        if line.get("batchId") and not product.is_service:
            batch = ProductBatch.objects.filter(pk=line["batchId"], product=product).first()
            if batch is None:
                raise exceptions.NotFoundError(
                    f"Batch {line['batchId']} not found for {product.name}."
                )

        price = line.get("unitPrice")
        if price is None:
            price = batch.effective_selling_price if batch else product.selling_price
        tax_rate = product.tax_rate_override
        if tax_rate is None:
            tax_rate = global_tax_rate

        return SaleLineItem(
            product_id=product.pk,
            name=product.name,
            quantity=line["quantity"],
            price_at_sale=quantize(price),
            units=UnitDefinition.from_stored(product.units).to_dict(),
            cost_price_at_sale=batch.cost_price if batch else product.cost_price,
            tax_rate=to_decimal(tax_rate),
            batch_id=batch.pk if batch else None,
            batch_number=batch.batch_number if batch else None,
            custom_discount_type=line.get("customDiscountType"),
            custom_discount_value=line.get("customDiscountValue"),
        )

    @staticmethod
    def _settle_payment(method, total, amount_paid):
        """(amount paid, change due) for a new sale"""
        if method == SaleRecord.PaymentMethod.CREDIT:
            paid = amount_paid or ZERO
            if paid > total + epsilon():
                raise exceptions.ValidationError(
                    f"Initial payment {paid} exceeds the bill total {total}."
                )
            return paid, ZERO

        paid = total if amount_paid is None else amount_paid
        if paid < total - epsilon():
            raise exceptions.ValidationError(
                f"Amount paid {paid} is less than the bill total {total}; "
                "record a credit sale instead."
            )
        return paid, quantize(clamp(paid - total))

    @staticmethod
    def create_sale(tenant, data, user=None):
        """
        Create a pristine original sale.

        Stock is decremented for every batch line, totals are priced
        server-side and, for credit sales, an initial installment is opened.
        All of it commits together or not at all.
        """
        data = validate_input(SaleInputSerializer, data)
        company_id = tenant.company_for_write(data.get("companyId"))
        company = Company.objects.filter(pk=company_id).first()
        if company is None:
            raise exceptions.NotFoundError(f"Company {company_id} not found.")

        customer = None
        if data.get("customerId"):
            customer = Customer.objects.filter(company=company, pk=data["customerId"]).first()
            if customer is None:
                raise exceptions.NotFoundError(f"Customer {data['customerId']} not found.")

        method = data["paymentMethod"]
        is_credit = method == SaleRecord.PaymentMethod.CREDIT
        if is_credit and customer is None:
            raise exceptions.ValidationError("A customer is required for credit sales.")

        bill_number = (data.get("billNumber") or "").strip()
        if bill_number and SaleRecord.objects.filter(bill_number=bill_number).exists():
            raise exceptions.ConflictError(f"Bill number {bill_number} already exists.")

        with service_transaction(duplicate_message="Bill number already exists."):
            campaign = SaleService._resolve_campaign(company_id, data)
            snapshot = campaign.to_snapshot() if campaign else None
            global_tax_rate = get_tax_rate()

            items = [
                SaleService._build_line(company_id, line, global_tax_rate)
                for line in data["items"]
            ]
            priced = price_items(items, snapshot)
            paid, change = SaleService._settle_payment(
                method, priced.total_amount, data.get("amountPaid")
            )

            bill_number = bill_number or get_next_bill_number(company)
            for item in priced.items:
                if item.batch_id:
                    InventoryService.decrement_for_sale(
                        item.batch_id, item.quantity, reference=bill_number, user=user
                    )

            sale = SaleRecord(
                company=company,
                customer=customer,
                bill_number=bill_number,
                date=data.get("date") or timezone.now(),
                items=encode(priced.items),
                tax_rate=global_tax_rate,
                payment_method=method,
                amount_paid_by_customer=paid,
                change_due_to_customer=change,
                is_credit_sale=is_credit,
                campaign=campaign,
                campaign_snapshot=snapshot,
                created_by=user,
                **priced.rollups(),
            )
            if is_credit:
                sale.apply_credit_totals(paid, sale.date if not is_zero(paid) else None)
            sale.save()

            if is_credit and not is_zero(paid):
                PaymentInstallment.objects.create(
                    sale=sale,
                    amount_paid=paid,
                    payment_date=sale.date,
                    method=InstallmentMethodChoices.CREDIT,
                    notes=INITIAL_PAYMENT_NOTE,
                    recorded_by=user,
                )

        logger.info(
            f"Sale {sale.bill_number} created: {len(priced.items)} lines, "
            f"total {sale.total_amount}, payment {method}"
        )
        return SaleRecord.objects.prefetch_related("installments").get(pk=sale.pk)

    @staticmethod
    def get_sale_context(tenant, bill_number):
        """The pristine original for a bill and its latest adjusted-or-original state"""
        record = tenant.scope(SaleRecord.objects.all()).filter(bill_number=bill_number).first()
        if record is None:
            raise exceptions.NotFoundError(f"Sale {bill_number} not found.")

        pristine = record if record.is_pristine else record.original_sale
        if pristine is None:
            raise exceptions.ConsistencyError(f"Sale {bill_number} has no original record.")
        return {"pristine": pristine, "active": pristine.active_record()}

    @staticmethod
    def list_sales(tenant, page=1, page_size=None, search=None, serializer=None):
        """Pristine original sales, newest first, flagged when returns exist"""
        query = validate_input(
            SaleListQuerySerializer,
            {"page": page or 1, "pageSize": page_size or None, "search": search},
        )
        page, page_size, search = query["page"], query.get("pageSize"), query.get("search")
        queryset = tenant.scope(SaleRecord.objects.originals()).with_return_flag()
        if search:
            queryset = queryset.filter(
                Q(bill_number__icontains=search)
                | Q(customer__name__icontains=search)
                | Q(customer__phone_number__icontains=search)
            )
        queryset = queryset.order_by("-date", "-id")
        return paginate(
            queryset,
            page=page or 1,
            per_page=page_size or settings.SALES_PAGE_SIZE,
            serializer=serializer,
        )

    @staticmethod
    def list_credit_sales(
        tenant, status=CreditFilterChoices.OPEN, customer_id=None, date_from=None, date_to=None
    ):
        """
        Credit sales filtered by the status of their active record.

        Returns (pristine, active) pairs, newest first.
        """
        filters = validate_input(
            CreditSaleFilterSerializer,
            {
                "status": status or CreditFilterChoices.OPEN,
                "customerId": customer_id or None,
                "dateFrom": date_from or None,
                "dateTo": date_to or None,
            },
        )
        status = filters["status"]
        customer_id = filters.get("customerId")
        date_from, date_to = filters.get("dateFrom"), filters.get("dateTo")

        queryset = (
            tenant.scope(SaleRecord.objects.originals())
            .credit()
            .prefetch_related(
                Prefetch(
                    "derived_records",
                    queryset=SaleRecord.objects.adjusted(),
                    to_attr="adjusted_records",
                )
            )
            .order_by("-date", "-id")
        )
        if customer_id:
            queryset = queryset.by_customer(customer_id)
        if date_from:
            queryset = queryset.filter(date__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(date__date__lte=date_to)

        if status == CreditFilterChoices.OPEN:
            wanted = set(OPEN_CREDIT_STATUSES)
        elif status == CreditFilterChoices.PAID:
            wanted = {CreditPaymentStatusChoices.FULLY_PAID}
        else:
            wanted = None

        results = []
        for pristine in queryset:
            active = pristine.adjusted_records[0] if pristine.adjusted_records else pristine
            if wanted is None or active.credit_payment_status in wanted:
                results.append((pristine, active))
        return results
