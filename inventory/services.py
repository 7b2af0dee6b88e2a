from django.db import transaction
from django.db.models import F
from decimal import Decimal
import logging

from base import exceptions
from .models import InventoryLog, Product, ProductBatch, RETURNED_STOCK_BATCH

logger = logging.getLogger(__name__)


class InventoryService:
    """Service class for batch stock movements"""

    @staticmethod
    def _log(batch, change, transaction_type, reference="", user=None, notes=""):
        batch.refresh_from_db(fields=["quantity"])
        return InventoryLog.objects.create(
            batch=batch,
            transaction_type=transaction_type,
            quantity_change=change,
            new_quantity=batch.quantity,
            reference=reference,
            created_by=user,
            notes=notes,
        )

    @staticmethod
    def receive(product, batch_number, quantity, cost_price, selling_price=None, user=None):
        """Create a batch with its opening stock"""
        with transaction.atomic():
            batch = ProductBatch.objects.create(
                product=product,
                batch_number=batch_number,
                quantity=quantity,
                cost_price=cost_price,
                selling_price=selling_price,
            )
            InventoryService._log(
                batch,
                Decimal(str(quantity)),
                InventoryLog.TransactionTypes.INITIAL,
                user=user,
                notes=f"Initial Stock: {quantity} units",
            )
            return batch

    @staticmethod
    def decrement_for_sale(batch_id, quantity, reference="", user=None):
        """
        Take stock out of a batch for a sale.

        The batch row is locked and its live quantity re-validated before the
        update; callers must already be inside a transaction.
        """
        quantity = Decimal(str(quantity))
        if quantity <= 0:
            raise exceptions.ValidationError("Sale quantity must be positive.")

        batch = ProductBatch.objects.locked(batch_id)
        if batch is None:
            raise exceptions.NotFoundError(f"Batch {batch_id} not found.")
        if batch.quantity < quantity:
            raise exceptions.ConflictError(
                f"Insufficient stock for {batch.product.name} in batch "
                f"{batch.batch_number}: available {batch.quantity}, requested {quantity}."
            )

        ProductBatch.objects.filter(pk=batch.pk).update(quantity=F("quantity") - quantity)
        InventoryService._log(
            batch,
            -quantity,
            InventoryLog.TransactionTypes.SALE,
            reference=reference,
            user=user,
            notes=f"Sale: {quantity} units",
        )
        return batch

    @staticmethod
    def restock_return(
        product_id, batch_id, quantity, reference="", user=None, cost_price=None, selling_price=None
    ):
        """
        Put returned units back on the shelf.

        Goes to the originating batch when it still exists, otherwise to the
        product's RETURNED_STOCK batch (created on first use). Service
        products are skipped. Returns the id of the batch restocked, or None.
        """
        quantity = Decimal(str(quantity))
        product = Product.all_objects.filter(pk=product_id).first()
        if product is None:
            raise exceptions.NotFoundError(f"Product {product_id} not found.")
        if product.is_service:
            return None

        batch = ProductBatch.objects.locked(batch_id) if batch_id else None
        if batch is None or batch.product_id != product.pk:
            batch, created = ProductBatch.objects.select_for_update().get_or_create(
                product=product,
                batch_number=RETURNED_STOCK_BATCH,
                defaults={
                    "quantity": Decimal("0"),
                    "cost_price": cost_price or product.cost_price,
                    "selling_price": selling_price,
                },
            )
            if created:
                logger.info(f"Created {RETURNED_STOCK_BATCH} batch for product {product.pk}")

        ProductBatch.objects.filter(pk=batch.pk).update(quantity=F("quantity") + quantity)
        InventoryService._log(
            batch,
            quantity,
            InventoryLog.TransactionTypes.RETURN,
            reference=reference,
            user=user,
            notes=f"Customer Return: {quantity} units",
        )
        return batch.pk

    @staticmethod
    def reverse_return(batch_id, quantity, reference="", user=None):
        """
        Take restocked units back out when a return is undone.

        Returns False without touching stock when the batch is gone or no
        longer holds enough units.
        """
        quantity = Decimal(str(quantity))
        batch = ProductBatch.objects.locked(batch_id) if batch_id else None
        if batch is None:
            logger.warning(
                f"Undo {reference}: batch {batch_id} not found, stock not reversed"
            )
            return False
        if batch.quantity < quantity:
            logger.warning(
                f"Undo {reference}: batch {batch.batch_number} holds {batch.quantity}, "
                f"cannot remove {quantity}; stock not reversed"
            )
            return False

        ProductBatch.objects.filter(pk=batch.pk).update(quantity=F("quantity") - quantity)
        InventoryService._log(
            batch,
            -quantity,
            InventoryLog.TransactionTypes.RETURN_UNDO,
            reference=reference,
            user=user,
            notes=f"Return undone: {quantity} units",
        )
        return True
