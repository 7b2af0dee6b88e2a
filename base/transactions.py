from contextlib import contextmanager
from django.conf import settings
from django.db import DatabaseError, IntegrityError, connection, transaction
import logging

from . import exceptions

logger = logging.getLogger(__name__)


@contextmanager
def atomic_with_timeout(seconds=None):
    """
    Open an atomic block bounded by a statement timeout.

    On PostgreSQL the timeout is applied with SET LOCAL so it ends with the
    transaction. Other backends only get the atomic block.
    """
    seconds = seconds or settings.TRANSACTION_TIMEOUT_SECONDS
    with transaction.atomic():
        if connection.vendor == "postgresql":
            with connection.cursor() as cursor:
                cursor.execute(
                    "SET LOCAL statement_timeout = %s", [f"{int(seconds * 1000)}ms"]
                )
        yield


def translate_database_error(error, duplicate_message=None):
    """Map a database exception onto the service error taxonomy"""
    if isinstance(error, IntegrityError) and duplicate_message:
        return exceptions.ConflictError(duplicate_message)

    logger.error(f"Database failure: {error}")
    return exceptions.IntegrationError(f"Database error: {error}")


@contextmanager
def service_transaction(duplicate_message=None):
    """
    atomic_with_timeout plus translation of raw database errors.

    Service errors raised inside the block propagate unchanged after the
    rollback.
    """
    try:
        with atomic_with_timeout():
            yield
    except exceptions.ServiceError:
        raise
    except DatabaseError as e:
        raise translate_database_error(e, duplicate_message) from e
