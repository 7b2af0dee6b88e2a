from functools import wraps
import logging

from . import exceptions
from .tenancy import resolve_tenant

logger = logging.getLogger(__name__)


def service_action(func):
    """
    Turn a service call into a caller-facing operation.

    The wrapped function receives the resolved Tenant and the user, and its
    return value becomes ``{"success": True, "data": ...}``. Service errors
    become ``{"success": False, "error": ..., "code": ...}``.
    """

    @wraps(func)
    def wrapper(user, *args, **kwargs):
        try:
            tenant = resolve_tenant(user)
            return {"success": True, "data": func(tenant, user, *args, **kwargs)}
        except exceptions.ServiceError as e:
            logger.warning(f"{func.__name__} failed [{e.code}]: {e.message}")
            return e.as_result()

    return wrapper
