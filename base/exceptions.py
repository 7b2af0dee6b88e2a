"""
Service-level error taxonomy shared by every app.

Services raise these inside atomic blocks so the whole unit of work rolls
back; the caller-facing actions convert them into result dictionaries.
"""


class ServiceError(Exception):
    """Base class for errors surfaced to callers as a failed result"""

    code = "service_error"

    def __init__(self, message, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self):
        return self.message

    def as_result(self):
        return {"success": False, "error": self.message, "code": self.code}


class ValidationError(ServiceError):
    """Malformed input, rejected before any transaction starts"""

    code = "validation_error"


class NotFoundError(ServiceError):
    """Referenced sale, batch, installment or campaign is missing"""

    code = "not_found"


class ConflictError(ServiceError):
    """Stock, balance, uniqueness or state conflicts"""

    code = "conflict"


class ConsistencyError(ServiceError):
    """Mutation attempted on a record in the wrong lifecycle state"""

    code = "consistency_error"


class IntegrationError(ServiceError):
    """Persistence or transaction layer failure, including timeouts"""

    code = "integration_error"
