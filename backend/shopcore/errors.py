# Overview: Error taxonomy shared by services and routes.

"""
Commerce errors.

Every business failure raised by the service layer is a CommerceError.
Routes translate them to JSON as {"error": message, "details": {...}}
with the status code carried by the class.

Database-level concurrency failures (OperationalError, StaleDataError) are
NOT commerce errors; they are retried by run_with_retry and only surface
if every attempt fails.
"""


class CommerceError(Exception):
    """Base class for business-rule failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class UnauthorizedError(CommerceError):
    """Caller lacks the role required for the operation."""
    status_code = 403


class NotFoundError(CommerceError):
    status_code = 404


class CrossTenantError(CommerceError):
    """
    A referenced entity belongs to a different organization.

    SECURITY: Logged as CROSS_TENANT_ACCESS_DENIED before raising.
    """
    status_code = 403


class InsufficientStockError(CommerceError):
    """Requested quantity exceeds current stock (or would drive it negative)."""
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        variant_id: int,
        sku: str | None,
        requested: int,
        available: int,
    ):
        super().__init__(message, details={
            "variant_id": variant_id,
            "sku": sku,
            "requested": requested,
            "available": available,
        })
        self.variant_id = variant_id
        self.sku = sku
        self.requested = requested
        self.available = available


class EmptyOrderError(CommerceError):
    pass


class EmptyCartError(CommerceError):
    pass


class InvalidInputError(CommerceError):
    """400-level input problem."""

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        merged = dict(details or {})
        if field:
            merged.setdefault("field", field)
        super().__init__(message, details=merged)
        self.field = field


class CartNotActiveError(InvalidInputError):
    pass


class InvalidStatusTransitionError(InvalidInputError):
    status_code = 409
