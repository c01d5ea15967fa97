# Overview: Tagged business errors raised by the service layer and mapped to HTTP by the routes.

from __future__ import annotations


class ServiceError(Exception):
    """
    Base for caller-visible business failures.

    Carries a machine-readable `code`, the HTTP `status` the route layer
    should answer with, and optional structured `details`.
    """
    status = 400
    code = "service-error"

    def __init__(self, message: str | None = None, *, code: str | None = None, details: dict | None = None):
        if code is not None:
            self.code = code
        super().__init__(message or self.code)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(ServiceError):
    """400-level input problem; nothing was written."""
    code = "invalid-field"


class NotFoundError(ServiceError):
    status = 404
    code = "not-found"


class ProductNotFoundError(ServiceError):
    code = "product-not-found"

    def __init__(self, product_id):
        super().__init__(f"product-not-found:{product_id}", details={"product_id": product_id})
        self.product_id = product_id


class ProductInactiveError(ServiceError):
    code = "product-inactive"

    def __init__(self, product_id, name: str | None = None):
        super().__init__(
            f"product-inactive:{name or product_id}",
            details={"product_id": product_id, "name": name},
        )
        self.product_id = product_id


class InsufficientStockError(ServiceError):
    """Requested quantity exceeds the sellable stock of a product."""
    code = "stock-too-low"

    def __init__(self, product_id, requested: int | None = None, available: int | None = None):
        details = {"product_id": product_id}
        if requested is not None:
            details["requested"] = requested
        if available is not None:
            details["available"] = available
        super().__init__(f"stock-too-low:{product_id}", details=details)
        self.product_id = product_id


class ConcurrencyConflictError(ServiceError):
    """Transient conflict with a concurrent transaction; safe to retry."""
    status = 409
    code = "concurrency-conflict"


class SequenceIntegrityError(RuntimeError):
    """Daily sequence row missing after insert-if-absent. Internal defect."""
