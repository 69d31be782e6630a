from typing import Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

class ValidationError(BaseServiceError):
    """Raised when input shape or values are invalid."""
    status_code = 400

class NonPositivePayoutError(ValidationError):
    """Raised when fees and commission leave nothing to pay the seller."""
    pass

class MissingPaymentReferenceError(ValidationError):
    """Raised when an order has no payment intent to refund against."""
    pass

class NotFoundError(BaseServiceError):
    """Raised when an order, item, product, shipment or commission row is missing."""
    status_code = 404

class IllegalStateError(BaseServiceError):
    """Raised when a transition is attempted from the wrong state."""
    status_code = 409

class AlreadyRefundedError(IllegalStateError):
    """Raised when an order item has already been refunded."""
    pass

class AlreadyPaidError(IllegalStateError):
    """Raised when the seller has already been paid for an order item."""
    pass

class IllegalVoidError(IllegalStateError):
    """Raised when a shipment can no longer be voided."""
    pass

class InsufficientStockError(BaseServiceError):
    """Raised when a product does not have enough stock for an approval."""
    status_code = 409

class ExternalServiceError(BaseServiceError):
    """Raised when a carrier or payment processor call fails (including timeouts)."""
    status_code = 502

class CarrierError(ExternalServiceError):
    """Raised when carrier API calls fail."""
    pass

class PaymentProcessorError(ExternalServiceError):
    """Raised when payment processor API calls fail."""
    pass

class ReconciliationGapError(BaseServiceError):
    """
    Raised when an external side effect succeeded but the local commit failed.
    The external id must be reconciled out of band.
    """
    status_code = 500

    def __init__(self, message: str = "", external_id: Optional[str] = None):
        super().__init__(message)
        self.external_id = external_id
