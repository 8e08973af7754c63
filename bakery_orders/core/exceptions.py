"""
Error taxonomy for the order and quote lifecycle.

Exception hierarchy:
    BakeryOrdersError (base)
    ├── Validation errors (HTTP 422)
    │   ├── InvalidLineItemError
    │   ├── InvalidDiscountError
    │   ├── InvalidFeeError
    │   ├── InvalidTaxRateError
    │   └── InvalidPaymentError
    ├── Lifecycle errors (HTTP 409)
    │   ├── IllegalTransitionError
    │   ├── PaymentIncompleteError
    │   ├── IllegalConversionError
    │   ├── AggregateLockedError
    │   └── ConflictError (the only one retried automatically)
    ├── Not found errors (HTTP 404)
    │   ├── OrderNotFoundError
    │   └── ContactNotFoundError
    └── Payment provider errors (HTTP 502 / 409 / 402)
        ├── PaymentProviderError
        │   └── ChargeNotRecordedError
        └── PaymentDeclinedError

Every error carries a stable ``error_code`` and a ``context`` dict so the
HTTP layer can surface the kind, message and details without inspecting
the exception type.
"""

from typing import Any


class BakeryOrdersError(Exception):
    """Base exception for all order lifecycle errors."""

    error_code = "bakery_orders_error"
    http_status = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for an API response body."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": {key: str(value) for key, value in self.context.items()},
        }


class ValidationError(BakeryOrdersError):
    """Input rejected before any state was touched."""

    error_code = "validation_error"
    http_status = 422


class InvalidLineItemError(ValidationError):
    """Raised when a line item quantity or unit price is out of range."""

    error_code = "invalid_line_item"


class InvalidDiscountError(ValidationError):
    """Raised for a negative discount or a percent discount above 100."""

    error_code = "invalid_discount"


class InvalidFeeError(ValidationError):
    """Raised for a negative setup or delivery fee."""

    error_code = "invalid_fee"


class InvalidTaxRateError(ValidationError):
    """Raised when the tax rate falls outside [0, 100]."""

    error_code = "invalid_tax_rate"


class InvalidPaymentError(ValidationError):
    """Raised for a non-positive payment or a payment the aggregate cannot accept."""

    error_code = "invalid_payment"


class LifecycleError(BakeryOrdersError):
    """The request is well-formed but the aggregate's state forbids it."""

    error_code = "lifecycle_error"
    http_status = 409


class IllegalTransitionError(LifecycleError):
    """Raised when a status action is not in the transition table."""

    error_code = "illegal_transition"


class PaymentIncompleteError(LifecycleError):
    """Raised when marking an order paid while a balance is outstanding."""

    error_code = "payment_incomplete"


class IllegalConversionError(LifecycleError):
    """Raised when converting a quote that is not accepted or already converted."""

    error_code = "illegal_conversion"


class AggregateLockedError(LifecycleError):
    """Raised when revising items or terms on a terminal order or quote."""

    error_code = "aggregate_locked"


class ConflictError(LifecycleError):
    """Raised when a concurrent writer changed the aggregate first."""

    error_code = "conflict"


class NotFoundError(BakeryOrdersError):
    """Referenced entity does not exist."""

    error_code = "not_found"
    http_status = 404


class OrderNotFoundError(NotFoundError):
    """Raised when an order or quote id does not resolve."""

    error_code = "order_not_found"


class ContactNotFoundError(NotFoundError):
    """Raised when a contact id does not resolve in the contact directory."""

    error_code = "contact_not_found"


class PaymentProviderError(BakeryOrdersError):
    """Raised when the payment provider could not be reached or errored."""

    error_code = "payment_provider_error"
    http_status = 502


class ChargeNotRecordedError(PaymentProviderError):
    """
    Raised when a charge succeeded but the order refused to record it.

    The context carries the provider reference so the charge can be refunded
    or recorded by hand.
    """

    error_code = "charge_not_recorded"
    http_status = 409


class PaymentDeclinedError(BakeryOrdersError):
    """Raised when the payment provider declined the charge."""

    error_code = "payment_declined"
    http_status = 402
