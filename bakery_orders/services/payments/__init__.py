"""Payment provider port and payment collection."""

from bakery_orders.services.payments.provider import (
    ChargeResult,
    ManualPaymentProvider,
    PaymentProvider,
)
from bakery_orders.services.payments.service import PaymentCollector

__all__ = [
    "ChargeResult",
    "ManualPaymentProvider",
    "PaymentCollector",
    "PaymentProvider",
]
