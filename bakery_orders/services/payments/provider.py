"""
Payment provider port.

The lifecycle core never talks to a payment SDK directly. A provider charges
an amount and reports the outcome; the collector records successful charges
on the order.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol
from uuid import uuid4

from bakery_orders.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    """Outcome of a charge attempt."""

    provider_reference: Optional[str]
    success: bool
    decline_reason: Optional[str] = None


class PaymentProvider(Protocol):
    """Anything able to charge an amount by payment method.

    Implementations raise ``PaymentProviderError`` when the provider cannot
    be reached and return ``success=False`` for a declined charge.
    """

    async def charge(self, amount: Decimal, method: str) -> ChargeResult:
        ...


class ManualPaymentProvider:
    """
    Provider for payments taken outside any processor (cash, check, transfer).

    Every charge succeeds; the reference only identifies the manual entry.
    """

    prefix = "MAN"

    async def charge(self, amount: Decimal, method: str) -> ChargeResult:
        reference = f"{self.prefix}-{uuid4().hex[:10].upper()}"
        logger.debug(
            "Manual payment accepted",
            amount=str(amount),
            method=method,
            provider_reference=reference,
        )
        return ChargeResult(provider_reference=reference, success=True)
