"""
Payment collection on top of the order service.

This module implements the PaymentCollector class: charge the customer
through a PaymentProvider, then record the successful charge on the order
with the provider's reference. A declined charge records nothing; a charge
the order then refuses to record is reported with its provider reference.
"""

import uuid
from typing import Any

from bakery_orders.core.exceptions import (
    ChargeNotRecordedError,
    PaymentDeclinedError,
    PaymentProviderError,
)
from bakery_orders.core.logging import get_logger
from bakery_orders.services.payments.provider import PaymentProvider
from bakery_orders.services.pricing.engine import Totals, get_pricing_engine

logger = get_logger(__name__)


class PaymentCollector:
    """
    Charges payments and records them on orders.

    Attributes:
        order_service: Service used to record the payment
        provider: Payment provider used to charge
    """

    def __init__(self, order_service: Any, provider: PaymentProvider):
        self.order_service = order_service
        self.provider = provider
        self.pricing_engine = get_pricing_engine()

    async def collect(
        self,
        order_id: uuid.UUID,
        amount: Any,
        method: str,
        actor: uuid.UUID,
    ) -> Totals:
        """
        Charge ``amount`` and record it on the order.

        The order is checked before charging so a payment the order cannot
        accept is never charged.

        Args:
            order_id: Order to pay
            amount: Amount to charge, greater than zero
            method: Payment method (cash, card, check, ...)
            actor: User recording the payment

        Returns:
            Totals after the payment

        Raises:
            InvalidPaymentError: If the amount or the order cannot take a payment
            PaymentProviderError: If the provider failed
            PaymentDeclinedError: If the provider declined the charge
            ChargeNotRecordedError: If the charge went through but recording
                it failed, e.g. the order was cancelled meanwhile
        """
        value = self.pricing_engine.validate_payment_amount(amount, storable=True)
        await self.order_service.ensure_accepts_payment(order_id, actor)

        logger.info(
            "Charging payment",
            order_id=str(order_id),
            amount=str(value),
            method=method,
        )

        try:
            result = await self.provider.charge(value, method)
        except PaymentProviderError:
            raise
        except Exception as e:
            logger.error(
                "Payment provider failed",
                order_id=str(order_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PaymentProviderError(
                "Payment provider failed",
                order_id=order_id,
                error=str(e),
            ) from e

        if not result.success:
            logger.warning(
                "Payment declined",
                order_id=str(order_id),
                amount=str(value),
                reason=result.decline_reason,
            )
            raise PaymentDeclinedError(
                "Payment was declined",
                order_id=order_id,
                reason=result.decline_reason or "unknown",
            )

        try:
            return await self.order_service.add_payment(
                order_id,
                value,
                method,
                actor,
                provider_reference=result.provider_reference,
            )
        except Exception as e:
            logger.error(
                "Charge captured but not recorded",
                order_id=str(order_id),
                amount=str(value),
                method=method,
                provider_reference=result.provider_reference,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ChargeNotRecordedError(
                "Payment was charged but could not be recorded on the order",
                order_id=order_id,
                amount=value,
                provider_reference=result.provider_reference,
                reason=getattr(e, "error_code", type(e).__name__),
            ) from e
