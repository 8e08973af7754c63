"""
Test suite for PaymentCollector and the manual payment provider.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from bakery_orders.core.exceptions import (
    ChargeNotRecordedError,
    ConflictError,
    InvalidPaymentError,
    PaymentDeclinedError,
    PaymentProviderError,
)
from bakery_orders.services.orders.enums import StatusAction
from bakery_orders.services.payments import (
    ChargeResult,
    ManualPaymentProvider,
    PaymentCollector,
)


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def mock_order_service() -> Mock:
    service = Mock()
    service.ensure_accepts_payment = AsyncMock()
    service.add_payment = AsyncMock(return_value=Mock(outstanding=Decimal("0.00")))
    return service


@pytest.fixture
def mock_provider() -> Mock:
    provider = Mock()
    provider.charge = AsyncMock(
        return_value=ChargeResult(provider_reference="ch_123", success=True)
    )
    return provider


# ============================================================================
# Collector Tests
# ============================================================================


class TestPaymentCollector:
    """Test charging then recording payments."""

    @pytest.mark.asyncio
    async def test_successful_charge_is_recorded(self, mock_order_service, mock_provider):
        collector = PaymentCollector(mock_order_service, mock_provider)
        order_id = uuid.uuid4()
        actor = uuid.uuid4()

        totals = await collector.collect(order_id, "25.00", "card", actor)

        assert totals.outstanding == Decimal("0.00")
        mock_provider.charge.assert_awaited_once_with(Decimal("25.00"), "card")
        mock_order_service.add_payment.assert_awaited_once_with(
            order_id,
            Decimal("25.00"),
            "card",
            actor,
            provider_reference="ch_123",
        )

    @pytest.mark.asyncio
    async def test_declined_charge_records_nothing(self, mock_order_service, mock_provider):
        mock_provider.charge.return_value = ChargeResult(
            provider_reference=None, success=False, decline_reason="insufficient_funds"
        )
        collector = PaymentCollector(mock_order_service, mock_provider)

        with pytest.raises(PaymentDeclinedError) as exc_info:
            await collector.collect(uuid.uuid4(), Decimal("10"), "card", uuid.uuid4())

        assert exc_info.value.context["reason"] == "insufficient_funds"
        assert exc_info.value.http_status == 402
        mock_order_service.add_payment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_is_wrapped(self, mock_order_service, mock_provider):
        mock_provider.charge.side_effect = ConnectionError("timeout")
        collector = PaymentCollector(mock_order_service, mock_provider)

        with pytest.raises(PaymentProviderError) as exc_info:
            await collector.collect(uuid.uuid4(), Decimal("10"), "card", uuid.uuid4())

        assert exc_info.value.context["error"] == "timeout"
        mock_order_service.add_payment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_error_passes_through(self, mock_order_service, mock_provider):
        original = PaymentProviderError("Gateway unavailable")
        mock_provider.charge.side_effect = original
        collector = PaymentCollector(mock_order_service, mock_provider)

        with pytest.raises(PaymentProviderError) as exc_info:
            await collector.collect(uuid.uuid4(), Decimal("10"), "card", uuid.uuid4())

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_invalid_amount_is_never_charged(self, mock_order_service, mock_provider):
        collector = PaymentCollector(mock_order_service, mock_provider)

        with pytest.raises(InvalidPaymentError):
            await collector.collect(uuid.uuid4(), Decimal("0"), "card", uuid.uuid4())

        mock_provider.charge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_order_refusing_payment_is_never_charged(
        self, mock_order_service, mock_provider
    ):
        mock_order_service.ensure_accepts_payment.side_effect = InvalidPaymentError(
            "Payments can only be recorded on orders"
        )
        collector = PaymentCollector(mock_order_service, mock_provider)

        with pytest.raises(InvalidPaymentError):
            await collector.collect(uuid.uuid4(), Decimal("5"), "card", uuid.uuid4())

        mock_provider.charge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_collect_with_manual_provider_end_to_end(
        self, order_service, actor, contact, cake_items
    ):
        order = await order_service.create_order(actor, contact.id, cake_items)
        await order_service.change_status(order.id, StatusAction.CONFIRM, actor)
        collector = PaymentCollector(order_service, ManualPaymentProvider())

        totals = await collector.collect(order.id, Decimal("20.00"), "cash", actor)

        assert totals.outstanding == Decimal("0.00")
        reloaded = await order_service.get(order.id, actor)
        assert reloaded.payments[0].provider_reference.startswith("MAN-")

    @pytest.mark.asyncio
    async def test_unrecorded_charge_keeps_provider_reference(
        self, mock_order_service, mock_provider
    ):
        mock_order_service.add_payment.side_effect = ConflictError(
            "Order was modified concurrently"
        )
        collector = PaymentCollector(mock_order_service, mock_provider)

        with pytest.raises(ChargeNotRecordedError) as exc_info:
            await collector.collect(uuid.uuid4(), Decimal("25.00"), "card", uuid.uuid4())

        assert exc_info.value.context["provider_reference"] == "ch_123"
        assert exc_info.value.context["reason"] == "conflict"
        assert exc_info.value.http_status == 409
        assert isinstance(exc_info.value.__cause__, ConflictError)

    @pytest.mark.asyncio
    async def test_order_cancelled_during_charge_reports_unrecorded_charge(
        self, order_service, actor, contact, cake_items
    ):
        order = await order_service.create_order(actor, contact.id, cake_items)
        order_id = order.id
        await order_service.change_status(order_id, StatusAction.CONFIRM, actor)

        async def cancel_then_succeed(amount, method):
            await order_service.change_status(order_id, StatusAction.CANCEL, actor)
            return ChargeResult(provider_reference="ch_late", success=True)

        provider = Mock()
        provider.charge = AsyncMock(side_effect=cancel_then_succeed)
        collector = PaymentCollector(order_service, provider)

        with pytest.raises(ChargeNotRecordedError) as exc_info:
            await collector.collect(order_id, Decimal("20.00"), "card", actor)

        assert exc_info.value.context["provider_reference"] == "ch_late"
        assert isinstance(exc_info.value.__cause__, InvalidPaymentError)
        reloaded = await order_service.get(order_id, actor)
        assert reloaded.payments == []


class TestManualPaymentProvider:
    """Test the manual provider."""

    @pytest.mark.asyncio
    async def test_charge_always_succeeds(self):
        result = await ManualPaymentProvider().charge(Decimal("12.50"), "cash")

        assert result.success
        assert result.decline_reason is None
        assert len(result.provider_reference) == len("MAN-") + 10
