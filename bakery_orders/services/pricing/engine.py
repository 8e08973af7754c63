"""
Pricing calculation engine for order and quote totals.

This module implements the PricingEngine used by every order and quote:
subtotal from line items, percent or fixed discount, tax on the discounted
base, setup and delivery fees, and the paid/outstanding balance. The steps
run in a fixed order and monetary results are rounded once, at the end, to
currency precision (two places, half-up).
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import UUID

from bakery_orders.core.exceptions import (
    InvalidDiscountError,
    InvalidFeeError,
    InvalidLineItemError,
    InvalidPaymentError,
    InvalidTaxRateError,
)
from bakery_orders.core.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CURRENCY_PRECISION = Decimal("0.01")

# Largest value and finest step the order columns store exactly
MAX_STORED_AMOUNT = Decimal("99999999.99")
MONEY_STEP = CURRENCY_PRECISION
RATE_STEP = Decimal("0.0001")


class DiscountType(str, Enum):
    """How the discount value of an order or quote is interpreted."""

    PERCENT = "percent"
    FIXED = "fixed"

    @classmethod
    def from_string(cls, value: str) -> "DiscountType":
        """
        Convert string to DiscountType enum.

        Accepts the legacy ``%`` and ``$`` markers stored by older records.

        Raises:
            InvalidDiscountError: If value is not a known discount type
        """
        legacy = {"%": cls.PERCENT, "$": cls.FIXED}
        if value in legacy:
            return legacy[value]
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join(t.value for t in cls)
            raise InvalidDiscountError(
                f"Invalid discount type: {value}. Valid values are: {valid_values}",
                discount_type=value,
            )


@dataclass(frozen=True)
class LineItemData:
    """A line item as submitted for pricing, before it is persisted."""

    name: str
    quantity: int
    unit_price: Decimal
    description: Optional[str] = None
    product_id: Optional[UUID] = None
    item_type: str = "Product"
    notes: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class Totals:
    """Derived money figures for one order or quote."""

    subtotal: Decimal
    discount_amount: Decimal
    taxable_base: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    outstanding: Decimal

    @property
    def is_settled(self) -> bool:
        """True when nothing is left to pay."""
        return self.outstanding == ZERO

    def to_dict(self) -> dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "taxable_base": self.taxable_base,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "amount_paid": self.amount_paid,
            "outstanding": self.outstanding,
        }


def to_money(value: Decimal) -> Decimal:
    """Round a monetary value to currency precision, half-up."""
    return value.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any, error_cls: type, field_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise error_cls(f"{field_name} must be a number", field=field_name, value=value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise error_cls(
                f"{field_name} must be a number",
                field=field_name,
                value=value,
            ) from e
    if not result.is_finite():
        raise error_cls(f"{field_name} must be finite", field=field_name, value=value)
    return result


def _check_storable(value: Decimal, step: Decimal, error_cls: type, field_name: str) -> None:
    if abs(value) > MAX_STORED_AMOUNT:
        raise error_cls(
            f"{field_name} is too large",
            field=field_name,
            value=value,
            max_value=MAX_STORED_AMOUNT,
        )
    if value.quantize(step) != value:
        raise error_cls(
            f"{field_name} has more decimal places than can be stored",
            field=field_name,
            value=value,
            max_places=-step.as_tuple().exponent,
        )


class PricingEngine:
    """
    Pure pricing calculator for orders and quotes.

    Holds no state beyond its limits, so one instance can be shared freely
    between concurrent requests.
    """

    MIN_PRICE = ZERO
    MAX_DISCOUNT_PERCENTAGE = HUNDRED
    MAX_TAX_RATE = HUNDRED

    def validate_line_item(
        self, quantity: Any, unit_price: Any, storable: bool = False
    ) -> tuple[int, Decimal]:
        """
        Validate one line item's quantity and unit price.

        Args:
            quantity: Number of units, an integer of at least 1
            unit_price: Price per unit, non-negative
            storable: Also require a price the order columns hold exactly

        Returns:
            Normalized (quantity, unit_price)

        Raises:
            InvalidLineItemError: If quantity or unit price is out of range
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidLineItemError(
                "Line item quantity must be an integer",
                quantity=quantity,
            )
        if quantity < 1:
            raise InvalidLineItemError(
                "Line item quantity must be at least 1",
                quantity=quantity,
            )

        price = _to_decimal(unit_price, InvalidLineItemError, "unit_price")
        if price < self.MIN_PRICE:
            raise InvalidLineItemError(
                "Line item unit price cannot be negative",
                unit_price=price,
            )
        if storable:
            _check_storable(price, MONEY_STEP, InvalidLineItemError, "unit_price")
        return quantity, price

    def validate_discount(
        self,
        discount: Any,
        discount_type: DiscountType | str,
        storable: bool = False,
    ) -> tuple[Decimal, DiscountType]:
        """
        Validate a discount value against its type.

        Raises:
            InvalidDiscountError: If negative, or a percent above 100
        """
        if not isinstance(discount_type, DiscountType):
            discount_type = DiscountType.from_string(discount_type)

        value = _to_decimal(discount, InvalidDiscountError, "discount")
        if value < ZERO:
            raise InvalidDiscountError(
                "Discount cannot be negative",
                discount=value,
                discount_type=discount_type.value,
            )
        if discount_type == DiscountType.PERCENT and value > self.MAX_DISCOUNT_PERCENTAGE:
            raise InvalidDiscountError(
                "Percent discount cannot exceed 100",
                discount=value,
                max_discount=self.MAX_DISCOUNT_PERCENTAGE,
            )
        if storable:
            _check_storable(value, MONEY_STEP, InvalidDiscountError, "discount")
        return value, discount_type

    def validate_fee(self, fee: Any, field_name: str, storable: bool = False) -> Decimal:
        """
        Validate a setup or delivery fee.

        Raises:
            InvalidFeeError: If the fee is negative
        """
        value = _to_decimal(fee, InvalidFeeError, field_name)
        if value < ZERO:
            raise InvalidFeeError(
                f"{field_name} cannot be negative",
                field=field_name,
                value=value,
            )
        if storable:
            _check_storable(value, MONEY_STEP, InvalidFeeError, field_name)
        return value

    def validate_tax_rate(self, tax_rate: Any, storable: bool = False) -> Decimal:
        """
        Validate a tax rate percentage.

        Raises:
            InvalidTaxRateError: If the rate is outside [0, 100]
        """
        value = _to_decimal(tax_rate, InvalidTaxRateError, "tax_rate")
        if value < ZERO or value > self.MAX_TAX_RATE:
            raise InvalidTaxRateError(
                "Tax rate must be between 0 and 100",
                tax_rate=value,
            )
        if storable:
            _check_storable(value, RATE_STEP, InvalidTaxRateError, "tax_rate")
        return value

    def validate_payment_amount(self, amount: Any, storable: bool = False) -> Decimal:
        """
        Validate a single payment amount.

        Raises:
            InvalidPaymentError: If the amount is not strictly positive
        """
        value = _to_decimal(amount, InvalidPaymentError, "amount")
        if value <= ZERO:
            raise InvalidPaymentError(
                "Payment amount must be greater than zero",
                amount=value,
            )
        if storable:
            _check_storable(value, MONEY_STEP, InvalidPaymentError, "amount")
        return value

    def validate_pricing_terms(
        self,
        discount: Any,
        discount_type: DiscountType | str,
        setup_fee: Any,
        delivery_fee: Any,
        tax_rate: Any,
        storable: bool = False,
    ) -> dict[str, Any]:
        """
        Validate the order-level pricing terms together.

        With ``storable`` set, money terms must fit two decimal places and
        the tax rate four, so persisted terms price exactly as validated.

        Returns:
            Normalized terms keyed by field name
        """
        discount_value, discount_kind = self.validate_discount(
            discount, discount_type, storable=storable
        )
        return {
            "discount": discount_value,
            "discount_type": discount_kind,
            "setup_fee": self.validate_fee(setup_fee, "setup_fee", storable=storable),
            "delivery_fee": self.validate_fee(delivery_fee, "delivery_fee", storable=storable),
            "tax_rate": self.validate_tax_rate(tax_rate, storable=storable),
        }

    def compute_totals(
        self,
        items: Iterable[Any],
        discount: Any = ZERO,
        discount_type: DiscountType | str = DiscountType.PERCENT,
        setup_fee: Any = ZERO,
        delivery_fee: Any = ZERO,
        tax_rate: Any = ZERO,
        payments: Iterable[Any] = (),
    ) -> Totals:
        """
        Compute the totals of an order or quote.

        Items need ``quantity`` and ``unit_price`` attributes; payments need an
        ``amount`` attribute. An empty item list prices to zero.

        Args:
            items: Line items
            discount: Discount value, a percentage or a fixed amount
            discount_type: How to interpret ``discount``
            setup_fee: Flat setup fee, added after tax
            delivery_fee: Flat delivery fee, added after tax
            tax_rate: Tax percentage applied to the discounted subtotal
            payments: Recorded payments

        Returns:
            Totals rounded to currency precision

        Raises:
            InvalidLineItemError: If an item is out of range
            InvalidDiscountError: If the discount is out of range
            InvalidFeeError: If a fee is negative
            InvalidTaxRateError: If the tax rate is outside [0, 100]
            InvalidPaymentError: If a payment amount is not positive
        """
        terms = self.validate_pricing_terms(
            discount, discount_type, setup_fee, delivery_fee, tax_rate
        )

        subtotal = ZERO
        for item in items:
            quantity, unit_price = self.validate_line_item(item.quantity, item.unit_price)
            subtotal += quantity * unit_price

        if terms["discount_type"] == DiscountType.PERCENT:
            discount_amount = subtotal * terms["discount"] / HUNDRED
        else:
            discount_amount = min(terms["discount"], subtotal)

        taxable_base = max(ZERO, subtotal - discount_amount)
        tax_amount = taxable_base * terms["tax_rate"] / HUNDRED
        total = taxable_base + tax_amount + terms["setup_fee"] + terms["delivery_fee"]

        amount_paid = ZERO
        for payment in payments:
            amount_paid += self.validate_payment_amount(payment.amount)

        outstanding = max(ZERO, total - amount_paid)

        totals = Totals(
            subtotal=to_money(subtotal),
            discount_amount=to_money(discount_amount),
            taxable_base=to_money(taxable_base),
            tax_amount=to_money(tax_amount),
            total=to_money(total),
            amount_paid=to_money(amount_paid),
            outstanding=to_money(outstanding),
        )

        logger.debug(
            "Computed totals",
            subtotal=str(totals.subtotal),
            total=str(totals.total),
            outstanding=str(totals.outstanding),
        )

        return totals


_default_engine = PricingEngine()


def get_pricing_engine() -> PricingEngine:
    """Return the shared pricing engine instance."""
    return _default_engine


def compute_totals(
    items: Iterable[Any],
    discount: Any = ZERO,
    discount_type: DiscountType | str = DiscountType.PERCENT,
    setup_fee: Any = ZERO,
    delivery_fee: Any = ZERO,
    tax_rate: Any = ZERO,
    payments: Iterable[Any] = (),
) -> Totals:
    """Compute totals with the shared engine. See PricingEngine.compute_totals."""
    return _default_engine.compute_totals(
        items,
        discount=discount,
        discount_type=discount_type,
        setup_fee=setup_fee,
        delivery_fee=delivery_fee,
        tax_rate=tax_rate,
        payments=payments,
    )
