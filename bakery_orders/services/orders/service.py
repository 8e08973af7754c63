"""
Order service orchestrating the order and quote lifecycle.

This module implements the OrderService class: creating orders and quotes,
recording payments, applying status actions, converting accepted quotes,
revising items and pricing terms, and reading orders, totals and history.

Every mutating operation is one read-modify-write unit of work run under the
aggregate's in-process lock. A version conflict from a concurrent writer is
retried from a fresh read; any other error rolls the unit of work back and
propagates. Customer notifications go out only after commit.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from bakery_orders.core.config import Settings, get_settings
from bakery_orders.core.exceptions import (
    AggregateLockedError,
    ConflictError,
    IllegalConversionError,
    IllegalTransitionError,
    InvalidPaymentError,
    ValidationError,
)
from bakery_orders.core.logging import get_logger
from bakery_orders.database.base import utcnow
from bakery_orders.database.models import Order, OrderItem, OrderLog, Payment
from bakery_orders.services.contacts.repository import ContactRepository
from bakery_orders.services.notifications.service import (
    NotificationEvent,
    NotificationSender,
    event_for_action,
    get_notification_sender,
)
from bakery_orders.services.orders.audit_log import AuditHistory, AuditLog
from bakery_orders.services.orders.enums import (
    AuditAction,
    DeliveryType,
    DocumentKind,
    EventType,
    OrderStatus,
    QuoteStatus,
    StatusAction,
    initial_status,
    parse_status,
)
from bakery_orders.services.orders.locking import AggregateLockProvider, get_lock_provider
from bakery_orders.services.orders.repository import OrderRepository
from bakery_orders.services.orders.state_machine import StatusStateMachine
from bakery_orders.services.pricing.engine import (
    DiscountType,
    LineItemData,
    Totals,
    get_pricing_engine,
)

logger = get_logger(__name__)

T = TypeVar("T")


class OrderService:
    """
    Order service for the order and quote lifecycle.

    Attributes:
        repository: Order repository for data access
        contacts: Contact directory used to validate contacts and address
            notifications
        audit_log: Append-only audit log
        state_machine: Status state machine
        pricing_engine: Stateless pricing engine
        notification_sender: Sender for post-commit customer notifications
        lock_provider: Per-aggregate lock provider
        settings: Application settings
    """

    def __init__(
        self,
        session: AsyncSession,
        contact_repository: Optional[ContactRepository] = None,
        notification_sender: Optional[NotificationSender] = None,
        lock_provider: Optional[AggregateLockProvider] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize order service.

        Args:
            session: Async database session, committed once per operation
            contact_repository: Optional contact directory
            notification_sender: Optional notification sender
            lock_provider: Optional lock provider, the process-wide one by default
            settings: Optional settings, the cached ones by default
        """
        self.session = session
        self.repository = OrderRepository(session)
        self.contacts = contact_repository or ContactRepository(session)
        self.audit_log = AuditLog(session)
        self.state_machine = StatusStateMachine(self.audit_log)
        self.pricing_engine = get_pricing_engine()
        self.notification_sender = notification_sender or get_notification_sender()
        self.lock_provider = lock_provider or get_lock_provider()
        self.settings = settings or get_settings()

    # Creation

    async def create_order(
        self,
        actor: uuid.UUID,
        contact_id: uuid.UUID,
        items: Sequence[LineItemData],
        delivery_type: DeliveryType = DeliveryType.PICKUP,
        delivery_details: Optional[str] = None,
        event_type: EventType = EventType.OTHER,
        event_date: Optional[date] = None,
        theme: Optional[str] = None,
        discount: Any = Decimal("0"),
        discount_type: DiscountType | str = DiscountType.PERCENT,
        setup_fee: Any = Decimal("0"),
        delivery_fee: Any = Decimal("0"),
        tax_rate: Any = None,
        notes: Optional[str] = None,
        job_sheet_notes: Optional[str] = None,
    ) -> Order:
        """
        Create a new order in Draft.

        Items and pricing terms are validated before anything is written.

        Args:
            actor: User creating the order; becomes its owner
            contact_id: Customer contact
            items: Line items
            delivery_type: Pickup or Delivery
            delivery_details: Address or pickup instructions
            event_type: Occasion
            event_date: Date of the event
            theme: Optional theme
            discount: Discount value
            discount_type: percent or fixed
            setup_fee: Flat setup fee
            delivery_fee: Flat delivery fee
            tax_rate: Tax percentage, the configured default when omitted; at
                most four decimal places
            notes: Optional notes
            job_sheet_notes: Optional production notes for the job sheet

        Returns:
            The created order

        Raises:
            InvalidLineItemError: If an item is out of range or its price has
                fractions of a cent
            InvalidDiscountError: If the discount is out of range
            InvalidFeeError: If a fee is negative
            InvalidTaxRateError: If the tax rate is outside [0, 100]
            ContactNotFoundError: If the contact does not exist or belongs
                to another account
        """
        return await self._create(
            DocumentKind.ORDER,
            actor=actor,
            contact_id=contact_id,
            items=items,
            delivery_type=delivery_type,
            delivery_details=delivery_details,
            event_type=event_type,
            event_date=event_date,
            theme=theme,
            discount=discount,
            discount_type=discount_type,
            setup_fee=setup_fee,
            delivery_fee=delivery_fee,
            tax_rate=tax_rate,
            notes=notes,
            job_sheet_notes=job_sheet_notes,
            expiry_date=None,
        )

    async def create_quote(
        self,
        actor: uuid.UUID,
        contact_id: uuid.UUID,
        items: Sequence[LineItemData],
        delivery_type: DeliveryType = DeliveryType.PICKUP,
        delivery_details: Optional[str] = None,
        event_type: EventType = EventType.OTHER,
        event_date: Optional[date] = None,
        theme: Optional[str] = None,
        discount: Any = Decimal("0"),
        discount_type: DiscountType | str = DiscountType.PERCENT,
        setup_fee: Any = Decimal("0"),
        delivery_fee: Any = Decimal("0"),
        tax_rate: Any = None,
        notes: Optional[str] = None,
        job_sheet_notes: Optional[str] = None,
        expiry_date: Optional[date] = None,
    ) -> Order:
        """
        Create a new quote in Draft.

        Same as ``create_order``; ``expiry_date`` defaults to today plus the
        configured quote validity.
        """
        if expiry_date is None:
            expiry_date = utcnow().date() + timedelta(days=self.settings.quote_validity_days)

        return await self._create(
            DocumentKind.QUOTE,
            actor=actor,
            contact_id=contact_id,
            items=items,
            delivery_type=delivery_type,
            delivery_details=delivery_details,
            event_type=event_type,
            event_date=event_date,
            theme=theme,
            discount=discount,
            discount_type=discount_type,
            setup_fee=setup_fee,
            delivery_fee=delivery_fee,
            tax_rate=tax_rate,
            notes=notes,
            job_sheet_notes=job_sheet_notes,
            expiry_date=expiry_date,
        )

    async def _create(
        self,
        kind: DocumentKind,
        actor: uuid.UUID,
        contact_id: uuid.UUID,
        items: Sequence[LineItemData],
        tax_rate: Any,
        **fields: Any,
    ) -> Order:
        logger.info(
            "Creating order",
            kind=kind.value,
            contact_id=str(contact_id),
            item_count=len(items),
        )

        line_items = self._build_items(items)
        terms = self.pricing_engine.validate_pricing_terms(
            fields.pop("discount"),
            fields.pop("discount_type"),
            fields.pop("setup_fee"),
            fields.pop("delivery_fee"),
            self.settings.default_tax_rate if tax_rate is None else tax_rate,
            storable=True,
        )

        try:
            contact = await self.contacts.get_contact(contact_id, user_id=actor)

            order = Order(
                id=uuid.uuid4(),
                kind=kind,
                number=self._generate_number(kind),
                user_id=actor,
                contact_id=contact.id,
                status_value=initial_status(kind).value,
                items=line_items,
                payments=[],
                **terms,
                **fields,
            )
            await self.repository.add(order)

            self.audit_log.record(
                order,
                AuditAction.CREATED,
                f"{kind.value.capitalize()} {order.number} created for {contact.full_name}",
                actor,
            )
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order created successfully",
            order_id=str(order.id),
            kind=kind.value,
            number=order.number,
            total=str(order.totals.total),
        )

        return order

    # Mutations

    async def ensure_accepts_payment(
        self, order_id: uuid.UUID, actor: uuid.UUID
    ) -> Order:
        """
        Check that an order can take a payment, without changing it.

        Raises:
            OrderNotFoundError: If the actor has no such order
            InvalidPaymentError: If it is a quote or a cancelled order
        """
        order = await self.repository.load(order_id, user_id=actor)
        self._check_accepts_payment(order)
        return order

    async def add_payment(
        self,
        order_id: uuid.UUID,
        amount: Any,
        method: str,
        actor: uuid.UUID,
        provider_reference: Optional[str] = None,
    ) -> Totals:
        """
        Record a payment on an order.

        Args:
            order_id: Order being paid
            amount: Amount paid, greater than zero
            method: Payment method label
            actor: User recording the payment
            provider_reference: Optional payment provider reference

        Returns:
            Totals after the payment

        Raises:
            InvalidPaymentError: If the amount is not positive, the method is
                blank, or the order cannot take payments
            OrderNotFoundError: If the actor has no such order
            ConflictError: If concurrent writers kept winning
        """
        value = self.pricing_engine.validate_payment_amount(amount, storable=True)
        if not method or not method.strip():
            raise InvalidPaymentError("Payment method is required", order_id=order_id)
        method = method.strip()

        async def record_payment(order: Order) -> Totals:
            self._check_accepts_payment(order)

            order.payments.append(
                Payment(
                    amount=value,
                    method=method,
                    provider_reference=provider_reference,
                    recorded_at=utcnow(),
                    recorded_by=actor,
                )
            )
            totals = order.totals

            self.audit_log.record(
                order,
                AuditAction.PAYMENT_RECORDED,
                f"Payment of {value} via {method}; outstanding {totals.outstanding}",
                actor,
            )
            return totals

        order, totals = await self._run_unit_of_work(order_id, actor, record_payment)

        logger.info(
            "Payment recorded",
            order_id=str(order_id),
            amount=str(value),
            method=method,
            outstanding=str(totals.outstanding),
        )

        await self._notify(NotificationEvent.PAYMENT_RECEIVED, order)
        return totals

    async def change_status(
        self,
        order_id: uuid.UUID,
        action: StatusAction,
        actor: uuid.UUID,
    ) -> Order:
        """
        Apply a status action to an order or quote.

        Raises:
            OrderNotFoundError: If the actor has no such order
            IllegalTransitionError: If the action is not allowed from the
                current status
            PaymentIncompleteError: If marking paid with a balance outstanding
            ConflictError: If concurrent writers kept winning
        """
        return await self._apply_action(order_id, action, actor, owner=actor)

    async def _apply_action(
        self,
        order_id: uuid.UUID,
        action: StatusAction,
        actor: uuid.UUID,
        owner: Optional[uuid.UUID],
    ) -> Order:
        async def apply(order: Order) -> None:
            self.state_machine.apply_transition(order, action, actor)

        order, _ = await self._run_unit_of_work(order_id, owner, apply)

        await self._notify(event_for_action(order.kind, action), order)
        return order

    async def convert_quote_to_order(
        self,
        quote_id: uuid.UUID,
        actor: uuid.UUID,
    ) -> Order:
        """
        Convert an accepted quote into a new Draft order.

        Items, contact, event details and pricing terms are copied. A quote
        converts at most once.

        Returns:
            The new order

        Raises:
            OrderNotFoundError: If the actor has no such quote
            IllegalConversionError: If the aggregate is not an accepted quote
                or was already converted
        """

        async def convert(quote: Order) -> Order:
            if not quote.is_quote:
                raise IllegalConversionError(
                    "Only quotes can be converted to orders",
                    quote_id=quote.id,
                )
            if quote.status != QuoteStatus.ACCEPTED:
                raise IllegalConversionError(
                    "Only accepted quotes can be converted to orders",
                    quote_id=quote.id,
                    status=quote.status.value,
                )

            existing = await self.repository.find_conversion(quote.id)
            if existing is not None:
                raise IllegalConversionError(
                    "Quote was already converted",
                    quote_id=quote.id,
                    order_id=existing.id,
                )

            # Claim the quote before inserting so racing converters conflict
            quote.updated_at = utcnow()
            await self.repository.save(quote)

            order = Order(
                id=uuid.uuid4(),
                kind=DocumentKind.ORDER,
                number=self._generate_number(DocumentKind.ORDER),
                user_id=quote.user_id,
                contact_id=quote.contact_id,
                status_value=OrderStatus.DRAFT.value,
                event_type=quote.event_type,
                event_date=quote.event_date,
                theme=quote.theme,
                delivery_type=quote.delivery_type,
                delivery_details=quote.delivery_details,
                discount=quote.discount,
                discount_type=quote.discount_type,
                setup_fee=quote.setup_fee,
                delivery_fee=quote.delivery_fee,
                tax_rate=quote.tax_rate,
                notes=quote.notes,
                job_sheet_notes=quote.job_sheet_notes,
                source_quote_id=quote.id,
                items=[
                    OrderItem(
                        position=position,
                        product_id=item.product_id,
                        item_type=item.item_type,
                        name=item.name,
                        description=item.description,
                        notes=item.notes,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                    )
                    for position, item in enumerate(quote.items)
                ],
                payments=[],
            )
            await self.repository.add(order)

            self.audit_log.record(
                quote,
                AuditAction.CONVERTED_TO_ORDER,
                f"Converted to order {order.number}",
                actor,
            )
            self.audit_log.record(
                order,
                AuditAction.CREATED,
                f"Order {order.number} created from quote {quote.number}",
                actor,
            )
            return order

        _, order = await self._run_unit_of_work(quote_id, actor, convert)

        logger.info(
            "Quote converted to order",
            quote_id=str(quote_id),
            order_id=str(order.id),
            number=order.number,
        )

        return order

    async def revise(
        self,
        order_id: uuid.UUID,
        actor: uuid.UUID,
        items: Optional[Sequence[LineItemData]] = None,
        discount: Any = None,
        discount_type: Optional[DiscountType | str] = None,
        setup_fee: Any = None,
        delivery_fee: Any = None,
        tax_rate: Any = None,
    ) -> Order:
        """
        Replace the items and/or pricing terms of a non-terminal aggregate.

        Omitted arguments keep their current values.

        Raises:
            ValidationError: If nothing is revised, or a value is out of range
            AggregateLockedError: If the aggregate is in a terminal status
            OrderNotFoundError: If the actor has no such order
        """
        if items is None and all(
            value is None
            for value in (discount, discount_type, setup_fee, delivery_fee, tax_rate)
        ):
            raise ValidationError("Nothing to revise", order_id=order_id)

        for item in items or ():
            self.pricing_engine.validate_line_item(
                item.quantity, item.unit_price, storable=True
            )

        async def apply_revision(order: Order) -> None:
            if order.is_terminal:
                raise AggregateLockedError(
                    f"Cannot revise a {order.kind.value} in status {order.status.value}",
                    order_id=order.id,
                    status=order.status.value,
                )

            old_totals = order.totals
            terms = self.pricing_engine.validate_pricing_terms(
                order.discount if discount is None else discount,
                order.discount_type if discount_type is None else discount_type,
                order.setup_fee if setup_fee is None else setup_fee,
                order.delivery_fee if delivery_fee is None else delivery_fee,
                order.tax_rate if tax_rate is None else tax_rate,
                storable=True,
            )
            for field, value in terms.items():
                setattr(order, field, value)

            if items is not None:
                order.items = self._build_items(items)

            new_totals = order.totals
            self.audit_log.record(
                order,
                AuditAction.ITEMS_REVISED,
                f"Total {old_totals.total} -> {new_totals.total}",
                actor,
            )

        order, _ = await self._run_unit_of_work(order_id, actor, apply_revision)

        logger.info(
            "Order revised",
            order_id=str(order_id),
            items_replaced=items is not None,
            total=str(order.totals.total),
        )

        return order

    async def add_note(self, order_id: uuid.UUID, note: str, actor: uuid.UUID) -> OrderLog:
        """
        Add a free-text note to an order's history.

        Raises:
            ValidationError: If the note is blank
            OrderNotFoundError: If the actor has no such order
        """
        if not note or not note.strip():
            raise ValidationError("Note must not be empty", order_id=order_id)
        text = note.strip()

        async def record_note(order: Order) -> OrderLog:
            return self.audit_log.record(order, AuditAction.NOTE_ADDED, text, actor)

        _, entry = await self._run_unit_of_work(order_id, actor, record_note)
        return entry

    async def expire_due_quotes(
        self,
        actor: uuid.UUID,
        today: Optional[date] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> list[Order]:
        """
        Expire sent quotes whose expiry date has passed.

        Quotes that changed status since the sweep started are skipped.

        Args:
            actor: User or job running the sweep
            today: Reference date, today (UTC) by default
            user_id: Restrict the sweep to one business account; every
                account is swept when omitted

        Returns:
            The quotes that were expired
        """
        today = today or utcnow().date()
        quote_ids = await self.repository.find_expired_quote_ids(today, user_id=user_id)

        expired: list[Order] = []
        for quote_id in quote_ids:
            try:
                expired.append(
                    await self._apply_action(
                        quote_id, StatusAction.EXPIRE, actor, owner=user_id
                    )
                )
            except IllegalTransitionError as e:
                logger.info(
                    "Skipping quote no longer awaiting a reply",
                    quote_id=str(quote_id),
                    error=e.message,
                )

        logger.info(
            "Expired due quotes",
            today=today.isoformat(),
            candidates=len(quote_ids),
            expired=len(expired),
        )

        return expired

    # Reads

    async def get(self, order_id: uuid.UUID, actor: uuid.UUID) -> Order:
        """
        Get one of the actor's orders or quotes.

        Raises:
            OrderNotFoundError: If the actor has no such order
        """
        return await self.repository.load(order_id, user_id=actor)

    async def get_totals(self, order_id: uuid.UUID, actor: uuid.UUID) -> Totals:
        order = await self.repository.load(order_id, user_id=actor)
        return order.totals

    async def list_orders(
        self,
        actor: uuid.UUID,
        kind: Optional[DocumentKind] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        """
        List the actor's orders and/or quotes, newest first.

        Raises:
            ValidationError: If ``status`` is not a status of ``kind``
        """
        status_filter = None
        if status is not None:
            candidate_kinds = [kind] if kind is not None else list(DocumentKind)
            for candidate in candidate_kinds:
                try:
                    status_filter = parse_status(candidate, status)
                    break
                except ValueError:
                    continue
            if status_filter is None:
                raise ValidationError(
                    f"Unknown status: {status}",
                    status=status,
                    kind=kind.value if kind else "any",
                )

        orders, total = await self.repository.list_orders(
            actor, kind=kind, status=status_filter, skip=skip, limit=limit
        )
        return list(orders), total

    async def history(
        self,
        order_id: uuid.UUID,
        actor: uuid.UUID,
        page_size: Optional[int] = None,
    ) -> AuditHistory:
        """
        Audit history of an order, oldest entry first.

        Raises:
            OrderNotFoundError: If the actor has no such order
        """
        await self.repository.load(order_id, user_id=actor)
        return await self.audit_log.history(order_id, page_size=page_size)

    # Internals

    async def _run_unit_of_work(
        self,
        order_id: uuid.UUID,
        owner: Optional[uuid.UUID],
        operation: Callable[[Order], Awaitable[T]],
    ) -> tuple[Order, T]:
        """
        Load, mutate, save and commit one aggregate under its lock.

        Only an aggregate owned by ``owner`` is loaded; ``None`` is reserved
        for system jobs that work across accounts. ``operation`` must be safe
        to re-run from a fresh read: on a version conflict the session is
        rolled back and the whole cycle repeats, up to
        ``conflict_max_retries`` more times.
        """
        async with self.lock_provider.acquire(order_id):
            retries = 0
            while True:
                try:
                    order = await self.repository.load(order_id, user_id=owner)
                    outcome = await operation(order)
                    order.updated_at = utcnow()
                    await self.repository.save(order)
                    await self.session.commit()
                    return order, outcome

                except ConflictError:
                    await self.session.rollback()
                    if retries >= self.settings.conflict_max_retries:
                        logger.error(
                            "Giving up after repeated version conflicts",
                            order_id=str(order_id),
                            retries=retries,
                        )
                        raise
                    retries += 1
                    logger.warning(
                        "Version conflict, retrying",
                        order_id=str(order_id),
                        attempt=retries,
                    )

                except Exception:
                    await self.session.rollback()
                    raise

    def _check_accepts_payment(self, order: Order) -> None:
        if order.kind != DocumentKind.ORDER:
            raise InvalidPaymentError(
                "Payments can only be recorded on orders",
                order_id=order.id,
                kind=order.kind.value,
            )
        if order.status == OrderStatus.CANCELLED:
            raise InvalidPaymentError(
                "Payments cannot be recorded on a cancelled order",
                order_id=order.id,
                status=order.status.value,
            )

    def _build_items(self, items: Sequence[LineItemData]) -> list[OrderItem]:
        built = []
        for position, item in enumerate(items):
            quantity, unit_price = self.pricing_engine.validate_line_item(
                item.quantity, item.unit_price, storable=True
            )
            built.append(
                OrderItem(
                    position=position,
                    product_id=item.product_id,
                    item_type=item.item_type,
                    name=item.name,
                    description=item.description,
                    notes=item.notes,
                    quantity=quantity,
                    unit_price=unit_price,
                )
            )
        return built

    def _generate_number(self, kind: DocumentKind) -> str:
        """
        Generate a unique order or quote number.

        Returns:
            Number string, e.g. ORD-20240101120000-1A2B3C
        """
        prefix = (
            self.settings.quote_number_prefix
            if kind == DocumentKind.QUOTE
            else self.settings.order_number_prefix
        )
        timestamp = utcnow().strftime("%Y%m%d%H%M%S")
        random_suffix = uuid.uuid4().hex[:6].upper()
        return f"{prefix}-{timestamp}-{random_suffix}"

    async def _notify(self, event: Optional[NotificationEvent], order: Order) -> None:
        """Send a post-commit notification; failures are logged only."""
        if event is None:
            return

        try:
            contact = await self.contacts.find_contact(order.contact_id)
            await self.notification_sender.send(event, order, contact)
        except Exception as e:
            logger.error(
                "Failed to send notification",
                event=event.value,
                order_id=str(order.id),
                error=str(e),
                error_type=type(e).__name__,
            )
