"""ORM models. Importing this package registers every table on Base.metadata."""

from bakery_orders.database.models.contact import Contact
from bakery_orders.database.models.order import Order, OrderItem
from bakery_orders.database.models.order_log import OrderLog
from bakery_orders.database.models.payment import Payment

__all__ = ["Contact", "Order", "OrderItem", "OrderLog", "Payment"]
