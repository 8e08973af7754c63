"""
Bakery order and quote lifecycle backend.

Pricing, status transitions, payments and the audit log for bakery orders
and quotes, persisted with SQLAlchemy and served over FastAPI.
"""

__version__ = "1.0.0"
