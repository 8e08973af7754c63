"""
Database package initialization.

- base: declarative base and mixins
- connection: async engine, session factory and FastAPI dependency
- models: ORM models for contacts, orders/quotes, items, payments and logs
"""

__all__ = []
