"""
Database package.

- base: declarative base and shared column mixins
- connection: async engine, session unit of work and FastAPI dependency
- models: ORM models for workers, orders and order history
"""

__all__ = []
