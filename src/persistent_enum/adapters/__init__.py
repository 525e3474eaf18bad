"""Backing store adapters."""

from persistent_enum.adapters.sqlalchemy_store import SQLAlchemyEnumStore, SQLAlchemyTransaction

__all__ = ["SQLAlchemyEnumStore", "SQLAlchemyTransaction"]
