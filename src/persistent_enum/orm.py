"""Declarative helpers and engine factory for enumeration tables.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map`` so
enumeration models can declare attribute columns with plain Python types.

* ``EnumBase``         -- Declarative base for enumeration tables.
* ``EnumTableMixin``   -- ``id`` primary key and uniquely indexed ``name``.
* ``create_enum_engine`` -- Engine from a URL, defaulting to settings.
* ``enum_session_factory`` -- ``sessionmaker`` bound to an engine.

Examples:
    >>> class Color(EnumTableMixin, EnumBase):
    ...     __tablename__ = "colors"
    ...     hex: Mapped[str | None]

Tags:
    persistent-enum, orm, sqlalchemy, engine

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Integer, String, Text, event
from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from persistent_enum.settings import get_settings


class EnumBase(DeclarativeBase):
    """Shared declarative base for enumeration tables.

    * ``str``  → ``Text``
    * ``int``  → ``Integer``
    * ``dict`` → ``JSON``
    * ``list`` → ``JSON``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        dict: JSON,
        list: JSON,
    }


class EnumTableMixin:
    """Mixin adding the two columns every enumeration table needs."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)


def create_enum_engine(
    url: str | None = None,
    *,
    echo: bool | None = None,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL; defaults to ``PERSISTENT_ENUM_DATABASE_URL``.
    echo:
        Log all SQL; defaults to ``PERSISTENT_ENUM_DATABASE_ECHO``.
    pool_size, max_overflow:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    settings = get_settings()
    url = url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow

    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


def enum_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a ``sessionmaker`` bound to *engine* with ``expire_on_commit=False``."""
    return sessionmaker(bind=engine, expire_on_commit=False)


__all__ = ["EnumBase", "EnumTableMixin", "create_enum_engine", "enum_session_factory"]
