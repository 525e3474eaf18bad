"""
persistent-enum — database-backed enumerations with stable ordinals.

Declare the members of an enumeration in code, keep its rows in a table, and
look members up by ordinal or by name through an immutable, fully indexed
snapshot.  Missing rows are inserted, declared attributes are kept current,
and rows that are no longer declared stay loadable as retired members.

Quick start::

    from persistent_enum import EnumBase, EnumTableMixin, acts_as_enum

    class ColorRow(EnumTableMixin, EnumBase):
        __tablename__ = "colors"

    Color = acts_as_enum(ColorRow, ["Red", "Green"], bind=engine)
    Color.RED.ordinal            # primary key of the "Red" row
    Color.value_of("Green")      # Member(2, 'Green')
"""

__version__ = "0.1.0"

from persistent_enum.errors import (
    CaseInsensitiveLookupError,
    ConfigurationError,
    EnumTableInvalid,
    ErrorCategory,
    ErrorContext,
    IdentityMismatch,
    MissingEnumType,
    NotInitializedError,
    PersistentEnumError,
    UnknownMemberError,
    UnresolvableEnumerationError,
    UnsafeInitialization,
)
from persistent_enum.holder import PersistentEnum, acts_as_enum, cache_constants, cache_records
from persistent_enum.maintenance import is_maintenance_context, maintenance_context
from persistent_enum.member import Member, constant_name
from persistent_enum.orm import EnumBase, EnumTableMixin, create_enum_engine
from persistent_enum.references import EnumReference, validate_enum_references
from persistent_enum.registry import (
    EnumRegistry,
    get_registry,
    reinitialize_enumerations,
    reload_enumerations,
    rerequire_known_enumerations,
)
from persistent_enum.spec import EnumSpec, MemberBuilder
from persistent_enum.state import EnumState

__all__ = [
    "__version__",
    # Holders
    "PersistentEnum",
    "acts_as_enum",
    "cache_constants",
    "cache_records",
    # Model
    "EnumSpec",
    "EnumState",
    "Member",
    "MemberBuilder",
    "constant_name",
    # ORM
    "EnumBase",
    "EnumTableMixin",
    "EnumReference",
    "create_enum_engine",
    "validate_enum_references",
    # Registry
    "EnumRegistry",
    "get_registry",
    "reinitialize_enumerations",
    "reload_enumerations",
    "rerequire_known_enumerations",
    # Fallback
    "is_maintenance_context",
    "maintenance_context",
    # Errors
    "CaseInsensitiveLookupError",
    "ConfigurationError",
    "EnumTableInvalid",
    "ErrorCategory",
    "ErrorContext",
    "IdentityMismatch",
    "MissingEnumType",
    "NotInitializedError",
    "PersistentEnumError",
    "UnknownMemberError",
    "UnresolvableEnumerationError",
    "UnsafeInitialization",
]
