"""References from ordinary models to enumeration members.

``EnumReference`` is a descriptor that exposes a foreign-key column holding
an ordinal as the member itself::

    class Paint(Base):
        __tablename__ = "paints"
        id: Mapped[int] = mapped_column(primary_key=True)
        color_id: Mapped[int | None]
        color = EnumReference(Color)

    paint.color = "Red"          # stores Color.RED.ordinal in color_id
    paint.color is Color.RED     # True

Any known ordinal is valid on an existing row, but a new row may only
reference an active (required) member.  ``validate_enum_references(Paint)``
enforces that on flush.

Tags:
    persistent-enum, references, descriptor, validation
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event

from persistent_enum.errors import UnknownMemberError
from persistent_enum.holder import PersistentEnum
from persistent_enum.member import Member


class EnumReference:
    """Descriptor mapping a foreign-key ordinal to an enumeration member.

    Args:
        enum: The holder, or a mapped class carrying ``__persistent_enum__``.
        foreign_key: Attribute holding the ordinal; defaults to ``<name>_id``.
    """

    def __init__(self, enum: Any, foreign_key: str | None = None) -> None:
        self._enum = enum
        self.foreign_key = foreign_key
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        if self.foreign_key is None:
            self.foreign_key = f"{name}_id"

    @property
    def enum(self) -> PersistentEnum:
        holder = getattr(self._enum, "__persistent_enum__", self._enum)
        if not isinstance(holder, PersistentEnum):
            raise TypeError(f"{self.name} does not reference a persistent enum: {self._enum!r}")
        return holder

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        ordinal = getattr(instance, self.foreign_key)
        if ordinal is None:
            return None
        return self.enum.by_ordinal(ordinal)

    def __set__(self, instance: Any, value: Any) -> None:
        if value is None:
            setattr(instance, self.foreign_key, None)
            return

        holder = self.enum
        if isinstance(value, Member):
            if value not in holder:
                raise UnknownMemberError(holder.identity, value.name)
            member = value
        else:
            member = holder.value_of_strict(value)
        setattr(instance, self.foreign_key, member.ordinal)

    def validate(self, instance: Any, creating: bool = False) -> None:
        """Check the stored ordinal.

        Raises:
            ValueError: unknown ordinal, or (when ``creating``) a retired member.
        """
        ordinal = getattr(instance, self.foreign_key)
        if ordinal is None:
            return

        holder = self.enum
        member = holder.by_ordinal(ordinal)
        if member is None:
            raise ValueError(f"{self.name}: {ordinal!r} is not a member of {holder.identity}")
        if creating and not holder.is_active(member):
            raise ValueError(f"{self.name}: '{member.name}' is not an active member of {holder.identity}")


def enum_references(model: type) -> dict[str, EnumReference]:
    """Every ``EnumReference`` declared on ``model`` or its bases."""
    references = {}
    for klass in reversed(model.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, EnumReference):
                references[name] = value
    return references


def validate_enum_references(model: type) -> None:
    """Validate ``model``'s enum references before each insert and update."""

    def before_insert(mapper: Any, connection: Any, target: Any) -> None:
        for reference in enum_references(type(target)).values():
            reference.validate(target, creating=True)

    def before_update(mapper: Any, connection: Any, target: Any) -> None:
        for reference in enum_references(type(target)).values():
            reference.validate(target)

    event.listen(model, "before_insert", before_insert)
    event.listen(model, "before_update", before_update)


__all__ = ["EnumReference", "enum_references", "validate_enum_references"]
