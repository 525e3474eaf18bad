"""Tests for persistent_enum.references: the EnumReference descriptor."""

import pytest
from sqlalchemy.orm import Session

from enum_models import ColorRow, PaintRow
from persistent_enum import UnknownMemberError, acts_as_enum
from persistent_enum.references import EnumReference, enum_references, validate_enum_references


@pytest.fixture
def Color(engine, insert_rows):
    insert_rows("colors", {"id": 9, "name": "Sepia"})
    return acts_as_enum(ColorRow, ["Red", "Green"], bind=engine)


class TestEnumReference:
    def test_default_foreign_key(self):
        assert PaintRow.color.foreign_key == "color_id"
        assert PaintRow.color.name == "color"

    def test_read_returns_member(self, Color):
        paint = PaintRow(color_id=Color.RED.ordinal)
        assert paint.color is Color.RED

    def test_assign_member_name_and_none(self, Color):
        paint = PaintRow()
        paint.color = Color.GREEN
        assert paint.color_id == Color.GREEN.ordinal

        paint.color = "Red"
        assert paint.color_id == Color.RED.ordinal

        paint.color = None
        assert paint.color_id is None
        assert paint.color is None

    def test_assign_through_constructor(self, Color):
        assert PaintRow(color="Green").color is Color.GREEN

    def test_unknown_name_rejected(self, Color):
        with pytest.raises(UnknownMemberError):
            PaintRow().color = "Purple"

    def test_foreign_member_rejected(self, Color):
        from persistent_enum.member import Member

        with pytest.raises(UnknownMemberError):
            PaintRow().color = Member(12345, "Red")

    def test_enum_references(self):
        assert set(enum_references(PaintRow)) == {"color"}

    def test_not_an_enum(self):
        class Holder:
            color_id = 1
            color = EnumReference(object())

        with pytest.raises(TypeError):
            Holder().color


class TestValidation:
    def test_any_known_ordinal_valid_on_update(self, Color):
        paint = PaintRow(color_id=9)
        PaintRow.color.validate(paint)

    def test_retired_member_invalid_on_create(self, Color):
        paint = PaintRow(color_id=9)
        with pytest.raises(ValueError, match="not an active member"):
            PaintRow.color.validate(paint, creating=True)

    def test_unknown_ordinal_invalid(self, Color):
        with pytest.raises(ValueError, match="is not a member"):
            PaintRow.color.validate(PaintRow(color_id=404))

    def test_null_is_valid(self, Color):
        PaintRow.color.validate(PaintRow(), creating=True)

    def test_flush_hooks(self, engine, Color):
        validate_enum_references(PaintRow)

        with Session(engine) as session:
            session.add(PaintRow(color_id=9))
            with pytest.raises(ValueError, match="not an active member"):
                session.flush()
            session.rollback()

            paint = PaintRow(color="Red")
            session.add(paint)
            session.flush()

            paint.color_id = 9
            session.flush()
            assert paint.color.name == "Sepia"
