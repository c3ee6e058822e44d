"""
Field catalog models.

FieldDefinition is the registry of per-user data fields, each tagged with a
sensitivity classification. UserFieldValue stores the values; FieldSet groups
definitions into named, ordered sections for display.
"""
import enum
from sqlalchemy import String, Boolean, ForeignKey, Integer, Text, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Classification(str, enum.Enum):
    """Sensitivity tier of a field, from least to most sensitive."""
    PUBLIC = "PUBLIC"
    INTERNAL = "INTERNAL"
    SENSITIVE = "SENSITIVE"
    HIGHLY_SENSITIVE = "HIGHLY_SENSITIVE"

    @property
    def rank(self) -> int:
        return _CLASSIFICATION_ORDER.index(self)

    # str ordering would compare the names alphabetically
    def __lt__(self, other):
        if not isinstance(other, Classification):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Classification):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Classification):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Classification):
            return NotImplemented
        return self.rank >= other.rank


_CLASSIFICATION_ORDER = list(Classification)


class FieldDefinition(Base, TimestampMixin):
    """
    One entry of the field catalog.

    key is the stable identifier clients use (e.g. "employee_no", "salary").
    A key absent from this table is never reported as visible.
    """
    __tablename__ = "field_definitions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    classification: Mapped[Classification] = mapped_column(
        SQLEnum(Classification),
        default=Classification.INTERNAL,
        nullable=False,
        index=True
    )
    # Whether the subject user may edit their own value
    self_editable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<FieldDefinition(key={self.key!r}, classification={self.classification})>"


class UserFieldValue(Base, TimestampMixin):
    """Value of one field for one user."""
    __tablename__ = "user_field_values"
    __table_args__ = (UniqueConstraint("user_id", "field_id", name="uq_user_field_values_user_field"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    field_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("field_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    field: Mapped["FieldDefinition"] = relationship("FieldDefinition", lazy="selectin")

    def __repr__(self) -> str:
        return f"<UserFieldValue(user_id={self.user_id}, field_id={self.field_id})>"


class FieldSet(Base, TimestampMixin):
    """
    Named group of fields, e.g. "work", "personal", "bank", "contract".
    """
    __tablename__ = "field_sets"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    items: Mapped[list["FieldSetItem"]] = relationship(
        "FieldSetItem",
        back_populates="field_set",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="FieldSetItem.order"
    )

    def __repr__(self) -> str:
        return f"<FieldSet(id={self.id}, name={self.name!r})>"


class FieldSetItem(Base):
    """Membership of a field in a field set, with its display position."""
    __tablename__ = "field_set_items"

    field_set_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("field_sets.id", ondelete="CASCADE"),
        primary_key=True
    )
    field_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("field_definitions.id", ondelete="CASCADE"),
        primary_key=True
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    field_set: Mapped["FieldSet"] = relationship("FieldSet", back_populates="items")
    field: Mapped["FieldDefinition"] = relationship("FieldDefinition", lazy="selectin")

    def __repr__(self) -> str:
        return f"<FieldSetItem(set={self.field_set_id}, field={self.field_id}, order={self.order})>"
