"""
User and per-user visibility models with ULID primary keys.
"""
import enum
from sqlalchemy import String, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class ViewScope(str, enum.Enum):
    """How far a user can see across the organization."""
    ALL = "ALL"
    SELF_ONLY = "SELF_ONLY"
    DEPT_ONLY = "DEPT_ONLY"


class User(Base, TimestampMixin):
    """
    User model.

    Identity (credentials, token issuance) lives elsewhere; this row holds the
    organizational attributes access control reads.
    """
    __tablename__ = "users"

    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employee_no: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Legacy users may have neither
    company_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    department_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Relationships
    visibility: Mapped["UserVisibility | None"] = relationship(
        "UserVisibility",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"


class UserVisibility(Base, TimestampMixin):
    """
    Optional visibility settings for a user.

    A missing row means hidden=False and view_scope=ALL.
    """
    __tablename__ = "user_visibility"

    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )

    # Hidden users never appear in anyone's listing except a super admin's
    hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    view_scope: Mapped[ViewScope] = mapped_column(
        SQLEnum(ViewScope),
        default=ViewScope.ALL,
        nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="visibility")

    def __repr__(self) -> str:
        return f"<UserVisibility(user_id={self.user_id}, hidden={self.hidden}, scope={self.view_scope})>"
