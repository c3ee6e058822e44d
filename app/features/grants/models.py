"""
Temporary access grant model.

A grant is a time-boxed exception letting one grantee perform one action on
one field of a resource. Rows are never edited after creation: revocation
stamps revoked_at/revoked_by_id once and leaves everything else intact for
the audit trail.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Boolean, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class TemporaryAccessGrant(Base, TimestampMixin):
    __tablename__ = "temporary_access_grants"
    __table_args__ = (
        Index("ix_grants_lookup", "grantee_id", "resource", "action"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    grantee_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # What is granted
    resource: Mapped[str] = mapped_column(String(100), nullable=False)
    field_key: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # read, download, export

    # Active iff start_at <= now <= end_at
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Lets the grantee look across the company boundary for this resource
    allow_cross_boundary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # If set, only targets in this department subtree are covered
    scope_department_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=True
    )

    created_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<TemporaryAccessGrant(id={self.id}, grantee={self.grantee_id}, "
            f"{self.resource}.{self.field_key}:{self.action})>"
        )
