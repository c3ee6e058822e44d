"""
Company and department models.

Companies are the tenant boundary. Departments form a forest inside (and in
legacy data, across) companies via parent_id. Department leaders are kept as a
plain list of user ids: they are weak references, so a stale id simply means
"not currently a leader".
"""
from sqlalchemy import String, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Company(Base, TimestampMixin):
    """
    Company model representing a tenant.

    Users and departments carry a company_id; by default users never see rows
    belonging to another company.
    """
    __tablename__ = "companies"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    code: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)

    # Relationships
    departments: Mapped[list["Department"]] = relationship(
        "Department",
        back_populates="company",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name!r})>"


class Department(Base, TimestampMixin):
    """
    Department model.

    parent_id is a self reference; the tree is assumed acyclic but readers
    must not loop forever if it is not (see organizations.graph).
    """
    __tablename__ = "departments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    parent_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    company_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # Unordered set of user ids, stored as a JSON list
    leader_user_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Relationships
    company: Mapped["Company"] = relationship(
        "Company",
        back_populates="departments",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, name={self.name!r}, parent_id={self.parent_id})>"
