"""
Declarative row filter over users.

A RowFilter says which users a viewer may see. The same object renders to a
SQLAlchemy WHERE clause for listing queries and evaluates in memory against a
loaded row; both renderings must agree.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import and_, exists, select, true, false
from sqlalchemy.sql.elements import ColumnElement

from app.features.users.models import User, UserVisibility


@dataclass(frozen=True)
class RowFilter:
    """
    Conjunction of optional constraints on a user row.

    match_all short-circuits everything else to "every row".
    """
    match_all: bool = False
    exclude_hidden: bool = True
    company_id: Optional[str] = None
    user_id: Optional[str] = None
    department_ids: Optional[frozenset[str]] = None

    @classmethod
    def everything(cls) -> "RowFilter":
        return cls(match_all=True, exclude_hidden=False)

    def where_clause(self) -> ColumnElement[bool]:
        """Render as a WHERE clause on User."""
        if self.match_all:
            return true()

        clauses: list[ColumnElement[bool]] = []
        if self.exclude_hidden:
            clauses.append(
                ~exists(
                    select(UserVisibility.user_id).where(
                        UserVisibility.user_id == User.id,
                        UserVisibility.hidden.is_(True),
                    )
                )
            )
        if self.company_id is not None:
            clauses.append(User.company_id == self.company_id)
        if self.user_id is not None:
            clauses.append(User.id == self.user_id)
        if self.department_ids is not None:
            if self.department_ids:
                clauses.append(User.department_id.in_(sorted(self.department_ids)))
            else:
                clauses.append(false())
        return and_(true(), *clauses)

    def matches(self, user: User, visibility: Optional[UserVisibility] = None) -> bool:
        """Evaluate against a loaded user (and its visibility row, if any)."""
        if self.match_all:
            return True
        if self.exclude_hidden and visibility is not None and visibility.hidden:
            return False
        if self.company_id is not None and user.company_id != self.company_id:
            return False
        if self.user_id is not None and user.id != self.user_id:
            return False
        if self.department_ids is not None and user.department_id not in self.department_ids:
            return False
        return True

    def describe(self) -> dict:
        """Plain-dict form for logs and API responses."""
        if self.match_all:
            return {"match_all": True}
        data: dict = {"exclude_hidden": self.exclude_hidden}
        if self.company_id is not None:
            data["company_id"] = self.company_id
        if self.user_id is not None:
            data["user_id"] = self.user_id
        if self.department_ids is not None:
            data["department_ids"] = sorted(self.department_ids)
        return data
