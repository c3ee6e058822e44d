"""
In-memory department hierarchy.

The full department table is loaded once per top-level authorization decision
into an OrgSnapshot and passed to every nested helper of that decision. There
is no cross-request cache: a new decision means a new snapshot.

Every walk carries a visited set, so a cycle in parent_id terminates. A
parent_id pointing at a department that does not exist ends the chain.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.models import Department
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class DepartmentNode:
    id: str
    parent_id: Optional[str]
    leader_user_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class OrgSnapshot:
    """Immutable view of the department forest."""

    nodes: dict[str, DepartmentNode] = field(default_factory=dict)
    children: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_nodes(cls, nodes: Iterable[DepartmentNode]) -> "OrgSnapshot":
        by_id: dict[str, DepartmentNode] = {}
        for node in nodes:
            by_id[node.id] = node

        # parent -> children adjacency, built once
        adjacency: dict[str, list[str]] = {}
        for node in by_id.values():
            if node.parent_id is not None:
                adjacency.setdefault(node.parent_id, []).append(node.id)

        return cls(
            nodes=by_id,
            children={parent: tuple(kids) for parent, kids in adjacency.items()},
        )

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, dept_id: object) -> bool:
        return dept_id in self.nodes

    def _parent_of(self, dept_id: str) -> Optional[str]:
        node = self.nodes.get(dept_id)
        return node.parent_id if node else None

    def ancestors_or_self(self, dept_id: str) -> list[str]:
        """
        Chain from dept_id up to its root, inclusive of dept_id.

        dept_id itself is always the first element, even when it is not in the
        snapshot; the chain stops at a null or dangling parent or on a cycle.
        """
        chain: list[str] = []
        seen: set[str] = set()
        current: Optional[str] = dept_id
        while current is not None and current not in seen:
            seen.add(current)
            chain.append(current)
            current = self._parent_of(current)
            if current is not None and current not in self.nodes:
                log.debug("Department %s has dangling parent %s", chain[-1], current)
                current = None
        if current is not None:
            log.warning("Department cycle detected at %s while walking from %s", current, dept_id)
        return chain

    def is_descendant_or_self(self, dept_id: str, root_id: str) -> bool:
        """True if root_id is dept_id or one of its ancestors."""
        if dept_id == root_id:
            return True
        return root_id in self.ancestors_or_self(dept_id)

    def collect_descendants(self, root_ids: Iterable[str]) -> set[str]:
        """
        All departments reachable downward from root_ids.

        The roots themselves are not included unless one is reachable from
        another root.
        """
        result: set[str] = set()
        stack = list(root_ids)
        while stack:
            current = stack.pop()
            for child in self.children.get(current, ()):
                if child not in result:
                    result.add(child)
                    stack.append(child)
        return result

    def department_and_descendants(self, dept_id: Optional[str]) -> set[str]:
        if not dept_id:
            return set()
        return {dept_id} | self.collect_descendants([dept_id])

    def led_departments(self, user_id: str) -> set[str]:
        """Departments listing user_id among their leaders."""
        return {node.id for node in self.nodes.values() if user_id in node.leader_user_ids}

    def collect_leader_scope(self, user_id: str) -> set[str]:
        """Departments user_id leads, plus all of their descendants."""
        roots = self.led_departments(user_id)
        return roots | self.collect_descendants(roots)

    def leads(self, user_id: str, dept_id: Optional[str]) -> bool:
        """
        True if user_id leads dept_id or any department above it.

        Walking stops at the first department missing from the snapshot.
        """
        if not dept_id:
            return False
        for current in self.ancestors_or_self(dept_id):
            node = self.nodes.get(current)
            if node is None:
                break
            if user_id in node.leader_user_ids:
                return True
        return False


async def load_org_snapshot(db: AsyncSession) -> OrgSnapshot:
    """Read the whole department table into an OrgSnapshot."""
    result = await db.execute(
        select(Department.id, Department.parent_id, Department.leader_user_ids)
    )
    nodes = [
        DepartmentNode(
            id=row.id,
            parent_id=row.parent_id,
            leader_user_ids=frozenset(row.leader_user_ids or ()),
        )
        for row in result.all()
    ]
    log.debug("Loaded org snapshot with %d departments", len(nodes))
    return OrgSnapshot.from_nodes(nodes)
