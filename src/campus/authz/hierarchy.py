import logging
from collections import deque
from typing import Dict, FrozenSet, Iterable, List, Optional

from .types import Branch

logger = logging.getLogger(__name__)


class BranchHierarchy:
    """Branch tree keyed by id with a parent -> children index.

    Descendant sets are computed by walking child links only and are memoized
    for the lifetime of the object; build a new hierarchy after any write to
    ``branches``.
    """

    def __init__(self, branches: Iterable[Branch]):
        self._branches: Dict[int, Branch] = {}
        self._children: Dict[int, List[int]] = {}
        self._descendants: Dict[int, FrozenSet[int]] = {}

        for branch in branches:
            self._branches[branch.id] = branch
        for branch in self._branches.values():
            parent_id = branch.parent_branch_id
            if parent_id is not None and parent_id != branch.id:
                self._children.setdefault(parent_id, []).append(branch.id)

    def __contains__(self, branch_id: object) -> bool:
        return branch_id in self._branches

    def __len__(self) -> int:
        return len(self._branches)

    def get(self, branch_id: Optional[int]) -> Optional[Branch]:
        if branch_id is None:
            return None
        return self._branches.get(branch_id)

    def is_active(self, branch_id: Optional[int]) -> bool:
        branch = self.get(branch_id)
        return branch is not None and branch.is_active

    def children_of(self, branch_id: int) -> List[Branch]:
        return [self._branches[child] for child in self._children.get(branch_id, [])]

    def roots(self) -> List[Branch]:
        return [
            branch for branch in self._branches.values()
            if branch.parent_branch_id is None or branch.parent_branch_id not in self._branches
        ]

    def descendant_ids(self, branch_id: Optional[int]) -> FrozenSet[int]:
        """Return the branch itself plus every branch below it.

        Unknown ids yield an empty set so a dangling reference can never
        widen access.
        """
        if branch_id is None or branch_id not in self._branches:
            return frozenset()

        cached = self._descendants.get(branch_id)
        if cached is not None:
            return cached

        visited = {branch_id}
        queue = deque([branch_id])
        while queue:
            current = queue.popleft()
            for child in self._children.get(current, []):
                if child in visited:
                    logger.warning(f"Branch cycle detected at branch {child} while expanding {branch_id}")
                    continue
                visited.add(child)
                queue.append(child)

        result = frozenset(visited)
        self._descendants[branch_id] = result
        return result

    def is_descendant_of(self, candidate: Optional[int], ancestor: Optional[int]) -> bool:
        """True when ``candidate`` is ``ancestor`` or lies anywhere below it."""
        if candidate is None:
            return False
        return candidate in self.descendant_ids(ancestor)

    def ancestor_ids(self, branch_id: Optional[int]) -> List[int]:
        """Parents of ``branch_id`` from nearest to root, stopping at a repeat."""
        ancestors: List[int] = []
        branch = self.get(branch_id)
        seen = {branch_id}
        while branch is not None and branch.parent_branch_id is not None:
            parent_id = branch.parent_branch_id
            if parent_id in seen:
                logger.warning(f"Branch cycle detected above branch {branch_id}")
                break
            seen.add(parent_id)
            ancestors.append(parent_id)
            branch = self.get(parent_id)
        return ancestors
