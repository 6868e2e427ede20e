import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import networkx as nx

from .model import ContractError, DataItem, Role

logger = logging.getLogger(__name__)

LogicalFlowEdge = Tuple[Role, Role]


class RoleContract:
    """What one role consumes, produces, and which roles it may forward data to."""

    def __init__(self, role: Role, consumes: Iterable[DataItem] = (), produces: Iterable[DataItem] = (),
                 successors: Iterable[Role] = ()):
        self.role = role
        self.consumes: FrozenSet[DataItem] = frozenset(consumes)
        self.produces: FrozenSet[DataItem] = frozenset(produces)
        self.successors: FrozenSet[Role] = frozenset(successors)

    def __repr__(self):
        return f"RoleContract({self.role.value})"


class DataflowContract:
    """
    Static per-role dataflow table.

    A flow edge (X, Y) means role Y may take data forwarded by role X. Edges
    into a role that consumes nothing are dropped: such a role has no
    predecessor requirement. Roles absent from the table consume and produce
    nothing.
    """

    def __init__(self, role_contracts: Iterable[RoleContract]):
        self._roles: Dict[Role, RoleContract] = {}
        problems = []
        for rc in role_contracts:
            if rc.role in self._roles:
                problems.append(f"duplicate contract entry for {rc.role.value}")
                continue
            self._roles[rc.role] = rc

        for rc in self._sorted_contracts():
            if rc.successors and not rc.produces:
                names = ", ".join(sorted(r.value for r in rc.successors))
                problems.append(f"{rc.role.value} produces nothing but lists successors ({names})")

        for item in sorted(self.consumed_items(), key=lambda d: d.value):
            if not self.producers_of(item):
                problems.append(f"{item.value} is consumed but no role produces it")

        if problems:
            raise ContractError(problems)

        self._edges: FrozenSet[LogicalFlowEdge] = frozenset(
            (rc.role, succ) for rc in self._roles.values() for succ in rc.successors
            if self.consumes(succ))

        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(Role)
        self.graph.add_edges_from(sorted(self._edges, key=lambda e: (e[0].value, e[1].value)))

        self._carriers: Dict[DataItem, FrozenSet[Role]] = {}
        for item in DataItem:
            carriers = set(self.producers_of(item))
            for role in self.producers_of(item):
                carriers |= nx.descendants(self.graph, role)
            self._carriers[item] = frozenset(carriers)

        logger.debug(f"Loaded dataflow contract: {len(self._roles)} roles, {len(self._edges)} flow edges")

    def _sorted_contracts(self) -> List[RoleContract]:
        return [self._roles[r] for r in sorted(self._roles, key=lambda r: r.value)]

    def roles(self) -> List[Role]:
        return sorted(self._roles, key=lambda r: r.value)

    def consumes(self, role: Role) -> FrozenSet[DataItem]:
        rc = self._roles.get(role)
        return rc.consumes if rc else frozenset()

    def produces(self, role: Role) -> FrozenSet[DataItem]:
        rc = self._roles.get(role)
        return rc.produces if rc else frozenset()

    def successors(self, role: Role) -> FrozenSet[Role]:
        return frozenset(succ for src, succ in self._edges if src == role)

    def consumed_items(self) -> FrozenSet[DataItem]:
        items = set()
        for rc in self._roles.values():
            items |= rc.consumes
        return frozenset(items)

    def producers_of(self, item: DataItem) -> FrozenSet[Role]:
        return frozenset(rc.role for rc in self._roles.values() if item in rc.produces)

    def flow_edges(self) -> FrozenSet[LogicalFlowEdge]:
        return self._edges

    def carriers(self, item: DataItem) -> FrozenSet[Role]:
        """Roles a walk carrying `item` can be attributed to: its producers and everything downstream."""
        return self._carriers[item]

    def logical_path(self, item: DataItem, role: Role) -> Optional[List[Role]]:
        """Shortest role walk from a producer of `item` to `role`, or None."""
        best = None
        for producer in sorted(self.producers_of(item), key=lambda r: r.value):
            if producer == role:
                continue
            try:
                walk = nx.shortest_path(self.graph, producer, role)
            except nx.NetworkXNoPath:
                continue
            if best is None or len(walk) < len(best):
                best = walk
        return best

    def to_dict(self) -> Dict[str, list]:
        return {
            "roles": [
                {
                    "role": rc.role.value,
                    "consumes": sorted(d.value for d in rc.consumes),
                    "produces": sorted(d.value for d in rc.produces),
                    "successors": sorted(r.value for r in rc.successors),
                }
                for rc in self._sorted_contracts()
            ]
        }
