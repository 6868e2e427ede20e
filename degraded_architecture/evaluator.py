import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import networkx as nx

from .contract import DataflowContract
from .model import (
    FUNCTION_ROLES,
    PASS_THROUGH_ROLES,
    ComponentRef,
    DataItem,
    Function,
    Role,
    Topology,
    TopologyValidator,
    _uid,
)

logger = logging.getLogger(__name__)

# State graph node: (component uid, last logical role reached)
State = Tuple[str, Role]

_ORIGIN = ("<origin>", None)


# --- 1. Path & Safety ---

class SafetyEvaluator:
    """
    Decides whether a component can obtain a data item over a topology
    without any hop through a compromised component.

    The search runs on a state graph over (component, role) pairs:
      - start at a live, uncompromised instance of a role producing the item
      - a Switch/Firewall hop keeps the current role
      - a hop onto a component whose role is a logical successor of the
        current role advances the walk to that role
    The consumer must be entered by an advance, so the physical path seen
    as roles contains a logical walk from producer to consumer. Function
    devices never forward on behalf of others; only network devices relay.

    An invalid topology is rejected: no path, nothing satisfied.
    Holds no state between calls.
    """

    def __init__(self, contract: DataflowContract, compromised: Iterable[str] = ()):
        self.contract = contract
        self.compromised: FrozenSet[str] = frozenset(compromised)

    def find_safe_path(self, topology: Topology, component: ComponentRef,
                       item: DataItem) -> Optional[List[str]]:
        if self._rejects(topology):
            return None
        return self._find_path(topology, _uid(component), item, {})

    def is_data_satisfied(self, topology: Topology, component: ComponentRef, item: DataItem) -> bool:
        return self.find_safe_path(topology, component, item) is not None

    def is_fully_satisfied(self, topology: Topology, component: ComponentRef) -> bool:
        if self._rejects(topology):
            return False
        return self._fully_satisfied(topology, _uid(component), {})

    def satisfied_components(self, topology: Topology,
                             roles: Optional[Iterable[Role]] = None) -> FrozenSet[str]:
        if self._rejects(topology):
            return frozenset()
        wanted = None if roles is None else frozenset(roles)
        state_graphs: Dict[DataItem, nx.DiGraph] = {}
        return frozenset(
            comp.uid for comp in topology.live_components()
            if (wanted is None or comp.role in wanted)
            and self._fully_satisfied(topology, comp.uid, state_graphs)
        )

    def _rejects(self, topology: Topology) -> bool:
        if TopologyValidator.validate(topology):
            return False
        logger.debug(f"Rejected invalid {topology!r}")
        return True

    def _fully_satisfied(self, topology: Topology, uid: str,
                         state_graphs: Dict[DataItem, nx.DiGraph]) -> bool:
        if uid in self.compromised:
            return False
        role = topology.component(uid).role
        for item in sorted(self.contract.consumes(role), key=lambda d: d.value):
            if self._find_path(topology, uid, item, state_graphs) is None:
                return False
        return True

    def _find_path(self, topology: Topology, uid: str, item: DataItem,
                   state_graphs: Dict[DataItem, nx.DiGraph]) -> Optional[List[str]]:
        if uid in self.compromised:
            return None

        states = state_graphs.get(item)
        if states is None:
            states = self._state_graph(topology, item)
            state_graphs[item] = states

        target = (uid, topology.component(uid).role)
        if target not in states:
            return None

        producers = self.contract.producers_of(item)
        sources = [
            (comp.uid, comp.role) for comp in topology.live_components()
            if comp.role in producers and comp.uid != uid and comp.uid not in self.compromised
        ]

        states.add_node(_ORIGIN)
        states.add_edges_from((_ORIGIN, source) for source in sources)
        try:
            walk = nx.shortest_path(states, _ORIGIN, target)
        except nx.NetworkXNoPath:
            return None
        finally:
            states.remove_node(_ORIGIN)

        return [node for node, _ in walk[1:]]

    def _state_graph(self, topology: Topology, item: DataItem) -> nx.DiGraph:
        carriers = self.contract.carriers(item)
        producers = self.contract.producers_of(item)
        edges = self.contract.flow_edges()
        states = nx.DiGraph()

        for comp in topology.live_components():
            if comp.uid not in self.compromised:
                states.add_node((comp.uid, comp.role))

        for first, second in topology.graph.edges:
            for src, dst in ((first, second), (second, first)):
                if src in self.compromised or dst in self.compromised:
                    continue
                src_comp = topology.component(src)
                src_role = src_comp.role
                dst_role = topology.component(dst).role
                if src_role in PASS_THROUGH_ROLES:
                    held = carriers
                elif src_comp.is_network_device:
                    held = carriers & {src_role}
                else:
                    # function devices only send what they produce themselves
                    held = producers & {src_role}
                for role in sorted(held, key=lambda r: r.value):
                    if dst_role in PASS_THROUGH_ROLES:
                        states.add_edge((src, role), (dst, role))
                    if (role, dst_role) in edges:
                        states.add_edge((src, role), (dst, dst_role))
        return states


# --- 2. Function Satisfaction ---

class FunctionChecker:
    """A function holds when every role it needs has at least one fully data-satisfied live instance."""

    def __init__(self, evaluator: SafetyEvaluator,
                 requirements: Optional[Dict[Function, Tuple[Role, ...]]] = None):
        self.evaluator = evaluator
        self.requirements = dict(FUNCTION_ROLES if requirements is None else requirements)

    def satisfied_functions(self, topology: Topology) -> FrozenSet[Function]:
        needed = set()
        for roles in self.requirements.values():
            needed.update(roles)

        satisfied = self.evaluator.satisfied_components(topology, needed)
        satisfied_roles = {topology.component(uid).role for uid in satisfied}
        functions = frozenset(
            function for function, roles in self.requirements.items()
            if all(role in satisfied_roles for role in roles)
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{len(satisfied)} satisfied component(s), functions {sorted(f.value for f in functions)}")
        return functions

    def is_satisfied(self, topology: Topology, function: Function) -> bool:
        roles = self.requirements[function]
        satisfied = self.evaluator.satisfied_components(topology, roles)
        satisfied_roles = {topology.component(uid).role for uid in satisfied}
        return all(role in satisfied_roles for role in roles)
