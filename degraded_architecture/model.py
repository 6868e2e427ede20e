import logging
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple, Union

import networkx as nx

logger = logging.getLogger(__name__)


# --- 1. Errors ---

class InvalidTopology(ValueError):
    """Raised when a topology breaks symmetry, self-loop or access-layer rules."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("Invalid topology: " + "; ".join(self.violations))


class ContractError(ValueError):
    """Raised when the role dataflow contract is malformed at load time."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid dataflow contract: " + "; ".join(self.problems))


# --- 2. Basic Definitions ---

class ComponentCategory(Enum):
    NETWORK_DEVICE = "NetworkDevice"
    FUNCTION_DEVICE = "FunctionDevice"


class Role(Enum):
    SWITCH = "Switch"
    FIREWALL = "Firewall"
    SCADA = "SCADA"
    OPC = "OPC"
    HMI = "HMI"
    ENGINEERING_WORKSTATION = "EngineeringWorkstation"
    HISTORIAN = "Historian"
    NTP = "NTP"
    RTU = "RTU"
    RELAY = "Relay"
    PRINTER = "Printer"
    VPN = "VPN"
    INTERNET = "Internet"


class DataItem(Enum):
    ACTIONS_REST = "Actions-over-REST"
    STATUS_REST = "Status-over-REST"
    SETPOINTS_REST = "SetPoints-over-REST"
    STATUS_MODBUS = "Status-over-Modbus"
    ACTIONS_MODBUS = "Actions-over-Modbus"
    TIME_SYNC = "TimeSync"


class Function(Enum):
    TRANSPORT = "Transport"
    PRINT = "Print"
    HISTORY = "History"


NETWORK_ROLES = frozenset({Role.SWITCH, Role.FIREWALL, Role.VPN, Role.INTERNET})

# Data may hop through these without the role showing up in the logical walk
PASS_THROUGH_ROLES = frozenset({Role.SWITCH, Role.FIREWALL})

FUNCTION_ROLES: Dict[Function, Tuple[Role, ...]] = {
    Function.TRANSPORT: (Role.OPC, Role.HMI, Role.SCADA, Role.RTU, Role.RELAY),
    Function.PRINT: (Role.PRINTER,),
    Function.HISTORY: (Role.HISTORIAN,),
}


class Component:
    def __init__(self, uid: str, role: Role, category: Optional[ComponentCategory] = None,
                 backup_group: Optional[str] = None, is_backup: bool = False):
        self.uid = uid
        self.role = role
        if category is None:
            category = (ComponentCategory.NETWORK_DEVICE if role in NETWORK_ROLES
                        else ComponentCategory.FUNCTION_DEVICE)
        self.category = category
        self.backup_group = backup_group
        self.is_backup = is_backup

    @property
    def is_network_device(self) -> bool:
        return self.category == ComponentCategory.NETWORK_DEVICE

    def as_backup(self) -> "Component":
        return Component(self.uid, self.role, self.category, self.backup_group, is_backup=True)

    def __eq__(self, other):
        return isinstance(other, Component) and other.uid == self.uid

    def __hash__(self):
        return hash(self.uid)

    def __repr__(self):
        return f"{self.uid}({self.role.value})"


ComponentRef = Union[Component, str]


def _uid(component: ComponentRef) -> str:
    return component.uid if isinstance(component, Component) else component


class Connection:
    """Undirected physical link, stored with its endpoints in sorted order."""

    __slots__ = ("a", "b")

    def __init__(self, first: ComponentRef, second: ComponentRef):
        first, second = _uid(first), _uid(second)
        if first == second:
            raise InvalidTopology([f"self-connection on {first}"])
        self.a, self.b = sorted((first, second))

    def pair(self) -> Tuple[str, str]:
        return self.a, self.b

    def touches(self, uid: str) -> bool:
        return uid == self.a or uid == self.b

    def other(self, uid: str) -> str:
        return self.b if uid == self.a else self.a

    def __iter__(self):
        return iter((self.a, self.b))

    def __eq__(self, other):
        return isinstance(other, Connection) and self.pair() == other.pair()

    def __lt__(self, other):
        return self.pair() < other.pair()

    def __hash__(self):
        return hash(self.pair())

    def __repr__(self):
        return f"{self.a}<->{self.b}"


# --- 3. Topology ---

class Topology:
    """
    Immutable component universe plus a set of undirected connections.
    Backups are live only while at least one connection touches them.
    """

    def __init__(self, components: Iterable[Component], connections: Iterable[Connection] = ()):
        self._components: Dict[str, Component] = {}
        for comp in components:
            self._components[comp.uid] = comp
        self.connections: FrozenSet[Connection] = frozenset(connections)

        self.graph = nx.Graph()
        self.graph.add_nodes_from(sorted(self._components))
        self.graph.add_edges_from(conn.pair() for conn in sorted(self.connections))

    @classmethod
    def from_adjacency(cls, components: Iterable[Component],
                       adjacency: Mapping[str, Iterable[str]]) -> "Topology":
        neighbours = {node: set(peers) for node, peers in adjacency.items()}
        violations = []
        connections = set()
        for node in sorted(neighbours):
            for peer in sorted(neighbours[node]):
                if node not in neighbours.get(peer, set()):
                    violations.append(f"asymmetric link {node}->{peer} has no {peer}->{node}")
                    continue
                if node == peer:
                    violations.append(f"self-connection on {node}")
                    continue
                connections.add(Connection(node, peer))
        if violations:
            raise InvalidTopology(violations)
        return cls(components, connections)

    def with_changes(self, added: Iterable[Connection] = (), removed: Iterable[Connection] = (),
                     components: Optional[Iterable[Component]] = None) -> "Topology":
        universe = self.components if components is None else components
        return Topology(universe, (self.connections - frozenset(removed)) | frozenset(added))

    @property
    def components(self) -> List[Component]:
        return [self._components[uid] for uid in sorted(self._components)]

    def component(self, uid: ComponentRef) -> Component:
        return self._components[_uid(uid)]

    def degree(self, uid: ComponentRef) -> int:
        uid = _uid(uid)
        return self.graph.degree(uid) if uid in self.graph else 0

    def incident(self, uid: ComponentRef) -> List[Connection]:
        uid = _uid(uid)
        return sorted(conn for conn in self.connections if conn.touches(uid))

    def is_live(self, uid: ComponentRef) -> bool:
        comp = self.component(uid)
        return not comp.is_backup or self.degree(comp.uid) > 0

    def live_components(self) -> List[Component]:
        return [comp for comp in self.components if self.is_live(comp.uid)]

    def instances(self, role: Role) -> List[Component]:
        return [comp for comp in self.live_components() if comp.role == role]

    def sorted_connections(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(conn.pair() for conn in sorted(self.connections))

    def __contains__(self, uid) -> bool:
        return _uid(uid) in self._components

    def __len__(self):
        return len(self._components)

    def __repr__(self):
        return f"Topology({len(self._components)} components, {len(self.connections)} connections)"


def neighbors(topology: Topology, component: ComponentRef) -> Set[Component]:
    uid = _uid(component)
    if uid not in topology.graph:
        raise ValueError(f"Component {uid} not in topology")
    return {topology.component(peer) for peer in topology.graph.neighbors(uid)}


class TopologyValidator:
    """
    Rules:
      - both endpoints of every connection are known components
      - a FunctionDevice has at most one connection, and only to a Switch
    Symmetry and the self-loop ban are carried by Connection itself; asymmetric
    adjacency input is rejected in Topology.from_adjacency.
    """

    @staticmethod
    def violations(topology: Topology) -> List[str]:
        problems = []
        for conn in sorted(topology.connections):
            for end in conn:
                if end not in topology:
                    problems.append(f"connection {conn!r} references unknown component {end}")
        if problems:
            return problems

        for comp in topology.components:
            if comp.is_network_device:
                continue
            links = topology.incident(comp.uid)
            if len(links) > 1:
                problems.append(f"function device {comp.uid} has {len(links)} connections (max 1)")
            for conn in links:
                peer = topology.component(conn.other(comp.uid))
                if peer.role != Role.SWITCH:
                    problems.append(
                        f"function device {comp.uid} connects to {peer.uid} ({peer.role.value}), not a Switch")
        return problems

    @staticmethod
    def validate(topology: Topology) -> bool:
        return not TopologyValidator.violations(topology)

    @staticmethod
    def assert_valid(topology: Topology):
        problems = TopologyValidator.violations(topology)
        if problems:
            logger.error(f"Rejected topology with {len(problems)} violation(s)")
            raise InvalidTopology(problems)
