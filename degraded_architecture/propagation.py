import logging
from typing import Dict, FrozenSet

import networkx as nx

from .model import ComponentRef, Topology, TopologyValidator, _uid

logger = logging.getLogger(__name__)


class CompromisePropagator:
    """
    Fixed-radius pivoting: everything within `radius` hops of the seed,
    seed included at distance 0.
    """

    @staticmethod
    def distances(topology: Topology, seed: ComponentRef, radius: int) -> Dict[str, int]:
        TopologyValidator.assert_valid(topology)

        seed_id = _uid(seed)
        if seed_id not in topology:
            raise ValueError(f"Seed {seed_id} not in topology")
        if radius < 0:
            raise ValueError(f"Attack radius must be >= 0, got {radius}")

        return dict(nx.single_source_shortest_path_length(topology.graph, seed_id, cutoff=radius))

    @staticmethod
    def propagate(topology: Topology, seed: ComponentRef, radius: int) -> FrozenSet[str]:
        reached = CompromisePropagator.distances(topology, seed, radius)
        compromised = frozenset(reached)
        logger.info(f"Seed {_uid(seed)} with radius {radius} compromises {len(compromised)} component(s): "
                    f"{', '.join(sorted(compromised))}")
        return compromised
