import logging
import time
from concurrent.futures import ThreadPoolExecutor
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

import numpy as np

from .backups import BackupPool
from .contract import DataflowContract
from .evaluator import FunctionChecker, SafetyEvaluator
from .model import ComponentRef, Connection, Function, Role, Topology, TopologyValidator
from .propagation import CompromisePropagator

logger = logging.getLogger(__name__)


# --- 1. Search Configuration ---

class SearchBudget:
    FIELDS = ("max_candidates", "max_seconds", "max_depth", "beam_width", "workers",
              "allow_direct_links", "isolate_compromised")

    def __init__(self, max_candidates: int = 5000, max_seconds: Optional[float] = None,
                 max_depth: int = 3, beam_width: int = 32, workers: int = 1,
                 allow_direct_links: bool = True, isolate_compromised: bool = False):
        if max_candidates < 1:
            raise ValueError("max_candidates must be at least 1")
        if max_seconds is not None and max_seconds <= 0:
            raise ValueError("max_seconds must be positive")
        if max_depth < 0 or beam_width < 1 or workers < 1:
            raise ValueError("max_depth must be >= 0, beam_width and workers >= 1")
        self.max_candidates = max_candidates
        self.max_seconds = max_seconds
        self.max_depth = max_depth
        self.beam_width = beam_width
        self.workers = workers
        self.allow_direct_links = allow_direct_links
        self.isolate_compromised = isolate_compromised

    @classmethod
    def from_dict(cls, data: Dict) -> "SearchBudget":
        unknown = sorted(set(data) - set(cls.FIELDS))
        if unknown:
            raise ValueError(f"Unknown search budget field(s): {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict:
        return {name: getattr(self, name) for name in self.FIELDS}


class Score:
    """(functions satisfied, original connections retained, new connections added)"""

    def __init__(self, functions: int, retained: int, new: int):
        self.functions = functions
        self.retained = retained
        self.new = new

    def lexicographic(self) -> Tuple[int, int, int]:
        return self.functions, self.retained, -self.new

    def as_vector(self) -> np.ndarray:
        return np.array([self.functions, self.retained, self.new], dtype=float)

    def __eq__(self, other):
        return isinstance(other, Score) and self.lexicographic() == other.lexicographic()

    def __repr__(self):
        return f"Score(functions={self.functions}, retained={self.retained}, new={self.new})"


class ObjectiveWeights:
    """
    Weighted scalar objective: w_f * functions + w_r * retained - w_n * new.
    Equal scalars fall back to the lexicographic order.
    """

    def __init__(self, functions: float = 2.0, retained: float = 1.0, new: float = 1.0):
        if min(functions, retained, new) < 0:
            raise ValueError("Objective weights must be non-negative")
        self.vector = np.array([functions, retained, -new], dtype=float)

    @classmethod
    def from_dict(cls, data: Dict) -> "ObjectiveWeights":
        unknown = sorted(set(data) - {"functions", "retained", "new"})
        if unknown:
            raise ValueError(f"Unknown objective weight(s): {', '.join(unknown)}")
        return cls(**data)

    def scalar(self, score: Score) -> float:
        return float(np.dot(self.vector, score.as_vector()))


# --- 2. Results ---

class PlanResult:
    def __init__(self, topology: Topology, functions: Iterable[Function], score: Score,
                 compromised: Iterable[str], initial: Topology, evaluated: int = 0,
                 budget_exhausted: bool = False):
        self.topology = topology
        self.functions: FrozenSet[Function] = frozenset(functions)
        self.score = score
        self.compromised: FrozenSet[str] = frozenset(compromised)
        self.added: FrozenSet[Connection] = topology.connections - initial.connections
        self.removed: FrozenSet[Connection] = initial.connections - topology.connections
        self.evaluated = evaluated
        self.budget_exhausted = budget_exhausted

    def function_names(self) -> List[str]:
        return sorted(f.value for f in self.functions)

    def __repr__(self):
        return (f"PlanResult(functions={self.function_names()}, {self.score!r}, "
                f"+{len(self.added)}/-{len(self.removed)} connections)")


class Move:
    """
    One rewiring step:
      link   - connect two uncompromised network devices
      bridge - activate a spare network device between two network devices
      attach - connect an unconnected function device to a Switch
      rehome - move a function device to a different Switch
    """

    def __init__(self, kind: str, added: Iterable[Connection], removed: Iterable[Connection] = ()):
        self.kind = kind
        self.added: FrozenSet[Connection] = frozenset(added)
        self.removed: FrozenSet[Connection] = frozenset(removed)

    def __repr__(self):
        return f"{self.kind}(+{sorted(self.added)} -{sorted(self.removed)})"


class _Candidate:
    __slots__ = ("topology", "moves", "functions", "score", "rank")

    def __init__(self, topology, moves, functions, score, rank):
        self.topology = topology
        self.moves = moves
        self.functions = functions
        self.score = score
        self.rank = rank


# --- 3. Degradation Search ---

class DegradationOptimizer:
    """
    Level-wise beam search over rewiring moves.

    Ranking: more functions, then more retained original connections, then
    fewer new connections; remaining ties go to the lexicographically
    smallest sorted connection list. Each level's candidates may be scored
    on a thread pool; the best is picked by a single reduction here.
    """

    def __init__(self, contract: DataflowContract, backup_pool: Optional[BackupPool] = None,
                 budget: Optional[SearchBudget] = None, weights: Optional[ObjectiveWeights] = None):
        self.contract = contract
        self.backup_pool = backup_pool if backup_pool is not None else BackupPool()
        self.budget = budget if budget is not None else SearchBudget()
        self.weights = weights

    def optimize(self, initial: Topology, compromised: Iterable[str]) -> PlanResult:
        """
        Search rounds repeat from the previous round's topology until one
        leaves it unchanged, so planning again on the result is a no-op.
        Each round gets the full budget; an exhausted round ends the search.
        """
        TopologyValidator.assert_valid(initial)
        compromised = frozenset(compromised)

        first = self._search(initial, compromised)
        current = first
        evaluated = first.evaluated
        exhausted = first.budget_exhausted
        rounds = 1
        while (current.added or current.removed) and not exhausted:
            again = self._search(current.topology, compromised)
            evaluated += again.evaluated
            exhausted = again.budget_exhausted
            rounds += 1
            if not (again.added or again.removed):
                break
            current = again

        if current is first:
            first.evaluated = evaluated
            first.budget_exhausted = exhausted
            result = first
        else:
            topology = current.topology
            kept = [comp for comp in topology.components if comp.uid in initial or topology.is_live(comp.uid)]
            final = Topology(kept, topology.connections)
            score = Score(len(current.functions),
                          len(final.connections & initial.connections),
                          len(final.connections - initial.connections))
            result = PlanResult(final, current.functions, score, compromised, initial, evaluated, exhausted)

        if exhausted:
            logger.warning(f"Search budget exhausted after {evaluated} candidate(s); returning best so far")
        if result.functions:
            logger.info(f"Degraded topology keeps {result.function_names()} "
                        f"(+{len(result.added)}/-{len(result.removed)} connections, "
                        f"{evaluated} evaluated in {rounds} round(s))")
        return result

    def _search(self, initial: Topology, compromised: FrozenSet[str]) -> PlanResult:
        checker = FunctionChecker(SafetyEvaluator(self.contract, compromised))

        spares = sorted(
            (spare for role in self.backup_pool.roles() for spare in self.backup_pool.available_backups(role)
             if spare.uid not in initial),
            key=lambda c: c.uid,
        )
        universe = initial.components + spares

        start = initial.connections
        if self.budget.isolate_compromised:
            start = frozenset(conn for conn in start if not any(end in compromised for end in conn))
            logger.info(f"Quarantine dropped {len(initial.connections) - len(start)} connection(s)")
        base = Topology(universe, start)

        moves = self._moves(base, compromised)
        bound = self._upper_bound(base, moves, checker)
        max_retained = len(start)
        logger.info(f"Searching degraded topology: {len(compromised)} compromised, {len(spares)} spare(s), "
                    f"{len(moves)} move(s), at most {bound} function(s) reachable")

        deadline = None
        if self.budget.max_seconds is not None:
            deadline = time.monotonic() + self.budget.max_seconds

        best = self._score(checker, initial, base, frozenset())
        beam = [best]
        seen: Set[FrozenSet[Connection]] = {base.connections}
        evaluated = 1
        exhausted = False

        executor = ThreadPoolExecutor(max_workers=self.budget.workers) if self.budget.workers > 1 else None
        try:
            for depth in range(1, self.budget.max_depth + 1):
                if self._settled(best, bound, max_retained, depth):
                    logger.debug(f"Best candidate cannot be beaten at depth {depth}; stopping")
                    break
                remaining = self.budget.max_candidates - evaluated
                if remaining <= 0 or (deadline is not None and time.monotonic() >= deadline):
                    exhausted = True
                    break

                frontier, truncated = self._expand(beam, moves, universe, seen, remaining)
                if not frontier:
                    break
                scored, exhausted = self._score_frontier(checker, initial, frontier, executor, deadline)
                exhausted = exhausted or truncated
                evaluated += len(scored)

                if scored:
                    beam = sorted(scored, key=lambda c: c.rank)[:self.budget.beam_width]
                    if beam[0].rank < best.rank:
                        best = beam[0]
                logger.debug(f"Depth {depth}: scored {len(scored)} candidate(s), best {best.score!r}")
                if exhausted:
                    break
        finally:
            if executor is not None:
                executor.shutdown()

        if not best.functions:
            logger.info("No degraded topology satisfies any function; keeping the initial topology")
            fallback = self._score(checker, initial, initial, frozenset())
            return PlanResult(initial, fallback.functions, fallback.score, compromised, initial,
                              evaluated, exhausted)

        activated = [spare for spare in spares if best.topology.is_live(spare.uid)]
        final = Topology(initial.components + activated, best.topology.connections)
        return PlanResult(final, best.functions, best.score, compromised, initial, evaluated, exhausted)

    def _moves(self, base: Topology, compromised: FrozenSet[str]) -> List[Move]:
        safe = [comp for comp in base.components if comp.uid not in compromised]
        network = [comp for comp in safe if comp.is_network_device]
        switches = [comp for comp in network if comp.role == Role.SWITCH]
        moves = []

        for first, second in combinations(network, 2):
            if not (self.budget.allow_direct_links or first.is_backup or second.is_backup):
                continue
            link = Connection(first.uid, second.uid)
            if link not in base.connections:
                moves.append(Move("link", [link]))

        for spare in network:
            if not spare.is_backup or base.degree(spare.uid):
                continue
            others = [comp for comp in network if comp.uid != spare.uid]
            for first, second in combinations(others, 2):
                moves.append(Move("bridge", [Connection(spare.uid, first.uid),
                                             Connection(spare.uid, second.uid)]))

        for comp in safe:
            if comp.is_network_device:
                continue
            links = base.incident(comp.uid)
            for switch in switches:
                link = Connection(comp.uid, switch.uid)
                if not links:
                    moves.append(Move("attach", [link]))
                elif len(links) == 1 and link != links[0]:
                    moves.append(Move("rehome", [link], links))
        return moves

    def _upper_bound(self, base: Topology, moves: List[Move], checker: FunctionChecker) -> int:
        # Safe paths only grow with extra connections, so the union of every
        # move (not itself a valid topology) bounds what any candidate reaches.
        saturated = set(base.connections)
        for move in moves:
            saturated |= move.added
        return len(checker.satisfied_functions(Topology(base.components, saturated)))

    def _settled(self, best: _Candidate, bound: int, max_retained: int, depth: int) -> bool:
        # Every non-redundant move adds at least one new connection.
        score = best.score
        return score.functions >= bound and score.retained >= max_retained and score.new < depth

    def _expand(self, beam: List[_Candidate], moves: List[Move], universe, seen, limit: int):
        """New valid candidates one move away from the beam, and whether `limit` cut the level short."""
        frontier = []
        for candidate in beam:
            current = candidate.topology.connections
            for index, move in enumerate(moves):
                if index in candidate.moves or not move.removed <= current or move.added <= current:
                    continue
                connections = (current - move.removed) | move.added
                if connections in seen:
                    continue
                seen.add(connections)
                topology = Topology(universe, connections)
                if not TopologyValidator.validate(topology):
                    continue
                if len(frontier) >= limit:
                    return frontier, True
                frontier.append((topology, candidate.moves | {index}))
        return frontier, False

    def _score_frontier(self, checker, initial, frontier, executor, deadline):
        scored = []
        chunk = max(self.budget.beam_width, 16)
        for offset in range(0, len(frontier), chunk):
            if deadline is not None and time.monotonic() >= deadline:
                return scored, True
            batch = frontier[offset:offset + chunk]
            if executor is not None:
                scored.extend(executor.map(lambda entry: self._score(checker, initial, *entry), batch))
            else:
                scored.extend(self._score(checker, initial, *entry) for entry in batch)
        return scored, False

    def _score(self, checker: FunctionChecker, initial: Topology, topology: Topology,
               moves: FrozenSet[int]) -> _Candidate:
        functions = checker.satisfied_functions(topology)
        score = Score(len(functions),
                      len(topology.connections & initial.connections),
                      len(topology.connections - initial.connections))
        return _Candidate(topology, moves, functions, score, self._rank(score, topology))

    def _rank(self, score: Score, topology: Topology) -> tuple:
        functions, retained, new = score.lexicographic()
        key = (-functions, -retained, -new)
        if self.weights is not None:
            key = (-self.weights.scalar(score),) + key
        return key + (topology.sorted_connections(),)


def plan(topology: Topology, contract: DataflowContract, seed: ComponentRef, k: int,
         backup_pool: Optional[BackupPool] = None, budget: Optional[SearchBudget] = None,
         weights: Optional[ObjectiveWeights] = None) -> PlanResult:
    """Propagate the compromise from `seed` over `k` hops, then search for the best degraded topology."""
    compromised = CompromisePropagator.propagate(topology, seed, k)
    optimizer = DegradationOptimizer(contract, backup_pool, budget, weights)
    return optimizer.optimize(topology, compromised)
