"""
Tests for the degradation search and the plan() entry point.
"""

import pytest

from degraded_architecture.backups import BackupPool
from degraded_architecture.evaluator import SafetyEvaluator
from degraded_architecture.model import (
    Component,
    Connection,
    DataItem,
    Function,
    InvalidTopology,
    Role,
    Topology,
    TopologyValidator,
)
from degraded_architecture.optimizer import (
    DegradationOptimizer,
    ObjectiveWeights,
    Score,
    SearchBudget,
    plan,
)

SMALL = dict(max_depth=2, beam_width=4)


def test_plan_restores_transport_with_one_link(topology, contract, k2_compromise):
    result = plan(topology, contract, "Printer1", 2, budget=SearchBudget(**SMALL))

    assert result.compromised == k2_compromise
    assert result.functions == frozenset({Function.TRANSPORT, Function.HISTORY})
    assert result.score == Score(2, 25, 1)
    assert result.removed == frozenset()
    # lexicographically smallest of the equally good cross-segment links
    assert result.added == frozenset({Connection("ControlFirewall1", "SubstationFirewall1")})
    assert TopologyValidator.validate(result.topology)
    assert not result.budget_exhausted


def test_backup_firewall_restores_transport(topology, contract, backup_pool, k2_compromise):
    budget = SearchBudget(allow_direct_links=False, **SMALL)
    result = plan(topology, contract, "Printer1", 2, backup_pool, budget)

    assert Function.TRANSPORT in result.functions
    assert Function.PRINT in result.functions
    assert result.removed == frozenset()
    assert "BackupFirewall1" in result.topology
    assert "BackupSwitch1" not in result.topology

    evaluator = SafetyEvaluator(contract, k2_compromise)
    path = evaluator.find_safe_path(result.topology, "RTU1", DataItem.ACTIONS_MODBUS)
    assert "BackupFirewall1" in path
    assert not set(path) & k2_compromise

    for conn in result.added:
        assert not any(end in k2_compromise for end in conn)
    assert TopologyValidator.validate(result.topology)


def test_without_links_or_spares_only_rehomes_are_used(topology, contract):
    budget = SearchBudget(allow_direct_links=False, **SMALL)
    result = plan(topology, contract, "Printer1", 2, BackupPool(), budget)
    # moving NTP1 next to Historian1 is enough to bring History back
    assert Function.HISTORY in result.functions
    assert len(result.added) == len(result.removed) > 0
    for conn in result.added:
        kinds = sorted(result.topology.component(end).is_network_device for end in conn)
        assert kinds == [False, True]
    assert TopologyValidator.validate(result.topology)


def test_radius_zero_keeps_topology(topology, contract):
    result = plan(topology, contract, "Printer1", 0, budget=SearchBudget(**SMALL))
    assert result.compromised == frozenset({"Printer1"})
    assert result.functions == frozenset({Function.TRANSPORT, Function.HISTORY})
    assert result.topology.connections == topology.connections
    assert result.evaluated == 1


def test_no_feasible_degradation_returns_initial(topology, contract):
    result = plan(topology, contract, "Switch3", 10, budget=SearchBudget(**SMALL))
    assert len(result.compromised) == 26
    assert result.functions == frozenset()
    assert result.topology is topology
    assert result.added == frozenset() and result.removed == frozenset()
    assert result.score == Score(0, 25, 0)


def test_replanning_is_idempotent(topology, contract, backup_pool):
    budget = SearchBudget(**SMALL)
    optimizer = DegradationOptimizer(contract, backup_pool, budget)
    first = plan(topology, contract, "Printer1", 2, backup_pool, budget)
    again = optimizer.optimize(first.topology, first.compromised)

    assert again.topology.connections == first.topology.connections
    assert again.functions == first.functions
    assert again.added == frozenset() and again.removed == frozenset()


def test_replanning_is_idempotent_when_depth_limit_stops_early(topology, contract, backup_pool):
    budget = SearchBudget(max_depth=1, beam_width=4)
    first = plan(topology, contract, "Printer1", 2, backup_pool, budget)
    # one move per round: the cross-segment link, then the spare printer
    assert first.functions == frozenset(Function)
    assert first.added == frozenset({Connection("ControlFirewall1", "SubstationFirewall1"),
                                     Connection("BackupPrinter1", "Switch1")})
    assert first.score == Score(3, 25, 2)

    again = DegradationOptimizer(contract, backup_pool, budget).optimize(first.topology, first.compromised)
    assert again.topology.connections == first.topology.connections
    assert again.added == frozenset() and again.removed == frozenset()
    assert again.evaluated == 1


def test_quarantine_drops_links_to_compromised(topology, contract, k2_compromise):
    budget = SearchBudget(isolate_compromised=True, **SMALL)
    result = plan(topology, contract, "Printer1", 2, budget=budget)

    assert len(result.removed) == 6
    assert all(any(end in k2_compromise for end in conn) for conn in result.removed)
    assert not any(any(end in k2_compromise for end in conn) for conn in result.topology.connections)
    assert result.functions == frozenset({Function.TRANSPORT, Function.HISTORY})
    assert result.score == Score(2, 19, 1)


def test_budget_exhaustion_returns_consistent_result(topology, contract):
    result = plan(topology, contract, "Printer1", 2, budget=SearchBudget(max_candidates=1))
    assert result.budget_exhausted
    assert result.evaluated == 1
    assert result.topology.connections == topology.connections
    assert TopologyValidator.validate(result.topology)


def test_candidates_cut_at_last_depth_mark_budget_exhausted(topology, contract):
    # 11 new network links and 45 rehomes are one move away from the start
    cut = plan(topology, contract, "Printer1", 2, budget=SearchBudget(max_depth=1, max_candidates=20))
    assert cut.budget_exhausted
    assert cut.evaluated == 20
    assert cut.score == Score(2, 25, 1)

    exact = plan(topology, contract, "Printer1", 2, budget=SearchBudget(max_depth=1, max_candidates=57))
    assert not exact.budget_exhausted
    assert exact.score == Score(2, 25, 1)


class RecordingPool(BackupPool):
    def __init__(self, backups):
        super().__init__(backups)
        self.asked = []

    def available_backups(self, role):
        self.asked.append(role)
        return super().available_backups(role)


def test_spares_come_from_available_backups(topology, contract, backup_pool):
    pool = RecordingPool(backup_pool.all_backups())
    budget = SearchBudget(allow_direct_links=False, **SMALL)
    result = plan(topology, contract, "Printer1", 2, pool, budget)
    assert set(pool.asked) >= {Role.FIREWALL, Role.SWITCH, Role.PRINTER}
    assert "BackupFirewall1" in result.topology


def test_parallel_scoring_matches_serial(topology, contract, backup_pool):
    serial = plan(topology, contract, "Printer1", 2, backup_pool, SearchBudget(workers=1, **SMALL))
    threaded = plan(topology, contract, "Printer1", 2, backup_pool, SearchBudget(workers=3, **SMALL))
    assert threaded.topology.connections == serial.topology.connections
    assert threaded.score == serial.score
    assert threaded.evaluated == serial.evaluated


def test_weighted_objective(topology, contract):
    weights = ObjectiveWeights(functions=2.0, retained=1.0, new=1.0)
    assert weights.scalar(Score(2, 25, 1)) == 28.0

    result = plan(topology, contract, "Printer1", 2, budget=SearchBudget(**SMALL), weights=weights)
    assert result.functions == frozenset({Function.TRANSPORT, Function.HISTORY})
    assert result.added == frozenset({Connection("ControlFirewall1", "SubstationFirewall1")})


def test_invalid_initial_topology_is_fatal(contract):
    comps = [Component("FW", Role.FIREWALL), Component("HMI1", Role.HMI)]
    bad = Topology(comps, [Connection("FW", "HMI1")])
    with pytest.raises(InvalidTopology):
        DegradationOptimizer(contract).optimize(bad, frozenset())


def test_search_budget_checks_arguments():
    with pytest.raises(ValueError):
        SearchBudget(max_candidates=0)
    with pytest.raises(ValueError):
        SearchBudget(beam_width=0)
    with pytest.raises(ValueError):
        SearchBudget.from_dict({"max_depth": 2, "beam": 3})
    assert SearchBudget.from_dict({"max_depth": 2}).to_dict()["max_depth"] == 2
