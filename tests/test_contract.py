"""
Tests for the role dataflow contract and its load-time checks.
"""

import pytest

from degraded_architecture.contract import DataflowContract, RoleContract
from degraded_architecture.model import ContractError, DataItem, Role


def test_reference_flow_edges(contract):
    edges = contract.flow_edges()
    assert (Role.RELAY, Role.RTU) in edges
    assert (Role.OPC, Role.RTU) in edges
    assert (Role.SCADA, Role.PRINTER) in edges
    assert (Role.NTP, Role.HISTORIAN) in edges
    assert (Role.HISTORIAN, Role.SCADA) not in edges


def test_producers(contract):
    assert contract.producers_of(DataItem.TIME_SYNC) == frozenset({Role.NTP})
    assert contract.producers_of(DataItem.ACTIONS_MODBUS) == frozenset({Role.OPC, Role.RTU})


def test_role_without_entry_is_inert(contract):
    assert contract.consumes(Role.SWITCH) == frozenset()
    assert contract.produces(Role.INTERNET) == frozenset()
    assert contract.successors(Role.FIREWALL) == frozenset()


def test_successors_without_production_is_an_error():
    with pytest.raises(ContractError) as excinfo:
        DataflowContract([
            RoleContract(Role.HISTORIAN, consumes=[DataItem.STATUS_REST], successors=[Role.HMI]),
            RoleContract(Role.SCADA, produces=[DataItem.STATUS_REST], successors=[Role.HISTORIAN]),
        ])
    assert any("Historian produces nothing" in p for p in excinfo.value.problems)


def test_consumed_item_needs_a_producer():
    with pytest.raises(ContractError) as excinfo:
        DataflowContract([RoleContract(Role.PRINTER, consumes=[DataItem.STATUS_REST])])
    assert "no role produces it" in excinfo.value.problems[0]


def test_duplicate_role_entry():
    with pytest.raises(ContractError):
        DataflowContract([RoleContract(Role.NTP), RoleContract(Role.NTP)])


def test_edges_into_non_consumers_are_dropped():
    contract = DataflowContract([
        RoleContract(Role.NTP, produces=[DataItem.TIME_SYNC], successors=[Role.SCADA, Role.PRINTER]),
        RoleContract(Role.SCADA, consumes=[DataItem.TIME_SYNC]),
    ])
    assert contract.flow_edges() == frozenset({(Role.NTP, Role.SCADA)})


def test_logical_path(contract):
    assert contract.logical_path(DataItem.TIME_SYNC, Role.HISTORIAN) == [Role.NTP, Role.HISTORIAN]
    assert contract.logical_path(DataItem.STATUS_MODBUS, Role.OPC) == [Role.RTU, Role.OPC]
    assert contract.logical_path(DataItem.TIME_SYNC, Role.NTP) is None


def test_carriers_follow_flow_edges(contract):
    carriers = contract.carriers(DataItem.TIME_SYNC)
    assert Role.NTP in carriers
    assert Role.SCADA in carriers
    assert Role.SWITCH not in carriers


def test_to_dict_lists_every_role(contract):
    roles = [entry["role"] for entry in contract.to_dict()["roles"]]
    assert roles == sorted(roles)
    assert "Relay" in roles and "Printer" in roles
