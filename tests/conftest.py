"""Shared fixtures built on the 26-component reference architecture."""

import pytest

from degraded_architecture.reference import (
    build_reference_backup_pool,
    build_reference_contract,
    build_reference_topology,
)


@pytest.fixture
def topology():
    return build_reference_topology()


@pytest.fixture
def contract():
    return build_reference_contract()


@pytest.fixture
def k2_compromise():
    return frozenset({"Printer1", "Switch2", "DMZFirewall1", "VPN", "Internet"})


@pytest.fixture
def backup_pool():
    return build_reference_backup_pool()
