"""Compromise propagation and degraded-topology planning for control networks."""

from .backups import BACKUP_ELIGIBLE_ROLES, BackupPool
from .contract import DataflowContract, RoleContract
from .evaluator import FunctionChecker, SafetyEvaluator
from .loader import DataLoader
from .model import (
    FUNCTION_ROLES,
    Component,
    ComponentCategory,
    Connection,
    ContractError,
    DataItem,
    Function,
    InvalidTopology,
    Role,
    Topology,
    TopologyValidator,
    neighbors,
)
from .optimizer import DegradationOptimizer, ObjectiveWeights, PlanResult, Score, SearchBudget, plan
from .propagation import CompromisePropagator

__all__ = [
    "BACKUP_ELIGIBLE_ROLES",
    "BackupPool",
    "Component",
    "ComponentCategory",
    "CompromisePropagator",
    "Connection",
    "ContractError",
    "DataItem",
    "DataLoader",
    "DataflowContract",
    "DegradationOptimizer",
    "FUNCTION_ROLES",
    "Function",
    "FunctionChecker",
    "InvalidTopology",
    "ObjectiveWeights",
    "PlanResult",
    "Role",
    "RoleContract",
    "SafetyEvaluator",
    "Score",
    "SearchBudget",
    "Topology",
    "TopologyValidator",
    "neighbors",
    "plan",
]
