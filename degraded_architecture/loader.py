import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Union

import pandas as pd

from .backups import BackupPool
from .contract import DataflowContract, RoleContract
from .model import Component, ComponentCategory, Connection, DataItem, Role, Topology, TopologyValidator
from .optimizer import ObjectiveWeights, SearchBudget

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_ROLE_MAP = {r.value: r for r in Role}
_ITEM_MAP = {d.value: d for d in DataItem}
_CATEGORY_MAP = {c.value: c for c in ComponentCategory}


def _lookup(mapping: Dict, name: str, kind: str):
    try:
        return mapping[name]
    except KeyError:
        raise ValueError(f"Unknown {kind} '{name}'") from None


def _read_json(path: PathLike):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


class DataLoader:
    """JSON (and tabular) input for topologies, contracts, spares and search settings."""

    # --- Components & topology ---

    @staticmethod
    def component_from_dict(data: Dict) -> Component:
        if "uid" not in data or "role" not in data:
            raise ValueError(f"Component entry needs 'uid' and 'role': {data}")
        category = data.get("category")
        return Component(
            uid=data["uid"],
            role=_lookup(_ROLE_MAP, data["role"], "role"),
            category=_lookup(_CATEGORY_MAP, category, "category") if category else None,
            backup_group=data.get("backup_group"),
            is_backup=bool(data.get("is_backup", False)),
        )

    @staticmethod
    def component_to_dict(component: Component) -> Dict:
        data = {"uid": component.uid, "role": component.role.value, "category": component.category.value}
        if component.backup_group:
            data["backup_group"] = component.backup_group
        if component.is_backup:
            data["is_backup"] = True
        return data

    @staticmethod
    def topology_from_dict(data: Dict) -> Topology:
        components = [DataLoader.component_from_dict(c) for c in data.get("components", [])]
        connections = []
        for conn in data.get("connections", []):
            if "source" not in conn or "target" not in conn:
                raise ValueError(f"Connection entry needs 'source' and 'target': {conn}")
            connections.append(Connection(conn["source"], conn["target"]))
        topology = Topology(components, connections)
        TopologyValidator.assert_valid(topology)
        return topology

    @staticmethod
    def topology_to_dict(topology: Topology) -> Dict:
        return {
            "components": [DataLoader.component_to_dict(c) for c in topology.components],
            "connections": [{"source": a, "target": b} for a, b in topology.sorted_connections()],
        }

    @staticmethod
    def load_topology(json_path: PathLike) -> Topology:
        topology = DataLoader.topology_from_dict(_read_json(json_path))
        logger.info(f"Loaded {topology!r} from {json_path}")
        return topology

    @staticmethod
    def save_topology(topology: Topology, output_path: PathLike):
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(DataLoader.topology_to_dict(topology), f, indent=2)
        logger.info(f"Topology saved to {output_path}")

    @staticmethod
    def load_connection_table(table_path: PathLike, components: Iterable[Component]) -> Topology:
        """Edge list from CSV or Excel with `source` and `target` columns."""
        table_path = Path(table_path)
        if table_path.suffix.lower() in (".xlsx", ".xls"):
            df = pd.read_excel(table_path)
        else:
            df = pd.read_csv(table_path)

        missing = {"source", "target"} - set(df.columns)
        if missing:
            raise ValueError(f"{table_path} lacks column(s): {', '.join(sorted(missing))}")

        df = df.dropna(subset=["source", "target"])
        connections = [Connection(str(row.source).strip(), str(row.target).strip())
                       for row in df.itertuples(index=False)]
        topology = Topology(components, connections)
        TopologyValidator.assert_valid(topology)
        logger.info(f"Loaded {len(connections)} connection row(s) from {table_path}")
        return topology

    # --- Contract ---

    @staticmethod
    def contract_from_dict(data: Dict) -> DataflowContract:
        role_contracts = []
        for entry in data.get("roles", []):
            if "role" not in entry:
                raise ValueError(f"Contract entry needs 'role': {entry}")
            role_contracts.append(RoleContract(
                role=_lookup(_ROLE_MAP, entry["role"], "role"),
                consumes=[_lookup(_ITEM_MAP, d, "data item") for d in entry.get("consumes", [])],
                produces=[_lookup(_ITEM_MAP, d, "data item") for d in entry.get("produces", [])],
                successors=[_lookup(_ROLE_MAP, r, "role") for r in entry.get("successors", [])],
            ))
        return DataflowContract(role_contracts)

    @staticmethod
    def load_contract(json_path: PathLike) -> DataflowContract:
        return DataLoader.contract_from_dict(_read_json(json_path))

    # --- Spares & search settings ---

    @staticmethod
    def backup_pool_from_dict(data: Dict) -> BackupPool:
        return BackupPool(DataLoader.component_from_dict(c) for c in data.get("backups", []))

    @staticmethod
    def load_backup_pool(json_path: PathLike) -> BackupPool:
        return DataLoader.backup_pool_from_dict(_read_json(json_path))

    @staticmethod
    def load_search_budget(json_path: PathLike) -> SearchBudget:
        return SearchBudget.from_dict(_read_json(json_path))

    @staticmethod
    def load_objective_weights(json_path: PathLike) -> ObjectiveWeights:
        return ObjectiveWeights.from_dict(_read_json(json_path))
