from typing import Dict, FrozenSet, Iterable, List

from .model import Component, Role

BACKUP_ELIGIBLE_ROLES = frozenset({
    Role.FIREWALL, Role.SWITCH, Role.PRINTER, Role.SCADA, Role.OPC, Role.HMI,
    Role.ENGINEERING_WORKSTATION, Role.HISTORIAN, Role.NTP, Role.RTU, Role.RELAY,
})


class BackupPool:
    """
    Spare component instances per role. A spare becomes live only when the
    optimizer connects it; the pool keeps no activation state.
    """

    def __init__(self, backups: Iterable[Component] = ()):
        self._by_role: Dict[Role, Dict[str, Component]] = {}
        for comp in backups:
            self.add(comp)

    def add(self, component: Component):
        if component.role not in BACKUP_ELIGIBLE_ROLES:
            raise ValueError(f"Role {component.role.value} cannot hold backups ({component.uid})")
        if any(component.uid in spares for spares in self._by_role.values()):
            raise ValueError(f"Duplicate backup {component.uid}")
        if not component.is_backup:
            component = component.as_backup()
        self._by_role.setdefault(component.role, {})[component.uid] = component

    def available_backups(self, role: Role) -> FrozenSet[Component]:
        return frozenset(self._by_role.get(role, {}).values())

    def all_backups(self) -> List[Component]:
        spares = [comp for by_uid in self._by_role.values() for comp in by_uid.values()]
        return sorted(spares, key=lambda c: c.uid)

    def roles(self) -> List[Role]:
        return sorted((r for r, spares in self._by_role.items() if spares), key=lambda r: r.value)

    def __len__(self):
        return sum(len(spares) for spares in self._by_role.values())

    def __repr__(self):
        return f"BackupPool({len(self)} spares)"
