"""
Reference substation control architecture (26 components).

    corporate:      Switch2 (Internet, VPN, Printer1)
    control centre: Switch1 (SCADA1/2, HMI1/2, EngineeringWorkstation1)
                    -- ControlFirewall1 -- Switch4 (OPC1/2, Historian1)
    substation:     Switch3 (RTU1/2, NTP1, Historian2)
                    -- SubstationFirewall1 -- Switch5 (Relay1/2/3)

DMZFirewall1 links Switch2, Switch1 and Switch3; it is the only path between
the control centre and the substation.
"""

from typing import Dict, List

from .backups import BackupPool
from .contract import DataflowContract, RoleContract
from .model import Component, Connection, DataItem, Role, Topology

_NETWORK: Dict[str, Role] = {
    "Internet": Role.INTERNET,
    "VPN": Role.VPN,
    "DMZFirewall1": Role.FIREWALL,
    "ControlFirewall1": Role.FIREWALL,
    "SubstationFirewall1": Role.FIREWALL,
    "Switch1": Role.SWITCH,
    "Switch2": Role.SWITCH,
    "Switch3": Role.SWITCH,
    "Switch4": Role.SWITCH,
    "Switch5": Role.SWITCH,
}

# uid -> (role, access switch)
_DEVICES: Dict[str, tuple] = {
    "Printer1": (Role.PRINTER, "Switch2"),
    "SCADA1": (Role.SCADA, "Switch1"),
    "SCADA2": (Role.SCADA, "Switch1"),
    "HMI1": (Role.HMI, "Switch1"),
    "HMI2": (Role.HMI, "Switch1"),
    "EngineeringWorkstation1": (Role.ENGINEERING_WORKSTATION, "Switch1"),
    "OPC1": (Role.OPC, "Switch4"),
    "OPC2": (Role.OPC, "Switch4"),
    "Historian1": (Role.HISTORIAN, "Switch4"),
    "RTU1": (Role.RTU, "Switch3"),
    "RTU2": (Role.RTU, "Switch3"),
    "NTP1": (Role.NTP, "Switch3"),
    "Historian2": (Role.HISTORIAN, "Switch3"),
    "Relay1": (Role.RELAY, "Switch5"),
    "Relay2": (Role.RELAY, "Switch5"),
    "Relay3": (Role.RELAY, "Switch5"),
}

_BACKBONE = [
    ("Switch2", "Internet"),
    ("Switch2", "VPN"),
    ("Switch2", "DMZFirewall1"),
    ("DMZFirewall1", "Switch1"),
    ("DMZFirewall1", "Switch3"),
    ("Switch1", "ControlFirewall1"),
    ("ControlFirewall1", "Switch4"),
    ("Switch3", "SubstationFirewall1"),
    ("SubstationFirewall1", "Switch5"),
]


def build_reference_components() -> List[Component]:
    components = [Component(uid, role) for uid, role in _NETWORK.items()]
    components += [Component(uid, role) for uid, (role, _) in _DEVICES.items()]
    return components


def build_reference_topology() -> Topology:
    connections = [Connection(a, b) for a, b in _BACKBONE]
    connections += [Connection(uid, switch) for uid, (_, switch) in _DEVICES.items()]
    return Topology(build_reference_components(), connections)


def build_reference_contract() -> DataflowContract:
    return DataflowContract([
        RoleContract(Role.RELAY,
                     consumes=[DataItem.ACTIONS_MODBUS],
                     produces=[DataItem.STATUS_MODBUS],
                     successors=[Role.RTU]),
        RoleContract(Role.RTU,
                     consumes=[DataItem.STATUS_MODBUS, DataItem.ACTIONS_MODBUS],
                     produces=[DataItem.STATUS_MODBUS, DataItem.ACTIONS_MODBUS],
                     successors=[Role.OPC, Role.RELAY]),
        RoleContract(Role.OPC,
                     consumes=[DataItem.STATUS_MODBUS, DataItem.ACTIONS_REST, DataItem.SETPOINTS_REST],
                     produces=[DataItem.STATUS_REST, DataItem.ACTIONS_MODBUS],
                     successors=[Role.SCADA, Role.RTU]),
        RoleContract(Role.SCADA,
                     consumes=[DataItem.STATUS_REST, DataItem.ACTIONS_REST, DataItem.SETPOINTS_REST,
                               DataItem.TIME_SYNC],
                     produces=[DataItem.STATUS_REST, DataItem.ACTIONS_REST, DataItem.SETPOINTS_REST],
                     successors=[Role.OPC, Role.HMI, Role.ENGINEERING_WORKSTATION, Role.HISTORIAN,
                                 Role.PRINTER]),
        RoleContract(Role.HMI,
                     consumes=[DataItem.STATUS_REST],
                     produces=[DataItem.ACTIONS_REST, DataItem.SETPOINTS_REST],
                     successors=[Role.SCADA]),
        RoleContract(Role.ENGINEERING_WORKSTATION,
                     consumes=[DataItem.STATUS_REST],
                     produces=[DataItem.SETPOINTS_REST],
                     successors=[Role.SCADA]),
        RoleContract(Role.HISTORIAN,
                     consumes=[DataItem.STATUS_REST, DataItem.TIME_SYNC]),
        RoleContract(Role.NTP,
                     produces=[DataItem.TIME_SYNC],
                     successors=[Role.SCADA, Role.HISTORIAN]),
        RoleContract(Role.PRINTER,
                     consumes=[DataItem.STATUS_REST]),
    ])


def build_reference_backup_pool() -> BackupPool:
    return BackupPool([
        Component("BackupFirewall1", Role.FIREWALL, backup_group="Firewall", is_backup=True),
        Component("BackupSwitch1", Role.SWITCH, backup_group="Switch", is_backup=True),
        Component("BackupPrinter1", Role.PRINTER, backup_group="Printer", is_backup=True),
    ])
