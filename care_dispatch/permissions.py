from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    COUNTY_ADMIN = "COUNTY_ADMIN"
    HOSPITAL_ADMIN = "HOSPITAL_ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    TRIAGE_OFFICER = "TRIAGE_OFFICER"
    DISPATCHER = "DISPATCHER"
    DISPATCH_COORDINATOR = "DISPATCH_COORDINATOR"
    AMBULANCE_DRIVER = "AMBULANCE_DRIVER"
    AMBULANCE_CREW = "AMBULANCE_CREW"
    FINANCE_OFFICER = "FINANCE_OFFICER"
    LAB_TECHNICIAN = "LAB_TECHNICIAN"
    PHARMACIST = "PHARMACIST"


class Capability(str, Enum):
    DASHBOARD_READ = "dashboard.read"
    TRIAGE_READ = "triage.read"
    TRIAGE_WRITE = "triage.write"
    PATIENTS_READ = "patients.read"
    PATIENTS_WRITE = "patients.write"
    TRANSFERS_READ = "transfers.read"
    TRANSFERS_WRITE = "transfers.write"
    DISPATCH_READ = "dispatch.read"
    DISPATCH_WRITE = "dispatch.write"
    AMBULANCES_READ = "ambulances.read"
    AMBULANCES_WRITE = "ambulances.write"
    EMERGENCIES_READ = "emergencies.read"
    EMERGENCIES_WRITE = "emergencies.write"
    REFERRALS_READ = "referrals.read"
    REFERRALS_WRITE = "referrals.write"
    RESOURCES_READ = "resources.read"
    RESOURCES_WRITE = "resources.write"
    PROCUREMENT_READ = "procurement.read"
    PROCUREMENT_WRITE = "procurement.write"
    CLAIMS_READ = "claims.read"
    CLAIMS_WRITE = "claims.write"
    TELEMEDICINE_READ = "telemedicine.read"
    TELEMEDICINE_WRITE = "telemedicine.write"
    ANALYTICS_READ = "analytics.read"
    STAFF_READ = "staff.read"
    STAFF_WRITE = "staff.write"
    HOSPITALS_READ = "hospitals.read"
    SETTINGS_READ = "settings.read"
    MONITORING_READ = "monitoring.read"


ALL_CAPABILITIES = frozenset(Capability)
FULL_ACCESS_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})

MODULE_CAPABILITIES: Mapping[str, frozenset[Capability]] = MappingProxyType(
    {
        "dashboard": frozenset({Capability.DASHBOARD_READ}),
        "triage": frozenset({Capability.TRIAGE_READ, Capability.TRIAGE_WRITE}),
        "patients": frozenset({Capability.PATIENTS_READ, Capability.PATIENTS_WRITE}),
        "transfers": frozenset({Capability.TRANSFERS_READ, Capability.TRANSFERS_WRITE}),
        "dispatch": frozenset({Capability.DISPATCH_READ, Capability.DISPATCH_WRITE}),
        "ambulances": frozenset({Capability.AMBULANCES_READ, Capability.AMBULANCES_WRITE}),
        "referrals": frozenset({Capability.REFERRALS_READ, Capability.REFERRALS_WRITE}),
        "resources": frozenset({Capability.RESOURCES_READ, Capability.RESOURCES_WRITE}),
        "procurement": frozenset({Capability.PROCUREMENT_READ, Capability.PROCUREMENT_WRITE}),
        "sha-claims": frozenset({Capability.CLAIMS_READ, Capability.CLAIMS_WRITE}),
        "telemedicine": frozenset({Capability.TELEMEDICINE_READ, Capability.TELEMEDICINE_WRITE}),
        "emergencies": frozenset({Capability.EMERGENCIES_READ, Capability.EMERGENCIES_WRITE}),
        "analytics": frozenset({Capability.ANALYTICS_READ}),
        "staff": frozenset({Capability.STAFF_READ, Capability.STAFF_WRITE}),
        "hospitals": frozenset({Capability.HOSPITALS_READ}),
        "settings": frozenset({Capability.SETTINGS_READ}),
        "monitoring": frozenset({Capability.MONITORING_READ}),
    }
)

_ROLE_ALIASES = {
    "SUPERADMIN": Role.SUPER_ADMIN,
    "HOSPITALADMIN": Role.HOSPITAL_ADMIN,
    "COUNTYADMIN": Role.COUNTY_ADMIN,
    "TRIAGE": Role.TRIAGE_OFFICER,
    "DRIVER": Role.AMBULANCE_DRIVER,
}


def parse_role(raw: str | Role) -> Role:
    if isinstance(raw, Role):
        return raw
    key = str(raw).strip().upper().replace("-", "_").replace(" ", "_")
    if key in Role.__members__:
        return Role[key]
    alias = _ROLE_ALIASES.get(key.replace("_", ""))
    if alias is None:
        raise ValueError(f"Unknown role: {raw!r}")
    return alias


def _caps(*values: Capability) -> frozenset[Capability]:
    return frozenset(values)


C = Capability

DEFAULT_ROLE_CAPABILITIES: Mapping[Role, frozenset[Capability]] = {
    Role.SUPER_ADMIN: ALL_CAPABILITIES,
    Role.ADMIN: ALL_CAPABILITIES,
    Role.COUNTY_ADMIN: _caps(
        C.DASHBOARD_READ, C.TRIAGE_READ, C.PATIENTS_READ, C.TRANSFERS_READ, C.TRANSFERS_WRITE,
        C.DISPATCH_READ, C.REFERRALS_READ, C.RESOURCES_READ, C.PROCUREMENT_READ,
        C.PROCUREMENT_WRITE, C.CLAIMS_READ, C.TELEMEDICINE_READ, C.EMERGENCIES_READ,
        C.EMERGENCIES_WRITE, C.ANALYTICS_READ, C.STAFF_READ, C.HOSPITALS_READ, C.SETTINGS_READ,
    ),
    Role.HOSPITAL_ADMIN: _caps(
        C.DASHBOARD_READ, C.TRIAGE_READ, C.TRIAGE_WRITE, C.PATIENTS_READ, C.PATIENTS_WRITE,
        C.TRANSFERS_READ, C.TRANSFERS_WRITE, C.DISPATCH_READ, C.DISPATCH_WRITE,
        C.AMBULANCES_READ, C.AMBULANCES_WRITE, C.EMERGENCIES_READ, C.EMERGENCIES_WRITE,
        C.REFERRALS_READ, C.REFERRALS_WRITE, C.RESOURCES_READ, C.RESOURCES_WRITE,
        C.PROCUREMENT_READ, C.PROCUREMENT_WRITE, C.CLAIMS_READ, C.CLAIMS_WRITE,
        C.TELEMEDICINE_READ, C.TELEMEDICINE_WRITE, C.ANALYTICS_READ, C.STAFF_READ,
        C.STAFF_WRITE, C.HOSPITALS_READ, C.SETTINGS_READ, C.MONITORING_READ,
    ),
    Role.DOCTOR: _caps(
        C.DASHBOARD_READ, C.TRIAGE_READ, C.PATIENTS_READ, C.PATIENTS_WRITE, C.TRANSFERS_READ,
        C.TRANSFERS_WRITE, C.REFERRALS_READ, C.REFERRALS_WRITE, C.TELEMEDICINE_READ,
        C.TELEMEDICINE_WRITE, C.EMERGENCIES_READ, C.SETTINGS_READ,
    ),
    Role.NURSE: _caps(
        C.DASHBOARD_READ, C.TRIAGE_READ, C.TRIAGE_WRITE, C.PATIENTS_READ, C.PATIENTS_WRITE,
        C.REFERRALS_READ, C.SETTINGS_READ,
    ),
    Role.TRIAGE_OFFICER: _caps(
        C.DASHBOARD_READ, C.TRIAGE_READ, C.TRIAGE_WRITE, C.PATIENTS_READ, C.PATIENTS_WRITE,
        C.SETTINGS_READ,
    ),
    Role.DISPATCHER: _caps(
        C.DASHBOARD_READ, C.DISPATCH_READ, C.DISPATCH_WRITE, C.AMBULANCES_READ,
        C.AMBULANCES_WRITE, C.EMERGENCIES_READ, C.EMERGENCIES_WRITE, C.TRANSFERS_READ,
        C.REFERRALS_READ, C.SETTINGS_READ,
    ),
    Role.DISPATCH_COORDINATOR: _caps(
        C.DASHBOARD_READ, C.DISPATCH_READ, C.DISPATCH_WRITE, C.AMBULANCES_READ,
        C.AMBULANCES_WRITE, C.EMERGENCIES_READ, C.EMERGENCIES_WRITE, C.TRANSFERS_READ,
        C.REFERRALS_READ, C.SETTINGS_READ,
    ),
    Role.AMBULANCE_DRIVER: _caps(
        C.DASHBOARD_READ, C.DISPATCH_READ, C.AMBULANCES_READ, C.EMERGENCIES_READ,
        C.TRANSFERS_READ, C.REFERRALS_READ, C.SETTINGS_READ,
    ),
    Role.AMBULANCE_CREW: _caps(
        C.DASHBOARD_READ, C.DISPATCH_READ, C.AMBULANCES_READ, C.EMERGENCIES_READ,
        C.TRANSFERS_READ, C.REFERRALS_READ, C.SETTINGS_READ,
    ),
    Role.FINANCE_OFFICER: _caps(
        C.DASHBOARD_READ, C.CLAIMS_READ, C.CLAIMS_WRITE, C.ANALYTICS_READ,
    ),
    Role.LAB_TECHNICIAN: _caps(C.DASHBOARD_READ, C.PATIENTS_READ),
    Role.PHARMACIST: _caps(C.DASHBOARD_READ, C.PATIENTS_READ, C.RESOURCES_READ),
}


@dataclass(frozen=True)
class PermissionTable:
    """Closed mapping from every ``Role`` to the capabilities it holds.

    The table is checked when built: each key must be a ``Role``, each value an
    iterable of ``Capability`` members, and no role may be left out. Full
    access roles always resolve to every capability.
    """

    mapping: Mapping[Role, Iterable[Capability]] = field(
        default_factory=lambda: DEFAULT_ROLE_CAPABILITIES
    )

    def __post_init__(self) -> None:
        validated: dict[Role, frozenset[Capability]] = {}
        for role, capabilities in self.mapping.items():
            if not isinstance(role, Role):
                raise ValueError(f"Permission table key is not a Role: {role!r}")
            if isinstance(capabilities, (str, bytes)):
                raise ValueError(f"Capabilities for {role.value} must be a collection.")
            caps = frozenset(capabilities)
            unknown = [cap for cap in caps if not isinstance(cap, Capability)]
            if unknown:
                raise ValueError(f"Unknown capabilities for {role.value}: {unknown!r}")
            validated[role] = ALL_CAPABILITIES if role in FULL_ACCESS_ROLES else caps

        missing = [role.value for role in Role if role not in validated]
        if missing:
            raise ValueError(f"Permission table is missing roles: {', '.join(missing)}")
        object.__setattr__(self, "mapping", MappingProxyType(validated))

    def capabilities(self, role: Role | str) -> frozenset[Capability]:
        return self.mapping[parse_role(role)]

    def allows(self, role: Role | str, capability: Capability | str) -> bool:
        cap = capability if isinstance(capability, Capability) else Capability(capability)
        return cap in self.capabilities(role)

    def can_access_module(self, role: Role | str, module: str) -> bool:
        required = MODULE_CAPABILITIES.get(module)
        if not required:
            return False
        return bool(required & self.capabilities(role))
