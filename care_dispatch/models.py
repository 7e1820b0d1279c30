from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .errors import DataIntegrityWarning


class UnitStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    DISPATCHED = "DISPATCHED"
    ON_SCENE = "ON_SCENE"
    TRANSPORTING = "TRANSPORTING"
    AT_HOSPITAL = "AT_HOSPITAL"
    RETURNING = "RETURNING"
    UNAVAILABLE = "UNAVAILABLE"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class EquipmentLevel(str, Enum):
    BASIC = "BASIC"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    CRITICAL_CARE = "CRITICAL_CARE"


class EmergencyType(str, Enum):
    CARDIAC = "CARDIAC"
    RESPIRATORY = "RESPIRATORY"
    TRAUMA = "TRAUMA"
    GENERAL = "GENERAL"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"


class TriageLevel(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    URGENT = "URGENT"
    LESS_URGENT = "LESS_URGENT"
    NON_URGENT = "NON_URGENT"


class TriageStatus(str, Enum):
    WAITING = "WAITING"
    IN_ASSESSMENT = "IN_ASSESSMENT"
    IN_TREATMENT = "IN_TREATMENT"
    ADMITTED = "ADMITTED"
    TRANSFERRED = "TRANSFERRED"
    DISCHARGED = "DISCHARGED"
    LEFT_WITHOUT_TREATMENT = "LEFT_WITHOUT_TREATMENT"


ACTIVE_TRIAGE_STATUSES = frozenset({TriageStatus.WAITING, TriageStatus.IN_ASSESSMENT})

# Lower rank is more urgent and sorts first.
TRIAGE_LEVEL_RANK = {
    TriageLevel.IMMEDIATE: 0,
    TriageLevel.URGENT: 1,
    TriageLevel.LESS_URGENT: 2,
    TriageLevel.NON_URGENT: 3,
}

ADVANCED_EQUIPMENT = frozenset({EquipmentLevel.ADVANCED, EquipmentLevel.CRITICAL_CARE})

# Unrecognized stored levels rank after every known level.
UNKNOWN_TRIAGE_RANK = len(TRIAGE_LEVEL_RANK)


def triage_rank(value: TriageLevel | str) -> int:
    try:
        return TRIAGE_LEVEL_RANK[TriageLevel(value)]
    except ValueError:
        return UNKNOWN_TRIAGE_RANK


def enum_value(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else str(value)


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    timestamp: Optional[str] = None


@dataclass
class Facility:
    id: str
    name: str
    location: Optional[GeoPoint] = None
    is_active: bool = True
    accepting_patients: bool = True
    services: list[str] = field(default_factory=list)
    available_emergency_beds: int = 0
    available_icu_beds: int = 0


@dataclass
class TransportUnit:
    id: str
    registration_number: str
    status: UnitStatus
    is_operational: bool
    current_location: Optional[GeoPoint] = None
    facility: Optional[Facility] = None
    equipment_level: EquipmentLevel = EquipmentLevel.BASIC
    fuel_level: Optional[float] = None

    @property
    def is_eligible(self) -> bool:
        return self.status == UnitStatus.AVAILABLE and self.is_operational

    @property
    def resolved_position(self) -> Optional[GeoPoint]:
        if self.current_location is not None:
            return self.current_location
        if self.facility is not None:
            return self.facility.location
        return None


@dataclass
class IntakeEntry:
    id: str
    patient_id: str
    triage_level: TriageLevel | str
    status: TriageStatus | str
    arrival_time: datetime | str | None
    chief_complaint: str = ""
    department: Optional[str] = None


@dataclass(frozen=True)
class RankedUnit:
    unit: TransportUnit
    distance_km: float


@dataclass(frozen=True)
class RankedFacility:
    facility: Facility
    distance_km: float


@dataclass(frozen=True)
class RankedEntry:
    entry: IntakeEntry
    wait_minutes: Optional[int]
    integrity_warning: Optional[DataIntegrityWarning] = None


@dataclass
class QueueSummary:
    total: int
    by_level: dict[str, int]
    by_status: dict[str, int]
    average_wait_minutes: Optional[float] = None
    longest_wait_minutes: Optional[int] = None
    shortest_wait_minutes: Optional[int] = None
    missing_arrival_times: int = 0
