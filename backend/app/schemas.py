from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


EmergencyTypeName = Literal["CARDIAC", "RESPIRATORY", "TRAUMA", "GENERAL"]
SeverityName = Literal["CRITICAL", "HIGH", "MODERATE", "LOW"]
EquipmentLevelName = Literal["BASIC", "INTERMEDIATE", "ADVANCED", "CRITICAL_CARE"]
TriageLevelName = Literal["IMMEDIATE", "URGENT", "LESS_URGENT", "NON_URGENT"]
TriageStatusName = Literal[
    "WAITING",
    "IN_ASSESSMENT",
    "IN_TREATMENT",
    "ADMITTED",
    "TRANSFERRED",
    "DISCHARGED",
    "LEFT_WITHOUT_TREATMENT",
]
UnitStatusName = Literal[
    "AVAILABLE",
    "DISPATCHED",
    "ON_SCENE",
    "TRANSPORTING",
    "AT_HOSPITAL",
    "RETURNING",
    "UNAVAILABLE",
    "MAINTENANCE",
    "OUT_OF_SERVICE",
]


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class GeoPointOut(BaseModel):
    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: str | None = None


class FacilityOut(BaseModel):
    id: str
    name: str
    location: GeoPointOut | None = None
    services: list[str]
    available_emergency_beds: int
    available_icu_beds: int


class UnitOut(BaseModel):
    id: str
    registration_number: str
    status: str
    is_operational: bool
    equipment_level: str
    fuel_level: float | None = None
    current_location: GeoPointOut | None = None
    facility_id: str | None = None
    facility_name: str | None = None


class RankedUnitOut(BaseModel):
    unit: UnitOut
    distance_km: float


class RankedFacilityOut(BaseModel):
    facility: FacilityOut
    distance_km: float


class NearestRequest(BaseModel):
    # Coordinates stay loosely typed so validation errors map to 400, not 422.
    latitude: Any = None
    longitude: Any = None
    emergency_type: EmergencyTypeName | None = None
    severity: SeverityName | None = None
    required_equipment: bool = False
    limit: int | None = Field(default=None, ge=1, le=50)


class NearestResponse(BaseModel):
    nearest_units: list[RankedUnitOut]
    nearest_facilities: list[RankedFacilityOut]
    recommended_unit: RankedUnitOut | None = None
    recommended_facility: RankedFacilityOut | None = None


class NearestListResponse(BaseModel):
    units: list[RankedUnitOut]
    count: int
    coordinates: GeoPointOut


class UnitCreateRequest(BaseModel):
    registration_number: str = Field(min_length=1, max_length=40)
    facility_id: str | None = None
    equipment_level: EquipmentLevelName = "BASIC"
    fuel_level: float | None = Field(default=None, ge=0, le=100)
    latitude: Any = None
    longitude: Any = None


class UnitLocationRequest(BaseModel):
    latitude: Any = None
    longitude: Any = None
    accuracy: float | None = Field(default=None, ge=0)
    timestamp: str | None = None


class UnitStatusRequest(BaseModel):
    status: UnitStatusName
    is_operational: bool | None = None


class TriageCreateRequest(BaseModel):
    patient_id: str = Field(min_length=1, max_length=64)
    triage_level: TriageLevelName
    chief_complaint: str = Field(default="", max_length=500)
    department: str | None = Field(default=None, max_length=100)


class TriageCreateResponse(BaseModel):
    id: str


class TriageStatusRequest(BaseModel):
    status: TriageStatusName


class QueueEntryOut(BaseModel):
    id: str
    patient_id: str
    triage_level: str
    status: str
    arrival_time: str | None = None
    chief_complaint: str
    department: str | None = None
    wait_minutes: int | None = None
    integrity_warning: str | None = None


class QueueResponse(BaseModel):
    items: list[QueueEntryOut]


class QueueStatsResponse(BaseModel):
    total: int
    by_level: dict[str, int]
    by_status: dict[str, int]
    average_wait_minutes: float | None = None
    longest_wait_minutes: int | None = None
    shortest_wait_minutes: int | None = None
    missing_arrival_times: int


class AuditResponse(BaseModel):
    items: list[dict[str, Any]]
