from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .config import DispatchConfig
from .database import SQLiteRepository
from .errors import RecordNotFound
from .geo import origin_point
from .locator import NearestUnitLocator
from .models import (
    EmergencyType,
    EquipmentLevel,
    GeoPoint,
    QueueSummary,
    RankedEntry,
    RankedFacility,
    RankedUnit,
    Severity,
    TransportUnit,
    TriageLevel,
    TriageStatus,
    UnitStatus,
)
from .permissions import PermissionTable
from .ranker import TriageQueueRanker

logger = logging.getLogger(__name__)


@dataclass
class DispatchOverview:
    units: list[RankedUnit]
    facilities: list[RankedFacility]

    @property
    def recommended_unit(self) -> RankedUnit | None:
        return self.units[0] if self.units else None

    @property
    def recommended_facility(self) -> RankedFacility | None:
        return self.facilities[0] if self.facilities else None


@dataclass
class DispatchService:
    repository: SQLiteRepository
    config: DispatchConfig
    locator: NearestUnitLocator | None = None
    ranker: TriageQueueRanker = field(default_factory=TriageQueueRanker)
    permissions: PermissionTable = field(default_factory=PermissionTable)

    def __post_init__(self) -> None:
        if self.locator is None:
            self.locator = NearestUnitLocator(self.config)

    def find_nearest(
        self,
        origin: GeoPoint,
        emergency_type: EmergencyType | str | None = None,
        limit: int | None = None,
        *,
        severity: Severity | str | None = None,
        required_equipment: bool = False,
    ) -> list[RankedUnit]:
        units = self.repository.list_units(eligible_only=True)
        ranked = self.locator.locate(
            origin,
            units,
            emergency_type,
            self.config.default_unit_limit if limit is None else limit,
            severity=severity,
            required_equipment=required_equipment,
        )
        logger.info(
            "Ranked %d of %d available units for emergency_type=%s",
            len(ranked),
            len(units),
            emergency_type,
        )
        return ranked

    def dispatch_overview(
        self,
        origin: GeoPoint,
        emergency_type: EmergencyType | str | None = None,
        *,
        severity: Severity | str | None = None,
        required_equipment: bool = False,
        unit_limit: int | None = None,
        facility_limit: int | None = None,
    ) -> DispatchOverview:
        units = self.find_nearest(
            origin,
            emergency_type,
            unit_limit,
            severity=severity,
            required_equipment=required_equipment,
        )
        facilities = self.locator.nearest_facilities(
            origin,
            self.repository.list_facilities(),
            self.config.default_facility_limit if facility_limit is None else facility_limit,
        )
        return DispatchOverview(units=units, facilities=facilities)

    def triage_queue(self, now: datetime | None = None) -> list[RankedEntry]:
        entries = self.repository.list_active_triage_entries()
        return self.ranker.rank_queue(entries, now=now)

    def triage_stats(self, now: datetime | None = None) -> QueueSummary:
        return self.ranker.summarize(self.triage_queue(now=now))

    def register_unit(
        self,
        *,
        registration_number: str,
        facility_id: str | None = None,
        equipment_level: EquipmentLevel = EquipmentLevel.BASIC,
        fuel_level: float | None = None,
        latitude: Any = None,
        longitude: Any = None,
    ) -> TransportUnit:
        location = None
        if latitude is not None or longitude is not None:
            location = origin_point(latitude, longitude)
        unit_id = self.repository.create_unit(
            registration_number=registration_number,
            facility_id=facility_id,
            equipment_level=equipment_level,
            fuel_level=fuel_level,
            current_location=location,
        )
        logger.info("Registered transport unit %s (%s)", unit_id, registration_number)
        return self._require_unit(unit_id)

    def record_unit_location(
        self,
        unit_id: str,
        *,
        latitude: Any,
        longitude: Any,
        accuracy: float | None = None,
        timestamp: str | None = None,
    ) -> TransportUnit:
        point = origin_point(latitude, longitude)
        location = GeoPoint(
            latitude=point.latitude,
            longitude=point.longitude,
            accuracy=accuracy,
            timestamp=timestamp,
        )
        self.repository.update_unit_location(unit_id=unit_id, location=location)
        return self._require_unit(unit_id)

    def set_unit_status(
        self,
        unit_id: str,
        status: UnitStatus,
        *,
        is_operational: bool | None = None,
    ) -> TransportUnit:
        self.repository.update_unit_status(
            unit_id=unit_id,
            status=status,
            is_operational=is_operational,
        )
        logger.info("Transport unit %s is now %s", unit_id, status.value)
        return self._require_unit(unit_id)

    def admit_to_triage(
        self,
        *,
        patient_id: str,
        triage_level: TriageLevel,
        arrival_time: datetime | None = None,
        chief_complaint: str = "",
        department: str | None = None,
    ) -> str:
        entry_id = self.repository.create_triage_entry(
            patient_id=patient_id,
            triage_level=triage_level,
            arrival_time=arrival_time,
            chief_complaint=chief_complaint,
            department=department,
        )
        logger.info("Patient %s admitted to triage as %s", patient_id, triage_level.value)
        return entry_id

    def transition_triage(self, entry_id: str, status: TriageStatus) -> None:
        self.repository.update_triage_status(entry_id=entry_id, status=status)

    def _require_unit(self, unit_id: str) -> TransportUnit:
        unit = self.repository.get_unit(unit_id)
        if unit is None:
            raise RecordNotFound(f"Transport unit {unit_id} not found.")
        return unit
