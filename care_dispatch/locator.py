from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable

from .config import DispatchConfig
from .errors import InvalidArgument
from .geo import haversine_km, validate_point
from .models import (
    ADVANCED_EQUIPMENT,
    EmergencyType,
    Facility,
    GeoPoint,
    RankedFacility,
    RankedUnit,
    Severity,
    TransportUnit,
)

logger = logging.getLogger(__name__)

EQUIPMENT_SENSITIVE_EMERGENCIES = frozenset(
    {EmergencyType.CARDIAC, EmergencyType.RESPIRATORY, EmergencyType.TRAUMA}
)


def _coerce_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidArgument(f"limit must be a positive integer, got {limit!r}.")
    return limit


def _coerce_enum(value, enum_cls, name: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError as exc:
        raise InvalidArgument(f"Unknown {name}: {value!r}.") from exc


@dataclass
class NearestUnitLocator:
    config: DispatchConfig = field(default_factory=DispatchConfig)

    def locate(
        self,
        origin: GeoPoint,
        units: Iterable[TransportUnit],
        emergency_type: EmergencyType | str | None = None,
        limit: int = 5,
        *,
        severity: Severity | str | None = None,
        required_equipment: bool = False,
    ) -> list[RankedUnit]:
        origin = validate_point(origin)
        limit = _coerce_limit(limit)
        emergency_type = _coerce_enum(emergency_type, EmergencyType, "emergency type")
        severity = _coerce_enum(severity, Severity, "severity")

        candidates = [unit for unit in units if unit.is_eligible]
        if required_equipment and emergency_type in EQUIPMENT_SENSITIVE_EMERGENCIES:
            candidates = [u for u in candidates if u.equipment_level in ADVANCED_EQUIPMENT]
        if severity == Severity.CRITICAL:
            candidates = [u for u in candidates if u.equipment_level in ADVANCED_EQUIPMENT]
        candidates = [u for u in candidates if self._has_fuel(u)]

        measured: list[RankedUnit] = []
        for unit in candidates:
            position = unit.resolved_position
            distance = haversine_km(origin, position) if position is not None else math.inf
            measured.append(RankedUnit(unit=unit, distance_km=distance))

        located = [item for item in measured if math.isfinite(item.distance_km)]
        if len(located) < len(measured):
            logger.debug(
                "Skipped %d eligible units without a known position",
                len(measured) - len(located),
            )
        # sorted() is stable, so equal distances keep snapshot order.
        located = sorted(located, key=lambda item: item.distance_km)
        return located[:limit]

    def nearest_facilities(
        self,
        origin: GeoPoint,
        facilities: Iterable[Facility],
        limit: int = 3,
    ) -> list[RankedFacility]:
        origin = validate_point(origin)
        limit = _coerce_limit(limit)
        ranked = [
            RankedFacility(facility=facility, distance_km=haversine_km(origin, facility.location))
            for facility in facilities
            if facility.is_active
            and facility.accepting_patients
            and "EMERGENCY" in facility.services
            and facility.location is not None
        ]
        ranked.sort(key=lambda item: item.distance_km)
        return ranked[:limit]

    def _has_fuel(self, unit: TransportUnit) -> bool:
        if unit.fuel_level is None:
            return True
        return unit.fuel_level > self.config.min_fuel_level
