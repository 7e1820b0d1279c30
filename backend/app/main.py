from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from care_dispatch import (
    DependencyError,
    DispatchConfig,
    DispatchService,
    InvalidArgument,
    RecordNotFound,
    SQLiteRepository,
    origin_point,
)
from care_dispatch.models import (
    EquipmentLevel,
    Facility,
    GeoPoint,
    RankedEntry,
    RankedFacility,
    RankedUnit,
    TransportUnit,
    TriageLevel,
    TriageStatus,
    UnitStatus,
    enum_value,
)
from care_dispatch.observability import Observability, configure_logging
from care_dispatch.permissions import Capability

from .access import StaffContext, get_service, require_capability
from .schemas import (
    AuditResponse,
    FacilityOut,
    GeoPointOut,
    HealthResponse,
    NearestListResponse,
    NearestRequest,
    NearestResponse,
    QueueEntryOut,
    QueueResponse,
    QueueStatsResponse,
    RankedFacilityOut,
    RankedUnitOut,
    TriageCreateRequest,
    TriageCreateResponse,
    TriageStatusRequest,
    UnitCreateRequest,
    UnitLocationRequest,
    UnitOut,
    UnitStatusRequest,
)

logger = logging.getLogger(__name__)


def _build_service(config: DispatchConfig) -> DispatchService:
    repository = SQLiteRepository(config.db_path)
    repository.init_db()
    if config.seed_demo_data:
        repository.seed_demo_if_empty()
    return DispatchService(repository=repository, config=config)


def _point_out(value: GeoPoint | None) -> GeoPointOut | None:
    if value is None:
        return None
    return GeoPointOut(
        latitude=value.latitude,
        longitude=value.longitude,
        accuracy=value.accuracy,
        timestamp=value.timestamp,
    )


def _facility_out(value: Facility) -> FacilityOut:
    return FacilityOut(
        id=value.id,
        name=value.name,
        location=_point_out(value.location),
        services=value.services,
        available_emergency_beds=value.available_emergency_beds,
        available_icu_beds=value.available_icu_beds,
    )


def _unit_out(value: TransportUnit) -> UnitOut:
    return UnitOut(
        id=value.id,
        registration_number=value.registration_number,
        status=value.status.value,
        is_operational=value.is_operational,
        equipment_level=value.equipment_level.value,
        fuel_level=value.fuel_level,
        current_location=_point_out(value.current_location),
        facility_id=value.facility.id if value.facility else None,
        facility_name=value.facility.name if value.facility else None,
    )


def _ranked_unit_out(value: RankedUnit) -> RankedUnitOut:
    return RankedUnitOut(unit=_unit_out(value.unit), distance_km=round(value.distance_km, 3))


def _ranked_facility_out(value: RankedFacility) -> RankedFacilityOut:
    return RankedFacilityOut(
        facility=_facility_out(value.facility),
        distance_km=round(value.distance_km, 3),
    )


def _queue_entry_out(value: RankedEntry) -> QueueEntryOut:
    entry = value.entry
    arrival = entry.arrival_time
    return QueueEntryOut(
        id=entry.id,
        patient_id=entry.patient_id,
        triage_level=enum_value(entry.triage_level),
        status=enum_value(entry.status),
        arrival_time=arrival.isoformat() if hasattr(arrival, "isoformat") else arrival,
        chief_complaint=entry.chief_complaint,
        department=entry.department,
        wait_minutes=value.wait_minutes,
        integrity_warning=str(value.integrity_warning) if value.integrity_warning else None,
    )


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": {"code": code, "message": message}},
    )


async def _invalid_argument_handler(request: Request, exc: InvalidArgument) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "invalid_argument", str(exc))


async def _not_found_handler(request: Request, exc: RecordNotFound) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, "not_found", str(exc))


async def _dependency_error_handler(request: Request, exc: DependencyError) -> JSONResponse:
    logger.error("Upstream data unavailable for %s: %s", request.url.path, exc)
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "dependency_error", str(exc))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config: DispatchConfig = app.state.config
    app.state.dispatch_service = _build_service(config)
    app.state.observability = Observability(app.state.dispatch_service.repository)
    try:
        yield
    finally:
        if hasattr(app.state, "dispatch_service"):
            delattr(app.state, "dispatch_service")
        if hasattr(app.state, "observability"):
            delattr(app.state, "observability")


def get_observability(request: Request) -> Observability:
    return request.app.state.observability


ServiceDep = Annotated[DispatchService, Depends(get_service)]
DispatchReader = Annotated[StaffContext, Depends(require_capability(Capability.DISPATCH_READ))]
FleetWriter = Annotated[StaffContext, Depends(require_capability(Capability.AMBULANCES_WRITE))]
TriageReader = Annotated[StaffContext, Depends(require_capability(Capability.TRIAGE_READ))]
TriageWriter = Annotated[StaffContext, Depends(require_capability(Capability.TRIAGE_WRITE))]
Monitor = Annotated[StaffContext, Depends(require_capability(Capability.MONITORING_READ))]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
def health() -> HealthResponse:
    return HealthResponse(status="ok", service="care-dispatch-api", version="1.0.0")


@router.post("/api/v1/dispatch/nearest", response_model=NearestResponse, tags=["dispatch"])
def nearest(payload: NearestRequest, service: ServiceDep, _: DispatchReader) -> NearestResponse:
    origin = origin_point(payload.latitude, payload.longitude)
    overview = service.dispatch_overview(
        origin,
        payload.emergency_type,
        severity=payload.severity,
        required_equipment=payload.required_equipment,
        unit_limit=payload.limit,
    )
    return NearestResponse(
        nearest_units=[_ranked_unit_out(item) for item in overview.units],
        nearest_facilities=[_ranked_facility_out(item) for item in overview.facilities],
        recommended_unit=_ranked_unit_out(overview.recommended_unit)
        if overview.recommended_unit
        else None,
        recommended_facility=_ranked_facility_out(overview.recommended_facility)
        if overview.recommended_facility
        else None,
    )


@router.get("/api/v1/dispatch/nearest", response_model=NearestListResponse, tags=["dispatch"])
def nearest_list(
    service: ServiceDep,
    _: DispatchReader,
    lat: str | None = Query(default=None),
    lng: str | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=50),
) -> NearestListResponse:
    origin = origin_point(lat, lng)
    ranked = service.find_nearest(origin, limit=limit)
    return NearestListResponse(
        units=[_ranked_unit_out(item) for item in ranked],
        count=len(ranked),
        coordinates=_point_out(origin),
    )


@router.post(
    "/api/v1/dispatch/units",
    response_model=UnitOut,
    tags=["dispatch"],
    status_code=status.HTTP_201_CREATED,
)
def register_unit(payload: UnitCreateRequest, service: ServiceDep, _: FleetWriter) -> UnitOut:
    unit = service.register_unit(
        registration_number=payload.registration_number,
        facility_id=payload.facility_id,
        equipment_level=EquipmentLevel(payload.equipment_level),
        fuel_level=payload.fuel_level,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    return _unit_out(unit)


@router.put("/api/v1/dispatch/units/{unit_id}/location", response_model=UnitOut, tags=["dispatch"])
def update_unit_location(
    unit_id: str,
    payload: UnitLocationRequest,
    service: ServiceDep,
    _: FleetWriter,
) -> UnitOut:
    unit = service.record_unit_location(
        unit_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        accuracy=payload.accuracy,
        timestamp=payload.timestamp,
    )
    return _unit_out(unit)


@router.put("/api/v1/dispatch/units/{unit_id}/status", response_model=UnitOut, tags=["dispatch"])
def update_unit_status(
    unit_id: str,
    payload: UnitStatusRequest,
    service: ServiceDep,
    _: FleetWriter,
) -> UnitOut:
    unit = service.set_unit_status(
        unit_id,
        UnitStatus(payload.status),
        is_operational=payload.is_operational,
    )
    return _unit_out(unit)


@router.post(
    "/api/v1/triage",
    response_model=TriageCreateResponse,
    tags=["triage"],
    status_code=status.HTTP_201_CREATED,
)
def admit(payload: TriageCreateRequest, service: ServiceDep, _: TriageWriter) -> TriageCreateResponse:
    entry_id = service.admit_to_triage(
        patient_id=payload.patient_id,
        triage_level=TriageLevel(payload.triage_level),
        chief_complaint=payload.chief_complaint,
        department=payload.department,
    )
    return TriageCreateResponse(id=entry_id)


@router.put("/api/v1/triage/{entry_id}/status", tags=["triage"])
def update_triage_status(
    entry_id: str,
    payload: TriageStatusRequest,
    service: ServiceDep,
    _: TriageWriter,
) -> dict[str, str]:
    service.transition_triage(entry_id, TriageStatus(payload.status))
    return {"status": "ok"}


@router.get("/api/v1/triage/queue", response_model=QueueResponse, tags=["triage"])
def triage_queue(service: ServiceDep, _: TriageReader) -> QueueResponse:
    return QueueResponse(items=[_queue_entry_out(item) for item in service.triage_queue()])


@router.get("/api/v1/triage/stats", response_model=QueueStatsResponse, tags=["triage"])
def triage_stats(service: ServiceDep, _: TriageReader) -> QueueStatsResponse:
    summary = service.triage_stats()
    return QueueStatsResponse(
        total=summary.total,
        by_level=summary.by_level,
        by_status=summary.by_status,
        average_wait_minutes=summary.average_wait_minutes,
        longest_wait_minutes=summary.longest_wait_minutes,
        shortest_wait_minutes=summary.shortest_wait_minutes,
        missing_arrival_times=summary.missing_arrival_times,
    )


@router.get("/api/v1/audit", response_model=AuditResponse, tags=["audit"])
def audit_view(
    _: Monitor,
    observability: Observability = Depends(get_observability),
    limit: int = Query(default=50, ge=1, le=500),
) -> AuditResponse:
    return AuditResponse(items=observability.recent_audit(limit=limit))


def create_app(config: DispatchConfig | None = None) -> FastAPI:
    config = config or DispatchConfig.from_env()
    configure_logging(config.log_level)
    app = FastAPI(
        title="Care Dispatch API",
        version="1.0.0",
        description=(
            "Ambulance nearest-unit matching and emergency triage queue ranking "
            "for hospital coordination."
        ),
        lifespan=lifespan,
    )
    app.state.config = config
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(InvalidArgument, _invalid_argument_handler)
    app.add_exception_handler(RecordNotFound, _not_found_handler)
    app.add_exception_handler(DependencyError, _dependency_error_handler)
    app.include_router(router)
    return app


app = create_app()
