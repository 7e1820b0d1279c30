from __future__ import annotations

import json
import logging
import sqlite3
import warnings
from contextlib import contextmanager
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, TypeVar
from uuid import uuid4

from .errors import DataIntegrityWarning, DependencyError, InvalidArgument, RecordNotFound
from .geo import parse_geo_point, point_to_json
from .models import (
    ACTIVE_TRIAGE_STATUSES,
    EquipmentLevel,
    Facility,
    GeoPoint,
    IntakeEntry,
    TransportUnit,
    TriageLevel,
    TriageStatus,
    UnitStatus,
)
from .ranker import to_naive_utc, utc_now

logger = logging.getLogger(__name__)

DB_TIME_FMT = "%Y-%m-%d %H:%M:%S"

E = TypeVar("E", bound=Enum)


def to_db_time(value: datetime) -> str:
    return to_naive_utc(value).strftime(DB_TIME_FMT)


def _new_id() -> str:
    return uuid4().hex


_UNIT_SELECT = """
    SELECT
        u.*,
        f.name AS facility_name,
        f.coordinates AS facility_coordinates,
        f.is_active AS facility_is_active,
        f.accepting_patients AS facility_accepting_patients,
        f.services AS facility_services,
        f.available_emergency_beds AS facility_emergency_beds,
        f.available_icu_beds AS facility_icu_beds
    FROM transport_units u
    LEFT JOIN facilities f ON f.id = u.facility_id
"""


def _flag(message: str, *, record_id: str | None = None, field: str | None = None) -> None:
    warning = DataIntegrityWarning(message, record_id=record_id, field=field)
    logger.warning("%s", warning)
    warnings.warn(warning, stacklevel=3)


def _stored_enum(enum_cls: type[E], raw: str) -> E | str:
    try:
        return enum_cls(raw)
    except ValueError:
        return raw


def _load_services(raw: str | None, *, facility_id: str) -> list[str]:
    try:
        decoded = json.loads(raw or "[]")
    except ValueError:
        decoded = None
    if not isinstance(decoded, list) or not all(isinstance(item, str) for item in decoded):
        _flag(
            f"Ignoring malformed service list for facility {facility_id}",
            record_id=facility_id,
            field="services",
        )
        return []
    return decoded


def _load_location(raw: str | None, *, owner: str) -> GeoPoint | None:
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed stored location for %s", owner)
        return None
    point = parse_geo_point(decoded)
    if point is None:
        logger.warning("Ignoring stored location without usable coordinates for %s", owner)
    return point


def _dump_location(point: GeoPoint | None) -> str | None:
    payload = point_to_json(point)
    return json.dumps(payload) if payload is not None else None


class SQLiteRepository:
    def __init__(self, db_path: str) -> None:
        self.db_path = str(Path(db_path))

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _managed_conn(self, conn: sqlite3.Connection | None):
        if conn is not None:
            yield conn
            return
        with self.connect() as local_conn:
            yield local_conn

    @contextmanager
    def _snapshot(self, what: str) -> Iterator[sqlite3.Connection]:
        try:
            with self.connect() as conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Could not read %s snapshot: %s", what, exc)
            raise DependencyError(f"Could not read {what} snapshot: {exc}") from exc

    def init_db(self) -> None:
        schema = """
        CREATE TABLE IF NOT EXISTS facilities (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            coordinates TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            accepting_patients INTEGER NOT NULL DEFAULT 1,
            services TEXT NOT NULL DEFAULT '[]',
            available_emergency_beds INTEGER NOT NULL DEFAULT 0,
            available_icu_beds INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS transport_units (
            id TEXT PRIMARY KEY,
            registration_number TEXT NOT NULL UNIQUE,
            facility_id TEXT,
            status TEXT NOT NULL DEFAULT 'AVAILABLE',
            is_operational INTEGER NOT NULL DEFAULT 1,
            equipment_level TEXT NOT NULL DEFAULT 'BASIC',
            fuel_level REAL,
            current_location TEXT,
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(facility_id) REFERENCES facilities(id)
        );

        CREATE TABLE IF NOT EXISTS triage_entries (
            id TEXT PRIMARY KEY,
            patient_id TEXT NOT NULL,
            triage_level TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'WAITING',
            arrival_time TEXT,
            chief_complaint TEXT NOT NULL DEFAULT '',
            department TEXT,
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            action TEXT NOT NULL,
            payload TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_units_status
            ON transport_units(status, is_operational);
        CREATE INDEX IF NOT EXISTS idx_triage_status
            ON triage_entries(status, triage_level, arrival_time);
        """
        with self.connect() as conn:
            conn.executescript(schema)

    def seed_demo_if_empty(self) -> None:
        with self.connect() as conn:
            count = conn.execute("SELECT COUNT(*) FROM facilities;").fetchone()[0]
            if count > 0:
                return

            knh = self.create_facility(
                name="Kenyatta National Hospital",
                location=GeoPoint(-1.3006, 36.8073),
                services=["EMERGENCY", "ICU", "SURGERY"],
                available_emergency_beds=12,
                available_icu_beds=4,
                conn=conn,
            )
            mbagathi = self.create_facility(
                name="Mbagathi County Hospital",
                location=GeoPoint(-1.3090, 36.8010),
                services=["EMERGENCY", "OUTPATIENT"],
                available_emergency_beds=6,
                conn=conn,
            )
            self.create_facility(
                name="Mama Lucy Kibaki Hospital",
                location=GeoPoint(-1.2780, 36.8990),
                services=["EMERGENCY", "MATERNITY"],
                available_emergency_beds=5,
                available_icu_beds=1,
                conn=conn,
            )
            self.create_unit(
                registration_number="KBA 101A",
                facility_id=knh,
                equipment_level=EquipmentLevel.CRITICAL_CARE,
                fuel_level=80.0,
                current_location=GeoPoint(-1.2900, 36.8200),
                conn=conn,
            )
            self.create_unit(
                registration_number="KBB 202B",
                facility_id=mbagathi,
                equipment_level=EquipmentLevel.BASIC,
                fuel_level=65.0,
                conn=conn,
            )
            self.create_unit(
                registration_number="KBC 303C",
                facility_id=knh,
                equipment_level=EquipmentLevel.ADVANCED,
                fuel_level=55.0,
                current_location=GeoPoint(-1.2650, 36.8030),
                conn=conn,
            )

            now = utc_now()
            for offset, level, complaint in (
                (45, TriageLevel.URGENT, "Abdominal pain"),
                (20, TriageLevel.IMMEDIATE, "Chest pain"),
                (90, TriageLevel.NON_URGENT, "Minor laceration"),
            ):
                self.create_triage_entry(
                    patient_id=_new_id(),
                    triage_level=level,
                    arrival_time=now - timedelta(minutes=offset),
                    chief_complaint=complaint,
                    conn=conn,
                )

    def create_facility(
        self,
        *,
        name: str,
        location: GeoPoint | None,
        services: list[str] | None = None,
        is_active: bool = True,
        accepting_patients: bool = True,
        available_emergency_beds: int = 0,
        available_icu_beds: int = 0,
        conn: sqlite3.Connection | None = None,
    ) -> str:
        facility_id = _new_id()
        with self._managed_conn(conn) as db:
            db.execute(
                """
                INSERT INTO facilities (
                    id, name, coordinates, is_active, accepting_patients, services,
                    available_emergency_beds, available_icu_beds
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    facility_id,
                    name,
                    _dump_location(location),
                    int(is_active),
                    int(accepting_patients),
                    json.dumps(list(services or [])),
                    available_emergency_beds,
                    available_icu_beds,
                ),
            )
        return facility_id

    def create_unit(
        self,
        *,
        registration_number: str,
        facility_id: str | None = None,
        status: UnitStatus = UnitStatus.AVAILABLE,
        is_operational: bool = True,
        equipment_level: EquipmentLevel = EquipmentLevel.BASIC,
        fuel_level: float | None = None,
        current_location: GeoPoint | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> str:
        unit_id = _new_id()
        with self._managed_conn(conn) as db:
            try:
                db.execute(
                    """
                    INSERT INTO transport_units (
                        id, registration_number, facility_id, status, is_operational,
                        equipment_level, fuel_level, current_location
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        unit_id,
                        registration_number,
                        facility_id,
                        status.value,
                        int(is_operational),
                        equipment_level.value,
                        fuel_level,
                        _dump_location(current_location),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise InvalidArgument(
                    f"Cannot register unit {registration_number}: {exc}"
                ) from exc
            self.audit(
                entity_type="transport_units",
                entity_id=unit_id,
                action="REGISTERED",
                payload={"registration_number": registration_number, "facility_id": facility_id},
                conn=db,
            )
        return unit_id

    def update_unit_location(
        self,
        *,
        unit_id: str,
        location: GeoPoint,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._managed_conn(conn) as db:
            updated = db.execute(
                """
                UPDATE transport_units
                SET current_location = ?, updated_at = datetime('now')
                WHERE id = ?;
                """,
                (_dump_location(location), unit_id),
            )
            if updated.rowcount != 1:
                raise RecordNotFound(f"Transport unit {unit_id} not found.")
            self.audit(
                entity_type="transport_units",
                entity_id=unit_id,
                action="LOCATION_UPDATED",
                payload=point_to_json(location) or {},
                conn=db,
            )

    def update_unit_status(
        self,
        *,
        unit_id: str,
        status: UnitStatus,
        is_operational: bool | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._managed_conn(conn) as db:
            updated = db.execute(
                """
                UPDATE transport_units
                SET status = ?,
                    is_operational = COALESCE(?, is_operational),
                    updated_at = datetime('now')
                WHERE id = ?;
                """,
                (
                    status.value,
                    None if is_operational is None else int(is_operational),
                    unit_id,
                ),
            )
            if updated.rowcount != 1:
                raise RecordNotFound(f"Transport unit {unit_id} not found.")
            self.audit(
                entity_type="transport_units",
                entity_id=unit_id,
                action="STATUS_CHANGED",
                payload={"status": status.value, "is_operational": is_operational},
                conn=db,
            )

    def create_triage_entry(
        self,
        *,
        patient_id: str,
        triage_level: TriageLevel,
        arrival_time: datetime | None = None,
        status: TriageStatus = TriageStatus.WAITING,
        chief_complaint: str = "",
        department: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> str:
        entry_id = _new_id()
        arrival = arrival_time if arrival_time is not None else utc_now()
        with self._managed_conn(conn) as db:
            db.execute(
                """
                INSERT INTO triage_entries (
                    id, patient_id, triage_level, status, arrival_time,
                    chief_complaint, department
                ) VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    entry_id,
                    patient_id,
                    triage_level.value,
                    status.value,
                    to_db_time(arrival),
                    chief_complaint,
                    department,
                ),
            )
            self.audit(
                entity_type="triage_entries",
                entity_id=entry_id,
                action="ADMITTED",
                payload={"patient_id": patient_id, "triage_level": triage_level.value},
                conn=db,
            )
        return entry_id

    def update_triage_status(
        self,
        *,
        entry_id: str,
        status: TriageStatus,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._managed_conn(conn) as db:
            updated = db.execute(
                """
                UPDATE triage_entries
                SET status = ?, updated_at = datetime('now')
                WHERE id = ?;
                """,
                (status.value, entry_id),
            )
            if updated.rowcount != 1:
                raise RecordNotFound(f"Triage entry {entry_id} not found.")
            self.audit(
                entity_type="triage_entries",
                entity_id=entry_id,
                action="STATUS_CHANGED",
                payload={"status": status.value},
                conn=db,
            )

    def audit(
        self,
        *,
        entity_type: str,
        entity_id: str,
        action: str,
        payload: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._managed_conn(conn) as db:
            db.execute(
                """
                INSERT INTO audit_log (entity_type, entity_id, action, payload)
                VALUES (?, ?, ?, ?);
                """,
                (entity_type, entity_id, action, json.dumps(payload)),
            )

    def list_facilities(self) -> list[Facility]:
        with self._snapshot("facility") as conn:
            rows = conn.execute("SELECT * FROM facilities ORDER BY created_at ASC, id ASC;").fetchall()
        facilities = []
        for row in rows:
            try:
                facilities.append(self._row_to_facility(row))
            except (TypeError, ValueError) as exc:
                _flag(f"Skipping facility {row['id']}: {exc}", record_id=row["id"])
        return facilities

    def list_units(self, *, eligible_only: bool = True) -> list[TransportUnit]:
        query = _UNIT_SELECT
        params: tuple[Any, ...] = ()
        if eligible_only:
            query += " WHERE u.status = ? AND u.is_operational = 1"
            params = (UnitStatus.AVAILABLE.value,)
        query += " ORDER BY u.registration_number ASC;"

        with self._snapshot("transport unit") as conn:
            rows = conn.execute(query, params).fetchall()
        units = []
        for row in rows:
            unit = self._unit_or_none(row)
            if unit is not None:
                units.append(unit)
        return units

    def get_unit(self, unit_id: str) -> TransportUnit | None:
        with self._snapshot("transport unit") as conn:
            row = conn.execute(_UNIT_SELECT + " WHERE u.id = ?;", (unit_id,)).fetchone()
        return self._unit_or_none(row) if row else None

    def _unit_or_none(self, row: sqlite3.Row) -> TransportUnit | None:
        try:
            return self._row_to_unit(row)
        except (TypeError, ValueError) as exc:
            _flag(f"Skipping transport unit {row['id']}: {exc}", record_id=row["id"])
            return None

    def list_active_triage_entries(self) -> list[IntakeEntry]:
        statuses = sorted(status.value for status in ACTIVE_TRIAGE_STATUSES)
        with self._snapshot("triage queue") as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM triage_entries
                WHERE status IN (?, ?)
                ORDER BY arrival_time ASC, id ASC;
                """,
                tuple(statuses),
            ).fetchall()
            # Unknown stored levels stay as raw strings; the ranker flags them.
            return [self._row_to_entry(row) for row in rows]

    def get_triage_entry(self, entry_id: str) -> IntakeEntry | None:
        with self._snapshot("triage entry") as conn:
            row = conn.execute(
                "SELECT * FROM triage_entries WHERE id = ?;",
                (entry_id,),
            ).fetchone()
            return self._row_to_entry(row) if row else None

    def recent_audit_log(self, limit: int = 100) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_log ORDER BY id DESC LIMIT ?;",
                (limit,),
            ).fetchall()
            return [dict(row) for row in rows]

    @staticmethod
    def _row_to_facility(row: sqlite3.Row) -> Facility:
        return Facility(
            id=row["id"],
            name=row["name"],
            location=_load_location(row["coordinates"], owner=f"facility {row['id']}"),
            is_active=bool(row["is_active"]),
            accepting_patients=bool(row["accepting_patients"]),
            services=_load_services(row["services"], facility_id=row["id"]),
            available_emergency_beds=int(row["available_emergency_beds"]),
            available_icu_beds=int(row["available_icu_beds"]),
        )

    @staticmethod
    def _row_to_unit(row: sqlite3.Row) -> TransportUnit:
        facility = None
        if row["facility_id"] and row["facility_name"] is not None:
            facility = Facility(
                id=row["facility_id"],
                name=row["facility_name"],
                location=_load_location(
                    row["facility_coordinates"], owner=f"facility {row['facility_id']}"
                ),
                is_active=bool(row["facility_is_active"]),
                accepting_patients=bool(row["facility_accepting_patients"]),
                services=_load_services(row["facility_services"], facility_id=row["facility_id"]),
                available_emergency_beds=int(row["facility_emergency_beds"]),
                available_icu_beds=int(row["facility_icu_beds"]),
            )
        return TransportUnit(
            id=row["id"],
            registration_number=row["registration_number"],
            status=UnitStatus(row["status"]),
            is_operational=bool(row["is_operational"]),
            current_location=_load_location(row["current_location"], owner=f"unit {row['id']}"),
            facility=facility,
            equipment_level=EquipmentLevel(row["equipment_level"]),
            fuel_level=None if row["fuel_level"] is None else float(row["fuel_level"]),
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> IntakeEntry:
        return IntakeEntry(
            id=row["id"],
            patient_id=row["patient_id"],
            triage_level=_stored_enum(TriageLevel, row["triage_level"]),
            status=_stored_enum(TriageStatus, row["status"]),
            arrival_time=row["arrival_time"],
            chief_complaint=row["chief_complaint"],
            department=row["department"],
        )
