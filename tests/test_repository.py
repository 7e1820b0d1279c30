from datetime import datetime

import pytest

from care_dispatch.database import SQLiteRepository
from care_dispatch.errors import (
    DataIntegrityWarning,
    DependencyError,
    InvalidArgument,
    RecordNotFound,
)
from care_dispatch.models import (
    EquipmentLevel,
    GeoPoint,
    TriageLevel,
    TriageStatus,
    UnitStatus,
)


def _repo(tmp_path) -> SQLiteRepository:
    repo = SQLiteRepository(str(tmp_path / "dispatch.db"))
    repo.init_db()
    return repo


def test_seed_demo_data_is_idempotent(tmp_path) -> None:
    repo = _repo(tmp_path)
    repo.seed_demo_if_empty()
    repo.seed_demo_if_empty()

    assert len(repo.list_facilities()) == 3
    units = repo.list_units(eligible_only=False)
    assert len(units) == 3
    based = next(unit for unit in units if unit.registration_number == "KBB 202B")
    assert based.current_location is None
    assert based.resolved_position == based.facility.location
    assert len(repo.list_active_triage_entries()) == 3


def test_unit_round_trip_includes_facility(tmp_path) -> None:
    repo = _repo(tmp_path)
    facility_id = repo.create_facility(
        name="Coast General",
        location=GeoPoint(-4.05, 39.66),
        services=["EMERGENCY"],
    )
    unit_id = repo.create_unit(
        registration_number="KCA 001",
        facility_id=facility_id,
        equipment_level=EquipmentLevel.ADVANCED,
        fuel_level=42.5,
        current_location=GeoPoint(0.0, 39.6, accuracy=8.0),
    )

    unit = repo.get_unit(unit_id)

    assert unit is not None
    assert unit.current_location == GeoPoint(0.0, 39.6, accuracy=8.0)
    assert unit.facility.name == "Coast General"
    assert unit.equipment_level is EquipmentLevel.ADVANCED
    assert unit.fuel_level == 42.5


def test_duplicate_registration_is_invalid(tmp_path) -> None:
    repo = _repo(tmp_path)
    repo.create_unit(registration_number="KCA 001")
    with pytest.raises(InvalidArgument):
        repo.create_unit(registration_number="KCA 001")


def test_unknown_facility_is_invalid(tmp_path) -> None:
    repo = _repo(tmp_path)
    with pytest.raises(InvalidArgument):
        repo.create_unit(registration_number="KCA 002", facility_id="missing")


def test_eligible_listing_skips_busy_units(tmp_path) -> None:
    repo = _repo(tmp_path)
    ready = repo.create_unit(registration_number="A 1", current_location=GeoPoint(-1.3, 36.8))
    busy = repo.create_unit(registration_number="B 2", current_location=GeoPoint(-1.3, 36.8))
    broken = repo.create_unit(registration_number="C 3", current_location=GeoPoint(-1.3, 36.8))
    repo.update_unit_status(unit_id=busy, status=UnitStatus.DISPATCHED)
    repo.update_unit_status(unit_id=broken, status=UnitStatus.AVAILABLE, is_operational=False)

    assert [unit.id for unit in repo.list_units()] == [ready]
    assert len(repo.list_units(eligible_only=False)) == 3
    assert repo.get_unit(broken).is_operational is False


def test_malformed_stored_location_reads_as_unknown(tmp_path) -> None:
    repo = _repo(tmp_path)
    unit_id = repo.create_unit(registration_number="A 1")
    with repo.connect() as conn:
        conn.execute(
            "UPDATE transport_units SET current_location = ? WHERE id = ?;",
            ('{"lat": "north"}', unit_id),
        )

    assert repo.get_unit(unit_id).current_location is None


def test_updates_on_missing_records_raise(tmp_path) -> None:
    repo = _repo(tmp_path)
    with pytest.raises(RecordNotFound):
        repo.update_unit_location(unit_id="nope", location=GeoPoint(-1.3, 36.8))
    with pytest.raises(RecordNotFound):
        repo.update_unit_status(unit_id="nope", status=UnitStatus.AVAILABLE)
    with pytest.raises(RecordNotFound):
        repo.update_triage_status(entry_id="nope", status=TriageStatus.DISCHARGED)


def test_active_triage_entries_exclude_closed_statuses(tmp_path) -> None:
    repo = _repo(tmp_path)
    waiting = repo.create_triage_entry(
        patient_id="p1",
        triage_level=TriageLevel.URGENT,
        arrival_time=datetime(2024, 5, 1, 9, 0),
    )
    assessing = repo.create_triage_entry(patient_id="p2", triage_level=TriageLevel.IMMEDIATE)
    treated = repo.create_triage_entry(patient_id="p3", triage_level=TriageLevel.IMMEDIATE)
    repo.update_triage_status(entry_id=assessing, status=TriageStatus.IN_ASSESSMENT)
    repo.update_triage_status(entry_id=treated, status=TriageStatus.IN_TREATMENT)

    active = {entry.id for entry in repo.list_active_triage_entries()}

    assert active == {waiting, assessing}
    assert repo.get_triage_entry(waiting).arrival_time == "2024-05-01 09:00:00"


def test_writes_are_audited(tmp_path) -> None:
    repo = _repo(tmp_path)
    unit_id = repo.create_unit(registration_number="A 1")
    repo.update_unit_location(unit_id=unit_id, location=GeoPoint(-1.3, 36.8))

    actions = [row["action"] for row in repo.recent_audit_log()]

    assert actions == ["LOCATION_UPDATED", "REGISTERED"]


def test_unreadable_snapshot_raises_dependency_error(tmp_path) -> None:
    repo = SQLiteRepository(str(tmp_path / "empty.db"))
    with pytest.raises(DependencyError):
        repo.list_units()
    with pytest.raises(DependencyError):
        repo.list_active_triage_entries()
    with pytest.raises(DependencyError):
        repo.list_facilities()


def _insert_raw_unit(repo: SQLiteRepository, unit_id: str, **columns) -> None:
    values = {
        "id": unit_id,
        "registration_number": f"RAW {unit_id}",
        "current_location": '{"lat": -1.3, "lng": 36.8}',
        **columns,
    }
    names = ", ".join(values)
    marks = ", ".join("?" for _ in values)
    with repo.connect() as conn:
        conn.execute(f"INSERT INTO transport_units ({names}) VALUES ({marks});", tuple(values.values()))


def test_unit_with_unknown_equipment_is_skipped(tmp_path) -> None:
    repo = _repo(tmp_path)
    good = repo.create_unit(registration_number="A 1", current_location=GeoPoint(-1.3, 36.8))
    _insert_raw_unit(repo, "bad-equipment", equipment_level="bls")
    _insert_raw_unit(repo, "bad-fuel", fuel_level="plenty")

    with pytest.warns(DataIntegrityWarning):
        units = repo.list_units()

    assert [unit.id for unit in units] == [good]


def test_get_unit_reads_one_row(tmp_path) -> None:
    repo = _repo(tmp_path)
    _insert_raw_unit(repo, "bad-status", status="PARKED")
    good = repo.create_unit(registration_number="A 1")

    assert repo.get_unit(good).registration_number == "A 1"
    assert repo.get_unit("missing") is None
    with pytest.warns(DataIntegrityWarning):
        assert repo.get_unit("bad-status") is None


def test_malformed_service_list_is_flagged(tmp_path) -> None:
    repo = _repo(tmp_path)
    facility_id = repo.create_facility(
        name="Broken Services",
        location=GeoPoint(-1.31, 36.81),
        services=["EMERGENCY"],
    )
    unit_id = repo.create_unit(registration_number="A 1", facility_id=facility_id)
    with repo.connect() as conn:
        conn.execute("UPDATE facilities SET services = ? WHERE id = ?;", ("{oops", facility_id))

    with pytest.warns(DataIntegrityWarning) as caught:
        facilities = repo.list_facilities()
        units = repo.list_units()

    assert facilities[0].services == []
    assert units[0].id == unit_id
    assert units[0].resolved_position == GeoPoint(-1.31, 36.81)
    assert any(warning.message.field == "services" for warning in caught)


def test_unknown_triage_level_is_kept_as_raw_value(tmp_path) -> None:
    repo = _repo(tmp_path)
    good = repo.create_triage_entry(patient_id="p1", triage_level=TriageLevel.URGENT)
    with repo.connect() as conn:
        conn.execute(
            """
            INSERT INTO triage_entries (id, patient_id, triage_level, status, arrival_time)
            VALUES ('odd', 'p2', 'urgent', 'WAITING', '2024-05-01 09:00:00');
            """
        )

    entries = {entry.id: entry for entry in repo.list_active_triage_entries()}

    assert entries[good].triage_level is TriageLevel.URGENT
    assert entries["odd"].triage_level == "urgent"
    assert entries["odd"].status is TriageStatus.WAITING
