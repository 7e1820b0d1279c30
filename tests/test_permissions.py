import pytest

from care_dispatch.permissions import (
    ALL_CAPABILITIES,
    DEFAULT_ROLE_CAPABILITIES,
    Capability,
    PermissionTable,
    Role,
    parse_role,
)


def test_default_table_covers_every_role() -> None:
    table = PermissionTable()
    for role in Role:
        assert isinstance(table.capabilities(role), frozenset)


def test_full_access_roles_hold_every_capability() -> None:
    mapping = dict(DEFAULT_ROLE_CAPABILITIES)
    mapping[Role.ADMIN] = frozenset({Capability.DASHBOARD_READ})
    table = PermissionTable(mapping)
    assert table.capabilities(Role.ADMIN) == ALL_CAPABILITIES
    assert table.allows("SUPER_ADMIN", Capability.MONITORING_READ)


def test_clinical_and_dispatch_roles_are_separated() -> None:
    table = PermissionTable()
    assert table.allows(Role.NURSE, Capability.TRIAGE_WRITE)
    assert not table.allows(Role.NURSE, Capability.DISPATCH_READ)
    assert table.allows(Role.DISPATCHER, "ambulances.write")
    assert not table.allows(Role.DISPATCHER, Capability.TRIAGE_READ)
    assert not table.allows(Role.DOCTOR, Capability.TRIAGE_WRITE)


def test_module_access_needs_any_module_capability() -> None:
    table = PermissionTable()
    assert table.can_access_module(Role.AMBULANCE_DRIVER, "dispatch")
    assert not table.can_access_module(Role.AMBULANCE_DRIVER, "triage")
    assert not table.can_access_module(Role.ADMIN, "unknown-module")


def test_missing_role_is_rejected() -> None:
    mapping = dict(DEFAULT_ROLE_CAPABILITIES)
    del mapping[Role.PHARMACIST]
    with pytest.raises(ValueError, match="PHARMACIST"):
        PermissionTable(mapping)


def test_unknown_capability_is_rejected() -> None:
    mapping = dict(DEFAULT_ROLE_CAPABILITIES)
    mapping[Role.NURSE] = frozenset({Capability.TRIAGE_READ, "triage.delete"})
    with pytest.raises(ValueError, match="Unknown capabilities"):
        PermissionTable(mapping)


def test_string_capability_value_is_rejected() -> None:
    mapping = dict(DEFAULT_ROLE_CAPABILITIES)
    mapping[Role.NURSE] = "triage.read"
    with pytest.raises(ValueError):
        PermissionTable(mapping)


def test_non_role_key_is_rejected() -> None:
    mapping = dict(DEFAULT_ROLE_CAPABILITIES)
    mapping["JANITOR"] = frozenset()
    with pytest.raises(ValueError, match="not a Role"):
        PermissionTable(mapping)


def test_table_is_read_only() -> None:
    table = PermissionTable()
    with pytest.raises(TypeError):
        table.mapping[Role.NURSE] = ALL_CAPABILITIES


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("nurse", Role.NURSE),
        ("super-admin", Role.SUPER_ADMIN),
        ("SuperAdmin", Role.SUPER_ADMIN),
        ("triage", Role.TRIAGE_OFFICER),
        ("driver", Role.AMBULANCE_DRIVER),
        (Role.DOCTOR, Role.DOCTOR),
    ],
)
def test_parse_role_accepts_aliases(raw, expected) -> None:
    assert parse_role(raw) is expected


def test_parse_role_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        parse_role("janitor")
