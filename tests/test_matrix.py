"""
Unit tests for the static role matrix.
"""
import pytest

from ward_access.features.permissions.matrix import (
    FULL_ACCESS,
    MODULE_FEATURE_CATALOG,
    ROLE_PERMISSIONS,
    VIEW_CREATE_EDIT,
    baseline,
)
from ward_access.features.permissions.types import Feature, Module, NO_ACCESS, PermissionFlags, Role


def test_nurse_has_no_billing_access():
    assert baseline("nurse", "billing") == NO_ACCESS


def test_doctor_patients_is_view_create_edit():
    assert baseline(Role.DOCTOR, Module.PATIENTS) == PermissionFlags(
        can_view=True, can_create=True, can_edit=True, can_delete=False
    )


def test_view_create_edit_grants_everything_but_delete():
    assert VIEW_CREATE_EDIT.can_view and VIEW_CREATE_EDIT.can_create and VIEW_CREATE_EDIT.can_edit
    assert VIEW_CREATE_EDIT.can_delete is False
    assert ROLE_PERMISSIONS[Role.NURSE][Module.VITALS] == VIEW_CREATE_EDIT


@pytest.mark.parametrize("module", list(Module))
def test_super_admin_has_full_access_everywhere(module):
    assert baseline(Role.SUPER_ADMIN, module) == FULL_ACCESS


def test_hospital_admin_cannot_delete_settings():
    flags = baseline(Role.HOSPITAL_ADMIN, Module.SETTINGS)
    assert flags.can_edit
    assert not flags.can_delete


@pytest.mark.parametrize("role, module", [
    ("janitor", "patients"),
    (None, "patients"),
    ("doctor", "morgue"),
    ("doctor", None),
    (42, 17),
])
def test_unknown_role_or_module_gets_no_access(role, module):
    assert baseline(role, module) == NO_ACCESS


def test_lookup_is_case_insensitive():
    assert baseline("DOCTOR", " Patients ") == baseline(Role.DOCTOR, Module.PATIENTS)


def test_flags_are_independent():
    # edit without view is representable and stays that way
    flags = PermissionFlags(can_edit=True)
    assert flags.allows(Feature.EDIT)
    assert not flags.allows(Feature.VIEW)


def test_every_role_has_a_table():
    assert set(ROLE_PERMISSIONS) == set(Role)


def test_catalog_covers_every_module():
    assert set(MODULE_FEATURE_CATALOG) == set(Module)
    assert MODULE_FEATURE_CATALOG[Module.DASHBOARD] == (Feature.VIEW,)
    assert MODULE_FEATURE_CATALOG[Module.PATIENTS] == tuple(Feature)
