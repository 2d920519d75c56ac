"""
Unit tests for permission resolution over injected snapshots.
"""
import itertools

import pytest

from ward_access.features.permissions.matrix import baseline
from ward_access.features.permissions.resolver import (
    EMPTY_SNAPSHOT,
    AccessSnapshot,
    ModuleOverride,
    OverrideEntry,
    can_use_feature,
    effective_permissions,
    is_feature_restricted,
    is_permission_manager,
    resolve,
)
from ward_access.features.permissions.types import (
    Feature,
    Identity,
    Module,
    NO_ACCESS,
    NormalizedEmail,
    PermissionFlags,
    Role,
)


# ── Helpers ──────────────────────────────────────────────────────────

def who(role, email="staff@hospital.org") -> Identity:
    return Identity.build(role=role, email=email)


def with_override(email, module, **kwargs) -> AccessSnapshot:
    normalized = NormalizedEmail.parse(email)
    entry = OverrideEntry(email=normalized, modules={module: ModuleOverride(**kwargs)})
    return AccessSnapshot(overrides={normalized: entry})


# ── Baseline precedence ──────────────────────────────────────────────

@pytest.mark.parametrize("role, module", list(itertools.product(list(Role), list(Module))))
def test_without_override_resolve_equals_baseline(role, module):
    assert resolve(who(role), module) == baseline(role, module)


def test_override_ignores_baseline_for_its_module():
    # hospital_admin baseline grants delete on patients; override leaves it out
    snapshot = with_override("admin@hospital.org", Module.PATIENTS, can_view=True, can_edit=True)
    flags = resolve(who(Role.HOSPITAL_ADMIN, "admin@hospital.org"), Module.PATIENTS, snapshot)
    assert flags == PermissionFlags(can_view=True, can_edit=True)
    assert not flags.can_delete


def test_override_can_widen_below_role():
    snapshot = with_override("nurse@hospital.org", Module.BILLING, can_view=True)
    assert resolve(who(Role.NURSE, "nurse@hospital.org"), Module.BILLING, snapshot).can_view


def test_modules_not_in_override_fall_through_to_baseline():
    snapshot = with_override("doc@hospital.org", Module.BILLING, can_view=False)
    doctor = who(Role.DOCTOR, "doc@hospital.org")
    assert resolve(doctor, Module.PATIENTS, snapshot) == baseline(Role.DOCTOR, Module.PATIENTS)


def test_override_lookup_is_case_insensitive():
    snapshot = with_override("Doc@Hospital.org", Module.BILLING, can_delete=True)
    assert resolve(who(Role.DOCTOR, "  DOC@hospital.ORG "), Module.BILLING, snapshot).can_delete


def test_override_for_someone_else_does_not_apply():
    snapshot = with_override("other@hospital.org", Module.BILLING, can_view=True)
    assert resolve(who(Role.NURSE, "nurse@hospital.org"), Module.BILLING, snapshot) == NO_ACCESS


# ── Restriction axis ─────────────────────────────────────────────────

@pytest.mark.parametrize("feature", list(Feature))
def test_no_override_means_nothing_is_restricted(feature):
    for role, module in itertools.product(list(Role), list(Module)):
        assert not is_feature_restricted(who(role), module, feature)


def test_restriction_is_independent_of_flags():
    snapshot = with_override(
        "doc@hospital.org", Module.PATIENTS,
        can_view=True, can_edit=True, restricted_features=frozenset({Feature.EDIT}),
    )
    doctor = who(Role.DOCTOR, "doc@hospital.org")
    assert is_feature_restricted(doctor, Module.PATIENTS, "edit", snapshot)
    assert is_feature_restricted(doctor, Module.PATIENTS, "EDIT", snapshot)
    assert not is_feature_restricted(doctor, Module.PATIENTS, "view", snapshot)
    assert not is_feature_restricted(doctor, Module.BILLING, "edit", snapshot)


@pytest.mark.parametrize("flag_granted, restricted", list(itertools.product([True, False], repeat=2)))
def test_can_use_feature_is_flag_and_not_restricted(flag_granted, restricted):
    snapshot = with_override(
        "staff@hospital.org", Module.BEDS,
        can_create=flag_granted,
        restricted_features=frozenset({Feature.CREATE}) if restricted else frozenset(),
    )
    identity = who(Role.NURSE)
    expected = resolve(identity, Module.BEDS, snapshot).can_create and not is_feature_restricted(
        identity, Module.BEDS, Feature.CREATE, snapshot
    )
    assert can_use_feature(identity, Module.BEDS, Feature.CREATE, snapshot) is expected
    assert expected is (flag_granted and not restricted)


def test_unmapped_feature_uses_view_flag():
    viewer = who(Role.DOCTOR)
    assert can_use_feature(viewer, Module.REPORTS, "export")
    assert not can_use_feature(who(Role.NURSE), Module.BILLING, "export")


# ── Scenarios ────────────────────────────────────────────────────────

def test_nurse_billing_scenario():
    nurse = who(Role.NURSE, "nurse@hospital.org")
    assert resolve(nurse, Module.BILLING, EMPTY_SNAPSHOT) == NO_ACCESS
    assert not can_use_feature(nurse, Module.BILLING, Feature.VIEW, EMPTY_SNAPSHOT)


def test_doctor_restricted_edit_without_flags_scenario():
    snapshot = with_override(
        "doc@hospital.org", Module.PATIENTS, restricted_features=frozenset({Feature.EDIT})
    )
    doctor = who(Role.DOCTOR, "doc@hospital.org")
    assert resolve(doctor, Module.PATIENTS, snapshot) == NO_ACCESS
    assert is_feature_restricted(doctor, Module.PATIENTS, Feature.EDIT, snapshot)
    assert not can_use_feature(doctor, Module.PATIENTS, Feature.EDIT, snapshot)


# ── Totality ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("role, module, feature", [
    (None, "patients", "view"),
    ("ghost", "patients", "view"),
    ("doctor", "morgue", "view"),
    ("doctor", None, None),
    ("doctor", 3, object()),
])
def test_resolution_never_raises(role, module, feature):
    identity = who(role)
    assert resolve(identity, module) == baseline(role, module)
    assert is_feature_restricted(identity, module, feature) is False
    assert isinstance(can_use_feature(identity, module, feature), bool)


# ── Managers and effective view ──────────────────────────────────────

def test_super_admin_is_always_manager():
    assert is_permission_manager(who(Role.SUPER_ADMIN))


def test_registered_email_is_manager():
    snapshot = AccessSnapshot(managers=frozenset({NormalizedEmail.parse("lead@hospital.org")}))
    assert is_permission_manager(who(Role.HEAD_NURSE, "Lead@Hospital.org"), snapshot)
    assert not is_permission_manager(who(Role.HOSPITAL_ADMIN, "admin@hospital.org"), snapshot)


def test_signed_in_identity_keeps_reserved_domains():
    nurse = Identity.authenticated("nurse", "  Nurse@Ward.Local ", user_id="u1")
    assert nurse.email == "nurse@ward.local"
    assert resolve(nurse, Module.BILLING) == NO_ACCESS
    snapshot = AccessSnapshot(managers=frozenset({NormalizedEmail.trusted("nurse@ward.local")}))
    assert is_permission_manager(nurse, snapshot)


def test_effective_permissions_lists_usable_features():
    snapshot = with_override(
        "doc@hospital.org", Module.PATIENTS,
        can_view=True, can_edit=True, restricted_features=frozenset({Feature.EDIT}),
    )
    view = effective_permissions(who(Role.DOCTOR, "doc@hospital.org"), snapshot)

    assert set(view) == set(Module)
    patients = view[Module.PATIENTS]
    assert patients["has_override"]
    assert patients["restricted_features"] == [Feature.EDIT]
    assert patients["usable_features"] == [Feature.VIEW]
    assert view[Module.DASHBOARD]["usable_features"] == [Feature.VIEW]
    assert not view[Module.DASHBOARD]["has_override"]
