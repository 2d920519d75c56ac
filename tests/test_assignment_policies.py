"""
Tests for floor, room and patient assignment policies.
"""
import pytest

from ward_access.core.errors import Forbidden, InvalidInput
from ward_access.features.permissions import store


async def test_defaults_allow_any_role(db):
    policies = await store.get_assignment_policies(db)
    assert set(policies) == {"floor", "room", "patient"}
    assert policies["room"] == {"assigner_roles": [], "assignee_roles": []}
    await store.assert_assignment_allowed(db, "room", "receptionist", "doctor")


async def test_roles_are_normalized(db):
    policies = await store.set_assignment_policies(
        db, {"patient": {"assigner_roles": [" Head_Nurse ", "", None], "assignee_roles": ["NURSE"]}}
    )
    assert policies["patient"] == {"assigner_roles": ["head_nurse"], "assignee_roles": ["nurse"]}
    assert policies["floor"] == {"assigner_roles": [], "assignee_roles": []}


async def test_assigner_and_assignee_are_enforced(db):
    await store.set_assignment_policies(
        db, {"patient": {"assigner_roles": ["head_nurse"], "assignee_roles": ["nurse"]}}
    )

    await store.assert_assignment_allowed(db, "PATIENT", "head_nurse", "nurse")
    await store.assert_assignment_allowed(db, "patient", "head_nurse")

    with pytest.raises(Forbidden, match="not allowed to assign patients"):
        await store.assert_assignment_allowed(db, "patient", "nurse", "nurse")
    with pytest.raises(Forbidden, match="not allowed for patient assignment"):
        await store.assert_assignment_allowed(db, "patient", "head_nurse", "doctor")


async def test_unknown_assignment_type(db):
    with pytest.raises(InvalidInput):
        await store.assert_assignment_allowed(db, "ward", "doctor")
    with pytest.raises(InvalidInput):
        await store.set_assignment_policies(db, {"ward": {}})
