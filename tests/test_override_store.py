"""
Tests for the override store, manager registry and snapshot loading.
"""
import pytest
from sqlalchemy import delete

from ward_access.core.errors import InvalidInput, InvalidState
from ward_access.features.permissions import store
from ward_access.features.permissions.models import PermissionOverride
from ward_access.features.permissions.resolver import can_use_feature, resolve
from ward_access.features.permissions.types import Feature, Identity, Module, NO_ACCESS, PermissionFlags


async def test_get_override_missing_returns_none(db):
    assert await store.get_override(db, "nobody@hospital.org") is None


async def test_set_override_then_get(db):
    entry = await store.set_override(
        db, "Doc@Hospital.org", "patients",
        flags={"can_view": True, "can_edit": True},
        restricted_features=["EDIT"],
    )

    assert entry.email == "doc@hospital.org"
    override = entry.for_module(Module.PATIENTS)
    assert override.can_view is True
    assert override.can_create is None
    assert override.restricted_features == frozenset({Feature.EDIT})

    again = await store.get_override(db, "doc@hospital.org")
    assert again == entry


async def test_emails_differing_in_case_share_one_record(db):
    await store.set_override(db, "doc@hospital.org", "beds", flags={"can_view": True})
    await store.set_override(db, "DOC@HOSPITAL.ORG", "beds", flags={"can_delete": True})

    entries = await store.list_overrides(db)
    assert len(entries) == 1
    beds = entries[0].for_module("beds")
    # replaced, not merged
    assert beds.can_view is None
    assert beds.can_delete is True


async def test_override_keeps_other_modules(db):
    await store.set_override(db, "doc@hospital.org", "beds", flags={"can_view": True})
    entry = await store.set_override(db, "doc@hospital.org", "billing", flags={"can_view": True})
    assert set(entry.modules) == {Module.BEDS, Module.BILLING}


async def test_clear_override_returns_to_baseline(db):
    await store.set_override(db, "doc@hospital.org", "patients", flags={"can_view": False})
    doctor = Identity.build("doctor", "doc@hospital.org")

    snapshot = await store.load_access_snapshot(db)
    assert resolve(doctor, Module.PATIENTS, snapshot) == NO_ACCESS

    assert await store.clear_override(db, "doc@hospital.org", "patients") is None
    snapshot = await store.load_access_snapshot(db)
    assert resolve(doctor, Module.PATIENTS, snapshot) == PermissionFlags(
        can_view=True, can_create=True, can_edit=True
    )


async def test_override_cleared_while_saving_is_invalid_state(db, monkeypatch):
    read_back = store.get_override

    # another session clears the override between the commit and the read back
    async def cleared_first(session, email):
        await session.execute(delete(PermissionOverride).where(PermissionOverride.email == email))
        await session.commit()
        return await read_back(session, email)

    monkeypatch.setattr(store, "get_override", cleared_first)

    with pytest.raises(InvalidState):
        await store.set_override(db, "doc@hospital.org", "patients", flags={"can_view": True})


@pytest.mark.parametrize("email", ["", "   ", "not-an-email", "a@", None])
async def test_malformed_email_is_invalid_input(db, email):
    with pytest.raises(InvalidInput):
        await store.get_override(db, email)


async def test_unknown_module_or_feature_is_invalid_input(db):
    with pytest.raises(InvalidInput):
        await store.set_override(db, "doc@hospital.org", "morgue", flags={"can_view": True})
    with pytest.raises(InvalidInput):
        await store.set_override(db, "doc@hospital.org", "beds", restricted_features=["teleport"])
    with pytest.raises(InvalidInput):
        await store.set_override(db, "doc@hospital.org", "beds", flags={"can_fly": True})
    assert await store.get_override(db, "doc@hospital.org") is None


async def test_snapshot_drives_feature_checks(db):
    await store.set_override(
        db, "doc@hospital.org", "patients",
        flags={"can_view": True, "can_edit": True}, restricted_features=["edit"],
    )
    snapshot = await store.load_access_snapshot(db)
    doctor = Identity.build("doctor", "doc@hospital.org")

    assert can_use_feature(doctor, "patients", "view", snapshot)
    assert not can_use_feature(doctor, "patients", "edit", snapshot)


async def test_manager_registry(db):
    assert await store.list_managers(db) == set()

    managers = await store.add_manager(db, "Lead@Hospital.org")
    assert managers == {"lead@hospital.org"}

    # adding twice is a no-op
    assert await store.add_manager(db, "lead@hospital.org") == {"lead@hospital.org"}

    snapshot = await store.load_access_snapshot(db)
    assert "lead@hospital.org" in snapshot.managers

    assert await store.remove_manager(db, "LEAD@hospital.org") == set()
