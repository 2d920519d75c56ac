"""
Tests for the access request workflow.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ward_access.core.database.engine import init_db
from ward_access.core.errors import Forbidden, InvalidInput, InvalidState, NotFound
from ward_access.features.access_requests import service
from ward_access.features.access_requests.models import AccessRequest, AccessRequestStatus
from ward_access.features.permissions import store
from ward_access.features.permissions.resolver import EMPTY_SNAPSHOT
from ward_access.features.permissions.types import Identity
from ward_access.features.users.models import User
from tests.conftest import identity


async def _restricted_doctor(db, make_user):
    """A doctor whose patients/edit is flagged but restricted."""
    doctor = await make_user("doc@hospital.org", "doctor")
    await store.set_override(
        db, doctor.email, "patients",
        flags={"can_view": True, "can_edit": True}, restricted_features=["edit"],
    )
    return doctor, await store.load_access_snapshot(db)


async def test_create_starts_pending_and_unreviewed(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)

    request = await service.create_access_request(db, identity(doctor), snapshot, "Patients", "EDIT", "  ward round ")

    assert request.status == AccessRequestStatus.PENDING
    assert request.reviewed_by_id is None
    assert request.reviewed_at is None
    assert request.review_comment == ""
    assert request.module == "patients"
    assert request.feature == "edit"
    assert request.reason == "ward round"
    assert request.requester_email == "doc@hospital.org"


async def test_request_for_usable_feature_is_invalid_input(db, make_user):
    nurse = await make_user("nurse@hospital.org", "nurse")
    await store.set_override(db, nurse.email, "lab", flags={"can_view": True, "can_create": True})
    snapshot = await store.load_access_snapshot(db)

    with pytest.raises(InvalidInput):
        await service.create_access_request(db, identity(nurse), snapshot, "lab", "create", "need it")


async def test_request_for_unrestricted_denied_feature_is_invalid_input(db, make_user):
    nurse = await make_user("nurse@hospital.org", "nurse")
    with pytest.raises(InvalidInput):
        await service.create_access_request(db, identity(nurse), EMPTY_SNAPSHOT, "billing", "view")


@pytest.mark.parametrize("module, feature", [("morgue", "view"), ("patients", "teleport")])
async def test_unknown_module_or_feature_is_invalid_input(db, make_user, module, feature):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    with pytest.raises(InvalidInput):
        await service.create_access_request(db, identity(doctor), snapshot, module, feature)


async def test_duplicate_pending_request_is_rejected(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")

    with pytest.raises(InvalidState):
        await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")


async def test_new_request_allowed_after_review(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    admin = await make_user("root@hospital.org", "super_admin")
    first = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")
    await service.review_access_request(db, first.id, identity(admin), snapshot, "reject")

    second = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")
    assert second.id != first.id


async def test_list_is_newest_first_with_filters(db, make_user):
    doctor, _ = await _restricted_doctor(db, make_user)
    await store.set_override(db, doctor.email, "billing", flags={"can_view": True}, restricted_features=["view"])
    snapshot = await store.load_access_snapshot(db)

    older = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")
    newer = await service.create_access_request(db, identity(doctor), snapshot, "billing", "view")
    await db.execute(
        update(AccessRequest)
        .where(AccessRequest.id == older.id)
        .values(created_at=datetime.now(timezone.utc) - timedelta(hours=1))
    )
    await db.commit()

    listed = await service.list_access_requests(db)
    assert [r.id for r in listed] == [newer.id, older.id]

    only_billing = await service.list_access_requests(db, module="BILLING")
    assert [r.id for r in only_billing] == [newer.id]

    assert await service.list_access_requests(db, status=AccessRequestStatus.APPROVED) == []
    assert len(await service.list_access_requests(db, requester_id=doctor.id)) == 2


async def test_review_approve_stamps_reviewer_and_time(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    admin = await make_user("root@hospital.org", "super_admin")
    request = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")

    reviewed = await service.review_access_request(db, request.id, identity(admin), snapshot, "approve", " ok ")

    assert reviewed.status == AccessRequestStatus.APPROVED
    assert reviewed.reviewed_by_id == admin.id
    assert reviewed.reviewed_at is not None
    assert reviewed.review_comment == "ok"


async def test_approval_does_not_touch_overrides(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    admin = await make_user("root@hospital.org", "super_admin")
    request = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")
    before = await store.get_override(db, doctor.email)

    await service.review_access_request(db, request.id, identity(admin), snapshot, "approve")

    assert await store.get_override(db, doctor.email) == before


async def test_registered_manager_can_review(db, make_user):
    doctor, _ = await _restricted_doctor(db, make_user)
    lead = await make_user("lead@hospital.org", "head_nurse")
    await store.add_manager(db, lead.email)
    snapshot = await store.load_access_snapshot(db)
    request = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")

    reviewed = await service.review_access_request(db, request.id, identity(lead), snapshot, "reject")
    assert reviewed.status == AccessRequestStatus.REJECTED


async def test_non_manager_cannot_review(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    admin = await make_user("admin@hospital.org", "hospital_admin")
    request = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")

    with pytest.raises(Forbidden):
        await service.review_access_request(db, request.id, identity(admin), snapshot, "approve")

    assert (await service.get_access_request(db, request.id)).status == AccessRequestStatus.PENDING


async def test_review_unknown_request_is_not_found(db, make_user):
    admin = await make_user("root@hospital.org", "super_admin")
    with pytest.raises(NotFound):
        await service.review_access_request(db, "01HZZZZZZZZZZZZZZZZZZZZZZZ", identity(admin), EMPTY_SNAPSHOT, "approve")


async def test_review_bad_decision_is_invalid_input(db, make_user):
    admin = await make_user("root@hospital.org", "super_admin")
    with pytest.raises(InvalidInput):
        await service.review_access_request(db, "anything", identity(admin), EMPTY_SNAPSHOT, "maybe")


async def test_second_review_fails_and_leaves_request_unchanged(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    admin = await make_user("root@hospital.org", "super_admin")
    other = await make_user("root2@hospital.org", "super_admin")
    request = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")
    first = await service.review_access_request(db, request.id, identity(admin), snapshot, "approve", "fine")
    stamped = (first.status, first.reviewed_by_id, first.reviewed_at, first.review_comment)

    with pytest.raises(InvalidState):
        await service.review_access_request(db, request.id, identity(other), snapshot, "reject", "no")

    after = await service.get_access_request(db, request.id)
    assert (after.status, after.reviewed_by_id, after.reviewed_at, after.review_comment) == stamped


async def test_concurrent_double_approval_has_one_winner(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    await init_db(bind=engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as setup:
        doctor = User(appwrite_id="aw-doc", email="doc@hospital.org", name="Doc", role="doctor")
        first_admin = User(appwrite_id="aw-a", email="a@hospital.org", name="A", role="super_admin")
        second_admin = User(appwrite_id="aw-b", email="b@hospital.org", name="B", role="super_admin")
        setup.add_all([doctor, first_admin, second_admin])
        await setup.commit()
        await store.set_override(
            setup, doctor.email, "patients", flags={"can_view": True}, restricted_features=["edit"]
        )
        snapshot = await store.load_access_snapshot(setup)
        request = await service.create_access_request(setup, identity(doctor), snapshot, "patients", "edit")

    async def approve(reviewer):
        async with factory() as session:
            return await service.review_access_request(session, request.id, identity(reviewer), snapshot, "approve")

    results = await asyncio.gather(approve(first_admin), approve(second_admin), return_exceptions=True)
    await engine.dispose()

    winners = [r for r in results if isinstance(r, AccessRequest)]
    losers = [r for r in results if isinstance(r, InvalidState)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert winners[0].status == AccessRequestStatus.APPROVED
    assert winners[0].reviewed_by_id in {first_admin.id, second_admin.id}


async def test_review_without_stored_reviewer_is_rejected(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    request = await service.create_access_request(db, identity(doctor), snapshot, "patients", "edit")
    unstored = Identity.build("super_admin", "root@hospital.org")

    with pytest.raises(InvalidInput):
        await service.review_access_request(db, request.id, unstored, snapshot, "approve")

    after = await service.get_access_request(db, request.id)
    assert after.status == AccessRequestStatus.PENDING
    assert after.reviewed_by_id is None


async def test_create_without_stored_requester_is_rejected(db, make_user):
    doctor, snapshot = await _restricted_doctor(db, make_user)
    unstored = Identity.build("doctor", doctor.email)

    with pytest.raises(InvalidInput):
        await service.create_access_request(db, unstored, snapshot, "patients", "edit")
    assert await service.list_access_requests(db) == []
