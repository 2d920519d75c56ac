"""
Override store, permission-manager registry and assignment policies.

Every function takes the caller's ``AsyncSession``. Authority checks
(is the caller a permission manager?) happen at the route boundary, not here.
Emails are normalized once through ``NormalizedEmail.parse``; a malformed
email raises ``InvalidInput``.
"""
from typing import Iterable, Optional
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.errors import Forbidden, InvalidInput, InvalidState
from ward_access.features.permissions.models import (
    AssignmentPolicy,
    PermissionManager,
    PermissionOverride,
)
from ward_access.features.permissions.resolver import AccessSnapshot, ModuleOverride, OverrideEntry
from ward_access.features.permissions.types import Feature, Module, NormalizedEmail
from ward_access.utils import get_logger


log = get_logger(__name__)

ASSIGNMENT_TYPES = ("floor", "room", "patient")


# ============================================================================
# Row <-> value conversion
# ============================================================================

def _module_override(row: PermissionOverride) -> ModuleOverride:
    return ModuleOverride(
        can_view=row.can_view,
        can_create=row.can_create,
        can_edit=row.can_edit,
        can_delete=row.can_delete,
        restricted_features=frozenset(
            f for f in (Feature.parse(name) for name in row.restricted_features or []) if f is not None
        ),
    )


def _entries_from_rows(rows: Iterable[PermissionOverride]) -> dict[NormalizedEmail, OverrideEntry]:
    grouped: dict[NormalizedEmail, dict[Module, ModuleOverride]] = {}
    for row in rows:
        module = Module.parse(row.module)
        if module is None:
            log.warning("Ignoring override for unknown module %r (%s)", row.module, row.email)
            continue
        grouped.setdefault(NormalizedEmail(row.email), {})[module] = _module_override(row)
    return {email: OverrideEntry(email=email, modules=modules) for email, modules in grouped.items()}


# ============================================================================
# Overrides
# ============================================================================

async def get_override(db: AsyncSession, email) -> Optional[OverrideEntry]:
    """Override entry for ``email`` or None when no module is overridden."""
    normalized = NormalizedEmail.parse(email)
    result = await db.execute(
        select(PermissionOverride).where(PermissionOverride.email == normalized)
    )
    return _entries_from_rows(result.scalars().all()).get(normalized)


async def list_overrides(db: AsyncSession) -> list[OverrideEntry]:
    result = await db.execute(
        select(PermissionOverride).order_by(PermissionOverride.email, PermissionOverride.module)
    )
    return list(_entries_from_rows(result.scalars().all()).values())


async def set_override(
    db: AsyncSession,
    email,
    module,
    flags: Optional[dict[str, Optional[bool]]] = None,
    restricted_features: Optional[Iterable] = None,
    updated_by_id: Optional[str] = None,
) -> OverrideEntry:
    """
    Replace the override for one module of one email.

    ``flags`` may be partial: keys that are missing or None stay unset and
    resolve as False. The row is written as a single upsert.
    """
    normalized = NormalizedEmail.parse(email)
    parsed_module = Module.require(module, "module")
    restricted = sorted({Feature.require(f, "feature").value for f in (restricted_features or [])})

    flags = flags or {}
    unknown = set(flags) - {"can_view", "can_create", "can_edit", "can_delete"}
    if unknown:
        raise InvalidInput(f"Unknown permission flags: {sorted(unknown)}")

    result = await db.execute(
        select(PermissionOverride).where(
            PermissionOverride.email == normalized,
            PermissionOverride.module == parsed_module.value,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = PermissionOverride(email=normalized, module=parsed_module.value)
        db.add(row)

    row.can_view = flags.get("can_view")
    row.can_create = flags.get("can_create")
    row.can_edit = flags.get("can_edit")
    row.can_delete = flags.get("can_delete")
    row.restricted_features = restricted
    row.updated_by_id = updated_by_id

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidState(f"Override for {normalized} on {parsed_module.value} was written concurrently; retry")

    log.info("Override set for %s on %s (restricted=%s)", normalized, parsed_module.value, restricted)
    entry = await get_override(db, normalized)
    if entry is None:
        raise InvalidState(f"Override for {normalized} on {parsed_module.value} was cleared concurrently; retry")
    return entry


async def clear_override(db: AsyncSession, email, module) -> Optional[OverrideEntry]:
    """Drop one module from an override so it defers to the role default again."""
    normalized = NormalizedEmail.parse(email)
    parsed_module = Module.require(module, "module")
    await db.execute(
        delete(PermissionOverride).where(
            PermissionOverride.email == normalized,
            PermissionOverride.module == parsed_module.value,
        )
    )
    await db.commit()
    log.info("Override cleared for %s on %s", normalized, parsed_module.value)
    return await get_override(db, normalized)


# ============================================================================
# Permission managers
# ============================================================================

async def list_managers(db: AsyncSession) -> set[NormalizedEmail]:
    result = await db.execute(select(PermissionManager.email))
    return {NormalizedEmail(email) for email in result.scalars().all()}


async def add_manager(db: AsyncSession, email, added_by_id: Optional[str] = None) -> set[NormalizedEmail]:
    normalized = NormalizedEmail.parse(email)
    existing = await db.get(PermissionManager, normalized)
    if existing is None:
        db.add(PermissionManager(email=normalized, added_by_id=added_by_id))
        await db.commit()
        log.info("Added permission manager %s", normalized)
    return await list_managers(db)


async def remove_manager(db: AsyncSession, email) -> set[NormalizedEmail]:
    normalized = NormalizedEmail.parse(email)
    await db.execute(delete(PermissionManager).where(PermissionManager.email == normalized))
    await db.commit()
    log.info("Removed permission manager %s", normalized)
    return await list_managers(db)


async def load_access_snapshot(db: AsyncSession) -> AccessSnapshot:
    """Read overrides and managers in one go for the resolver."""
    result = await db.execute(select(PermissionOverride))
    overrides = _entries_from_rows(result.scalars().all())
    managers = await list_managers(db)
    return AccessSnapshot(overrides=overrides, managers=frozenset(managers))


# ============================================================================
# Assignment policies
# ============================================================================

def normalize_roles(roles) -> list[str]:
    if not isinstance(roles, (list, tuple, set)):
        return []
    return [str(role or "").strip().lower() for role in roles if str(role or "").strip()]


def _role_allowed(allowed_roles: list[str], role) -> bool:
    return not allowed_roles or str(role or "").lower() in allowed_roles


async def get_assignment_policies(db: AsyncSession) -> dict[str, dict[str, list[str]]]:
    """Policies for every assignment type; missing types allow any role."""
    policies = {t: {"assigner_roles": [], "assignee_roles": []} for t in ASSIGNMENT_TYPES}
    result = await db.execute(select(AssignmentPolicy))
    for row in result.scalars().all():
        if row.assignment_type in policies:
            policies[row.assignment_type] = {
                "assigner_roles": normalize_roles(row.assigner_roles),
                "assignee_roles": normalize_roles(row.assignee_roles),
            }
    return policies


async def set_assignment_policies(db: AsyncSession, policies: dict) -> dict[str, dict[str, list[str]]]:
    unknown = set(policies) - set(ASSIGNMENT_TYPES)
    if unknown:
        raise InvalidInput(f"Unknown assignment types: {sorted(unknown)}")

    for assignment_type, policy in policies.items():
        row = await db.get(AssignmentPolicy, assignment_type)
        if row is None:
            row = AssignmentPolicy(assignment_type=assignment_type)
            db.add(row)
        row.assigner_roles = normalize_roles((policy or {}).get("assigner_roles"))
        row.assignee_roles = normalize_roles((policy or {}).get("assignee_roles"))

    await db.commit()
    return await get_assignment_policies(db)


async def assert_assignment_allowed(
    db: AsyncSession,
    assignment_type: str,
    assigner_role,
    assignee_role=None,
) -> None:
    """Raise unless ``assigner_role`` may assign ``assignee_role`` for this type."""
    kind = str(assignment_type or "").lower()
    if kind not in ASSIGNMENT_TYPES:
        raise InvalidInput("Invalid assignment type")

    policy = (await get_assignment_policies(db))[kind]
    if not _role_allowed(policy["assigner_roles"], assigner_role):
        raise Forbidden(f"Your role is not allowed to assign {kind}s")
    if assignee_role and not _role_allowed(policy["assignee_roles"], assignee_role):
        raise Forbidden(f"Selected user role is not allowed for {kind} assignment")
