"""
Personal permission profiles.

The catalog of what a role may delegate is fixed:

- doctor: prescriptions (view, edit, create, delete), schedule (view, edit)
- nurse / head_nurse: tasks (create, edit, delete), vitals (create, edit),
  transfer, assign and reject (allow)

Ownership of ``set_personal_permissions`` is checked by the caller; this
module only validates the grid against the owner's role.
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.errors import InvalidInput, InvalidState, NotFound
from ward_access.features.permissions.types import Identity, Role
from ward_access.features.personal_permissions.models import PersonalPermissionProfile
from ward_access.features.users.models import User
from ward_access.utils import get_logger


log = get_logger(__name__)

_NURSING_CATALOG = {
    "tasks": ("create", "edit", "delete"),
    "vitals": ("create", "edit"),
    "transfer": ("allow",),
    "assign": ("allow",),
    "reject": ("allow",),
}

ROLE_CATALOG: dict[Role, dict[str, tuple[str, ...]]] = {
    Role.DOCTOR: {
        "prescriptions": ("view", "edit", "create", "delete"),
        "schedule": ("view", "edit"),
    },
    Role.NURSE: _NURSING_CATALOG,
    Role.HEAD_NURSE: _NURSING_CATALOG,
}

# Roles that may act on resources owned by the key role
PEER_ROLES: dict[Role, frozenset[Role]] = {
    Role.DOCTOR: frozenset({Role.DOCTOR, Role.NURSE, Role.HEAD_NURSE}),
    Role.NURSE: frozenset({Role.NURSE, Role.HEAD_NURSE}),
    Role.HEAD_NURSE: frozenset({Role.NURSE, Role.HEAD_NURSE}),
}


def catalog_for(role) -> dict[str, tuple[str, ...]]:
    """Delegable modules and actions for a role; empty for roles without one."""
    parsed = role if isinstance(role, Role) else Role.parse(role)
    return ROLE_CATALOG.get(parsed, {})


def validate_profile(role, profile) -> dict[str, dict[str, bool]]:
    """
    Check a delegation grid against the role catalog.

    Module and action keys are case-insensitive and stored lower-cased.

    Raises:
        InvalidInput: role cannot delegate, unknown module/action, or a
            non-boolean value
    """
    catalog = catalog_for(role)
    if not catalog:
        raise InvalidInput("Your role has no delegable permissions")
    if not isinstance(profile, dict):
        raise InvalidInput("Permissions must be an object of modules")

    cleaned: dict[str, dict[str, bool]] = {}
    for module, actions in profile.items():
        module_key = str(module).strip().lower()
        if module_key not in catalog:
            raise InvalidInput(f"Unknown personal permission module: {module!r}")
        if not isinstance(actions, dict):
            raise InvalidInput(f"Actions for {module_key} must be an object")

        cleaned_actions = {}
        for action, value in actions.items():
            action_key = str(action).strip().lower()
            if action_key not in catalog[module_key]:
                raise InvalidInput(f"Unknown action {action!r} for {module_key}")
            if not isinstance(value, bool):
                raise InvalidInput(f"{module_key}.{action_key} must be true or false")
            cleaned_actions[action_key] = value
        cleaned[module_key] = cleaned_actions

    return cleaned


async def _get_owner(db: AsyncSession, owner_id: str) -> User:
    owner = await db.get(User, owner_id)
    if owner is None:
        raise NotFound("User not found")
    return owner


async def _get_profile(db: AsyncSession, owner_id: str) -> Optional[PersonalPermissionProfile]:
    result = await db.execute(
        select(PersonalPermissionProfile).where(PersonalPermissionProfile.owner_id == owner_id)
    )
    return result.scalar_one_or_none()


async def get_personal_permissions(db: AsyncSession, owner_id: str) -> dict[str, dict[str, bool]]:
    """The owner's delegation grid, empty when nothing has been saved."""
    await _get_owner(db, owner_id)
    profile = await _get_profile(db, owner_id)
    if profile is None:
        return {}
    return dict(profile.permissions or {})


async def set_personal_permissions(db: AsyncSession, owner: Identity, profile) -> dict[str, dict[str, bool]]:
    """Replace the owner's grid. Last write wins."""
    await _get_owner(db, owner.user_id)
    cleaned = validate_profile(owner.role, profile)

    row = await _get_profile(db, owner.user_id)
    if row is None:
        row = PersonalPermissionProfile(owner_id=owner.user_id)
        db.add(row)
    row.permissions = cleaned

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidState("Personal permissions were saved concurrently; retry")

    log.info("Personal permissions saved for %s: %s", owner.email, cleaned)
    return cleaned


async def is_delegated(db: AsyncSession, owner_id: str, module: str, action: str) -> bool:
    """Whether the owner delegated ``action`` on ``module``. Missing keys are not delegated."""
    permissions = await get_personal_permissions(db, owner_id)
    module_grants = permissions.get(str(module).strip().lower()) or {}
    return module_grants.get(str(action).strip().lower()) is True


async def can_act_for(db: AsyncSession, actor: Identity, owner_id: str, module: str, action: str) -> bool:
    """
    Whether ``actor`` may perform ``action`` on a resource owned by ``owner_id``.

    The owner always may. Anyone else needs a peer role of the owner's role
    and a delegated action.
    """
    if actor.user_id == owner_id:
        return True

    owner = await _get_owner(db, owner_id)
    owner_role = Role.parse(owner.role)
    if owner_role is None or actor.role not in PEER_ROLES.get(owner_role, frozenset()):
        log.debug("No peer delegation from %s (%s) to %s (%s)", owner.email, owner.role, actor.email, actor.role)
        return False

    return await is_delegated(db, owner_id, module, action)
