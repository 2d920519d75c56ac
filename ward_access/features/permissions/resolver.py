"""
Effective permission resolution.

Merges the static role matrix with an administrator override snapshot. Every
function here is pure: the caller loads an ``AccessSnapshot`` (see
``store.load_access_snapshot``) and passes it in, so the resolver keeps no
state of its own and never touches the database.

Precedence for flags, most specific wins, no merging across layers:

1. If the identity's email has an override entry for the module, the whole
   flag set comes from that entry. Flags it leaves unset are false.
2. Otherwise the role baseline applies.

Restriction is a second, independent axis: a feature is restricted only when
the override entry for that module lists it, whatever the flags say.
"""
from dataclasses import dataclass, field
from typing import Optional

from ward_access.features.permissions.matrix import MODULE_FEATURE_CATALOG, baseline
from ward_access.features.permissions.types import (
    Feature,
    Identity,
    Module,
    NormalizedEmail,
    PermissionFlags,
    Role,
)
from ward_access.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class ModuleOverride:
    """One module's override. ``None`` flags were not set by the administrator."""
    can_view: Optional[bool] = None
    can_create: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None
    restricted_features: frozenset[Feature] = frozenset()

    def flags(self) -> PermissionFlags:
        return PermissionFlags(
            can_view=bool(self.can_view),
            can_create=bool(self.can_create),
            can_edit=bool(self.can_edit),
            can_delete=bool(self.can_delete),
        )


@dataclass(frozen=True)
class OverrideEntry:
    email: NormalizedEmail
    modules: dict[Module, ModuleOverride] = field(default_factory=dict)

    def for_module(self, module) -> Optional[ModuleOverride]:
        parsed = Module.parse(module)
        if parsed is None:
            return None
        return self.modules.get(parsed)


@dataclass(frozen=True)
class AccessSnapshot:
    """Overrides and the manager registry as read from the settings store."""
    overrides: dict[NormalizedEmail, OverrideEntry] = field(default_factory=dict)
    managers: frozenset[NormalizedEmail] = frozenset()

    def override_for(self, email: NormalizedEmail) -> Optional[OverrideEntry]:
        return self.overrides.get(email)


EMPTY_SNAPSHOT = AccessSnapshot()


def _module_override(identity: Identity, module, snapshot: AccessSnapshot) -> Optional[ModuleOverride]:
    entry = snapshot.override_for(identity.email)
    if entry is None:
        return None
    return entry.for_module(module)


def resolve(identity: Identity, module, snapshot: AccessSnapshot = EMPTY_SNAPSHOT) -> PermissionFlags:
    """Effective flags for ``identity`` on ``module``. Never raises."""
    override = _module_override(identity, module, snapshot)
    if override is not None:
        log.debug("Override applies for %s on %s", identity.email, module)
        return override.flags()
    return baseline(identity.role, module)


def is_feature_restricted(identity: Identity, module, feature, snapshot: AccessSnapshot = EMPTY_SNAPSHOT) -> bool:
    """True only when an override lists ``feature`` as restricted for ``module``."""
    override = _module_override(identity, module, snapshot)
    if override is None:
        return False
    parsed = Feature.parse(feature)
    return parsed is not None and parsed in override.restricted_features


def can_use_feature(identity: Identity, module, feature, snapshot: AccessSnapshot = EMPTY_SNAPSHOT) -> bool:
    """Flag granted and not restricted."""
    allowed = resolve(identity, module, snapshot).allows(feature)
    return allowed and not is_feature_restricted(identity, module, feature, snapshot)


def is_permission_manager(identity: Identity, snapshot: AccessSnapshot = EMPTY_SNAPSHOT) -> bool:
    """Super admins always manage permissions; others must be registered."""
    return identity.role == Role.SUPER_ADMIN or identity.email in snapshot.managers


def effective_permissions(identity: Identity, snapshot: AccessSnapshot = EMPTY_SNAPSHOT) -> dict[Module, dict]:
    """
    Full per-module view for one identity: flags, restricted features and
    which catalog features are usable right now.
    """
    view = {}
    for module, features in MODULE_FEATURE_CATALOG.items():
        flags = resolve(identity, module, snapshot)
        restricted = [f for f in features if is_feature_restricted(identity, module, f, snapshot)]
        view[module] = {
            "flags": flags,
            "restricted_features": restricted,
            "usable_features": [f for f in features if flags.allows(f) and f not in restricted],
            "has_override": _module_override(identity, module, snapshot) is not None,
        }
    return view
