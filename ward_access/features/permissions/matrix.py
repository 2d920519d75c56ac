"""
Static role x module permission baselines.

Loaded once at import time and never mutated. Anything missing from the
table means "no access".
"""
from ward_access.features.permissions.types import Feature, Module, PermissionFlags, Role, NO_ACCESS


FULL_ACCESS = PermissionFlags(can_view=True, can_create=True, can_edit=True, can_delete=True)
VIEW_ONLY = PermissionFlags(can_view=True)
VIEW_AND_CREATE = PermissionFlags(can_view=True, can_create=True)
VIEW_CREATE_EDIT = PermissionFlags(can_view=True, can_create=True, can_edit=True)


ROLE_PERMISSIONS: dict[Role, dict[Module, PermissionFlags]] = {
    Role.SUPER_ADMIN: {module: FULL_ACCESS for module in Module},
    Role.HOSPITAL_ADMIN: {
        **{module: FULL_ACCESS for module in Module},
        Module.SETTINGS: VIEW_CREATE_EDIT,
    },
    Role.DOCTOR: {
        Module.DASHBOARD: VIEW_ONLY,
        Module.BEDS: VIEW_ONLY,
        Module.ADMISSIONS: VIEW_CREATE_EDIT,
        Module.PATIENTS: VIEW_CREATE_EDIT,
        Module.DOCTORS: VIEW_ONLY,
        Module.NURSES: VIEW_ONLY,
        Module.APPOINTMENTS: VIEW_CREATE_EDIT,
        Module.FACILITIES: VIEW_ONLY,
        Module.BILLING: VIEW_ONLY,
        Module.REPORTS: VIEW_ONLY,
        Module.NOTIFICATIONS: VIEW_ONLY,
        Module.SETTINGS: VIEW_ONLY,
        Module.TASKS: VIEW_AND_CREATE,
        Module.LAB: VIEW_AND_CREATE,
        Module.PHARMACY: VIEW_AND_CREATE,
        Module.VITALS: VIEW_ONLY,
    },
    Role.HEAD_NURSE: {
        Module.DASHBOARD: VIEW_ONLY,
        Module.BEDS: VIEW_CREATE_EDIT,
        Module.ADMISSIONS: VIEW_CREATE_EDIT,
        Module.PATIENTS: VIEW_CREATE_EDIT,
        Module.DOCTORS: VIEW_ONLY,
        Module.NURSES: VIEW_CREATE_EDIT,
        Module.APPOINTMENTS: VIEW_ONLY,
        Module.FACILITIES: VIEW_ONLY,
        Module.NOTIFICATIONS: VIEW_ONLY,
        Module.SETTINGS: VIEW_ONLY,
        Module.TASKS: FULL_ACCESS,
        Module.LAB: VIEW_ONLY,
        Module.PHARMACY: VIEW_ONLY,
        Module.VITALS: FULL_ACCESS,
    },
    Role.NURSE: {
        Module.DASHBOARD: VIEW_ONLY,
        Module.BEDS: VIEW_CREATE_EDIT,
        Module.ADMISSIONS: VIEW_CREATE_EDIT,
        Module.PATIENTS: VIEW_CREATE_EDIT,
        Module.DOCTORS: VIEW_ONLY,
        Module.NURSES: VIEW_ONLY,
        Module.APPOINTMENTS: VIEW_ONLY,
        Module.FACILITIES: VIEW_ONLY,
        Module.NOTIFICATIONS: VIEW_ONLY,
        Module.SETTINGS: VIEW_ONLY,
        Module.TASKS: VIEW_CREATE_EDIT,
        Module.VITALS: VIEW_CREATE_EDIT,
    },
    Role.RECEPTIONIST: {
        Module.DASHBOARD: VIEW_ONLY,
        Module.BEDS: VIEW_ONLY,
        Module.ADMISSIONS: VIEW_AND_CREATE,
        Module.PATIENTS: VIEW_AND_CREATE,
        Module.DOCTORS: VIEW_ONLY,
        Module.APPOINTMENTS: FULL_ACCESS,
        Module.FACILITIES: VIEW_ONLY,
        Module.BILLING: VIEW_AND_CREATE,
        Module.NOTIFICATIONS: VIEW_ONLY,
        Module.SETTINGS: VIEW_ONLY,
    },
    Role.BILLING_STAFF: {
        Module.DASHBOARD: VIEW_ONLY,
        Module.ADMISSIONS: VIEW_ONLY,
        Module.PATIENTS: VIEW_ONLY,
        Module.FACILITIES: VIEW_ONLY,
        Module.BILLING: FULL_ACCESS,
        Module.REPORTS: FULL_ACCESS,
        Module.NOTIFICATIONS: VIEW_ONLY,
        Module.SETTINGS: VIEW_ONLY,
        Module.PHARMACY: VIEW_ONLY,
    },
}


# Features that mean something for each module
MODULE_FEATURE_CATALOG: dict[Module, tuple[Feature, ...]] = {
    module: tuple(Feature) for module in Module
}
MODULE_FEATURE_CATALOG.update({
    Module.DASHBOARD: (Feature.VIEW,),
    Module.REPORTS: (Feature.VIEW,),
    Module.NOTIFICATIONS: (Feature.VIEW,),
})


def baseline(role, module) -> PermissionFlags:
    """Role default for ``module``. Unknown role or module gives no access."""
    parsed_role = Role.parse(role)
    parsed_module = Module.parse(module)
    if parsed_role is None or parsed_module is None:
        return NO_ACCESS
    return ROLE_PERMISSIONS.get(parsed_role, {}).get(parsed_module, NO_ACCESS)
