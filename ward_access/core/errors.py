"""
Error taxonomy for authorization operations.

Services raise these; the application registers a single handler that turns
them into JSON responses with the matching status code. Resolution queries
never raise them.
"""


class AccessControlError(Exception):
    """Base class for all authorization domain errors."""
    status_code: int = 400
    kind: str = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInput(AccessControlError):
    """Unknown module/feature, malformed email or an out-of-catalog value."""
    status_code = 400
    kind = "invalid_input"


class Forbidden(AccessControlError):
    """Caller lacks the authority for a mutating operation."""
    status_code = 403
    kind = "forbidden"


# Raised by override writes from a caller that is not a permission manager
PermissionDenied = Forbidden


class NotFound(AccessControlError):
    """Operating on a nonexistent request, user or profile."""
    status_code = 404
    kind = "not_found"


class InvalidState(AccessControlError):
    """Workflow transition attempted from a non-eligible state."""
    status_code = 409
    kind = "invalid_state"
