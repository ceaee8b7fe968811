"""Access-control and location errors raised by the service layer.

None of these are caught inside the services. The API layer turns them into
403/404/422 envelopes (see ``app.main``).
"""


class AccessControlError(Exception):
    """Base class for role/scope resolution failures."""


class UnknownRoleError(AccessControlError):
    """Role value outside the closed set of known roles."""

    def __init__(self, role: object):
        self.role = role
        super().__init__(f"Unknown role: {role!r}")


class MissingScopeError(AccessControlError):
    """The role requires an anchor location id that the access scope lacks."""

    def __init__(self, role: str, field: str):
        self.role = role
        self.field = field
        super().__init__(f"Role {role} requires '{field}' in its access scope")


class InconsistentScopeError(AccessControlError):
    """Location ids in a scope or record disagree with the reference tree."""


class RoleAssignmentError(AccessControlError):
    """The acting user may not assign the requested role or location."""


class LocationDataError(ValueError):
    """Reference location data is malformed (dangling parent, duplicate id, ...)."""


class OutOfScopeError(AccessControlError):
    """A write targets a location outside the caller's access scope."""
