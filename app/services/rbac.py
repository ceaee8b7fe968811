"""Role permission table.

Every role decision in the application goes through ``Role`` and
``get_role_permissions``; nothing else compares role strings.
"""

from dataclasses import dataclass, field
from enum import Enum

from app.core.exceptions import UnknownRoleError
from app.services.locations import LocationLevel


class Role(str, Enum):
    """User roles, broadest first."""

    SUPER_ADMIN = "super_admin"
    DIVISION_ADMIN = "division_admin"
    DISTRICT_ADMIN = "district_admin"
    UPAZILA_ADMIN = "upazila_admin"
    UNION_ADMIN = "union_admin"
    VILLAGE_ADMIN = "village_admin"

    @classmethod
    def parse(cls, value: "Role | str | None") -> "Role":
        """Coerce a stored role value, raising UnknownRoleError for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownRoleError(value) from None

    @property
    def breadth(self) -> int:
        """0 for super_admin, growing as the scope narrows."""
        return ROLE_ORDER.index(self)

    @property
    def level(self) -> LocationLevel | None:
        """Location level the role is anchored at; None for super_admin."""
        return ROLE_LEVELS[self]


ROLE_ORDER: tuple[Role, ...] = tuple(Role)

ROLE_LEVELS: dict[Role, LocationLevel | None] = {
    Role.SUPER_ADMIN: None,
    Role.DIVISION_ADMIN: LocationLevel.DIVISION,
    Role.DISTRICT_ADMIN: LocationLevel.DISTRICT,
    Role.UPAZILA_ADMIN: LocationLevel.UPAZILA,
    Role.UNION_ADMIN: LocationLevel.UNION,
    Role.VILLAGE_ADMIN: LocationLevel.VILLAGE,
}

ROLE_DISPLAY_NAMES: dict[Role, str] = {
    Role.SUPER_ADMIN: "সুপার অ্যাডমিন",
    Role.DIVISION_ADMIN: "বিভাগীয় অ্যাডমিন",
    Role.DISTRICT_ADMIN: "জেলা অ্যাডমিন",
    Role.UPAZILA_ADMIN: "উপজেলা অ্যাডমিন",
    Role.UNION_ADMIN: "ইউনিয়ন অ্যাডমিন",
    Role.VILLAGE_ADMIN: "গ্রাম অ্যাডমিন",
}


@dataclass(frozen=True)
class PermissionSet:
    """What a role may do inside its location scope."""

    can_read: bool
    can_create: bool
    can_update: bool
    can_delete: bool
    can_assign_roles: tuple[Role, ...] = field(default_factory=tuple)
    can_verify_users: bool = False
    can_access_data_hub: bool = False
    can_access_all_voters: bool = False
    location_scope: str = "all"

    def to_dict(self) -> dict:
        return {
            "can_read": self.can_read,
            "can_create": self.can_create,
            "can_update": self.can_update,
            "can_delete": self.can_delete,
            "can_assign_roles": [role.value for role in self.can_assign_roles],
            "can_verify_users": self.can_verify_users,
            "can_access_data_hub": self.can_access_data_hub,
            "can_access_all_voters": self.can_access_all_voters,
            "location_scope": self.location_scope,
        }


def narrower_roles(role: Role) -> tuple[Role, ...]:
    """Roles strictly narrower than ``role``, broadest first."""
    return ROLE_ORDER[role.breadth + 1 :]


def _build_permission_table() -> dict[Role, PermissionSet]:
    table = {}
    for role in ROLE_ORDER:
        is_super = role is Role.SUPER_ADMIN
        assignable = narrower_roles(role)
        table[role] = PermissionSet(
            can_read=True,
            can_create=True,
            can_update=True,
            can_delete=is_super,
            can_assign_roles=assignable,
            can_verify_users=bool(assignable),
            can_access_data_hub=is_super,
            can_access_all_voters=is_super,
            location_scope="all" if is_super else role.level.value,
        )
    return table


ROLE_PERMISSIONS: dict[Role, PermissionSet] = _build_permission_table()


def get_role_permissions(role: Role | str) -> PermissionSet:
    """Permission set for a role. Raises UnknownRoleError for unknown values."""
    return ROLE_PERMISSIONS[Role.parse(role)]


def can_verify_role(verifier_role: Role | str, target_role: Role | str) -> bool:
    """Whether a user with ``verifier_role`` may approve a user into ``target_role``."""
    return Role.parse(target_role) in get_role_permissions(verifier_role).can_assign_roles


def role_display_name(role: Role | str) -> str:
    return ROLE_DISPLAY_NAMES[Role.parse(role)]


def required_location_fields(role: Role | str) -> list[str]:
    """Scope fields (anchor plus every ancestor) a user with ``role`` must carry."""
    level = Role.parse(role).level
    if level is None:
        return []
    return [lvl.id_field for lvl in level.path()]


def role_for_level(level: LocationLevel | str) -> Role:
    """Admin role anchored at ``level``."""
    level = LocationLevel(level)
    for role, role_level in ROLE_LEVELS.items():
        if role_level is level:
            return role
    raise UnknownRoleError(level)
