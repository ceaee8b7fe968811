"""Location-scoped data access.

A user's role and access scope resolve to either ``UNRESTRICTED`` or a single
anchor ``(level, anchor_id)``. Every located record carries all five ancestor
ids, so "the anchor and everything below it" is one equality test on the
anchor level's id field; no tree walk is needed to build filters.

All functions here are pure and safe to call concurrently.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

from app.core.exceptions import MissingScopeError, RoleAssignmentError
from app.services.locations import LOCATION_LEVELS, LocationHierarchy, LocationLevel
from app.services.rbac import Role, get_role_permissions

R = TypeVar("R")

_MISSING = object()
_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


class AccessScope(BaseModel):
    """Location node a user is anchored to, plus whatever ancestor ids were stored."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    division_id: str | None = None
    district_id: str | None = None
    upazila_id: str | None = None
    union_id: str | None = None
    village_id: str | None = None

    @classmethod
    def from_value(cls, value: "AccessScope | Mapping[str, Any] | None") -> "AccessScope":
        if isinstance(value, AccessScope):
            return value
        return cls.model_validate(dict(value or {}))

    def anchor(self, level: LocationLevel) -> str | None:
        value = getattr(self, level.id_field)
        return value or None

    def as_location(self) -> dict[str, str]:
        """Populated id fields only."""
        return {k: v for k, v in self.model_dump().items() if v}


class _Unrestricted:
    """Resolved scope of a super admin: no location filter applies."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESTRICTED"

    def to_dict(self) -> dict[str, Any]:
        return {"unrestricted": True, "level": None, "anchor_id": None}


UNRESTRICTED = _Unrestricted()


@dataclass(frozen=True)
class ScopeAnchor:
    """Resolved scope of a location-bound admin."""

    level: LocationLevel
    anchor_id: str

    @property
    def field(self) -> str:
        return self.level.id_field

    def to_dict(self) -> dict[str, Any]:
        return {"unrestricted": False, "level": self.level.value, "anchor_id": self.anchor_id}


ResolvedScope = ScopeAnchor | _Unrestricted


def resolve_scope(
    role: Role | str,
    access_scope: AccessScope | Mapping[str, Any] | None,
    hierarchy: LocationHierarchy | None = None,
) -> ResolvedScope:
    """
    Resolve a role and access scope to the caller's anchor.

    Raises:
        UnknownRoleError: role is not one of the six known roles.
        MissingScopeError: the role's anchor id is absent from the scope.
        InconsistentScopeError: only when ``hierarchy`` is given and the
            scope's ancestor ids disagree with it.
    """
    role = Role.parse(role)
    if role is Role.SUPER_ADMIN:
        return UNRESTRICTED

    scope = AccessScope.from_value(access_scope)
    level = role.level
    anchor_id = scope.anchor(level)
    if anchor_id is None:
        raise MissingScopeError(role.value, level.id_field)

    if hierarchy is not None:
        hierarchy.check_chain(scope.model_dump(), level)

    return ScopeAnchor(level=level, anchor_id=anchor_id)


def validate_scope(
    hierarchy: LocationHierarchy,
    role: Role | str,
    access_scope: AccessScope | Mapping[str, Any] | None,
) -> dict[str, str]:
    """
    Check a scope about to be assigned with ``role`` and fill in its ancestors.

    Returns the scope from division down to the role's level; super admins
    get an empty scope. Raises InconsistentScopeError if the anchor is
    missing or unknown, or a given ancestor id disagrees with the tree.
    """
    role = Role.parse(role)
    if role is Role.SUPER_ADMIN:
        return {}
    return hierarchy.check_chain(AccessScope.from_value(access_scope).model_dump(), role.level)


# ============================================
# FILTER PREDICATES
# ============================================


def _field_value(record: Any, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field, _MISSING)
    return getattr(record, field, _MISSING)


@dataclass(frozen=True)
class FilterPredicate:
    """
    Conjunction of ``field == value`` clauses.

    The empty predicate matches every record. Combining predicates only ever
    adds clauses, so two clauses on the same field with different values
    match nothing.
    """

    clauses: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def from_mapping(cls, filters: Mapping[str, Any] | None) -> "FilterPredicate":
        """Equality clauses for every non-empty value in ``filters``."""
        if not filters:
            return cls()
        return cls(tuple((k, v) for k, v in filters.items() if v not in (None, "")))

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    def fields(self) -> set[str]:
        return {field for field, _ in self.clauses}

    def and_(self, other: "FilterPredicate | Mapping[str, Any] | None") -> "FilterPredicate":
        if other is None:
            return self
        if not isinstance(other, FilterPredicate):
            other = FilterPredicate.from_mapping(other)
        return FilterPredicate(self.clauses + other.clauses)

    def matches(self, record: Any) -> bool:
        for field, value in self.clauses:
            actual = _field_value(record, field)
            if actual is _MISSING or actual != value:
                return False
        return True

    def to_sql(self, start_param: int = 1, table_alias: str | None = None) -> tuple[str, list[Any]]:
        """
        Render as an asyncpg ``WHERE`` fragment with ``$n`` placeholders.

        Returns ``("TRUE", [])`` for the empty predicate.
        """
        if not self.clauses:
            return "TRUE", []

        parts = []
        params: list[Any] = []
        prefix = f"{table_alias}." if table_alias else ""
        for offset, (field, value) in enumerate(self.clauses):
            if not _IDENTIFIER.match(field):
                raise ValueError(f"Invalid filter field: {field!r}")
            parts.append(f"{prefix}{field} = ${start_param + offset}")
            params.append(value)
        return " AND ".join(parts), params


def build_constraint(
    resolved_scope: ResolvedScope,
    extra: FilterPredicate | Mapping[str, Any] | None = None,
) -> FilterPredicate:
    """
    Database filter for a resolved scope, AND-ed with caller filters.

    ``extra`` narrows the scope and can never widen it.
    """
    if isinstance(resolved_scope, ScopeAnchor):
        base = FilterPredicate(((resolved_scope.field, resolved_scope.anchor_id),))
    else:
        base = FilterPredicate()
    return base.and_(extra)


def is_accessible(resolved_scope: ResolvedScope, record: Any) -> bool:
    """Whether ``record`` lies inside the scope. Records lacking the anchor field are not."""
    if not isinstance(resolved_scope, ScopeAnchor):
        return True
    value = _field_value(record, resolved_scope.field)
    return value is not _MISSING and value == resolved_scope.anchor_id


def filter_accessible(resolved_scope: ResolvedScope, records: Iterable[R]) -> list[R]:
    """Accessible subset of ``records`` in original order. The input is not modified."""
    return [record for record in records if is_accessible(resolved_scope, record)]


# ============================================
# USER MANAGEMENT RULES
# ============================================


def can_manage_user(
    manager_role: Role | str,
    manager_scope: AccessScope | Mapping[str, Any] | None,
    target_role: Role | str,
    target_scope: AccessScope | Mapping[str, Any] | None,
) -> bool:
    """
    A manager may manage a user whose role it can assign and whose scope lies
    inside the manager's own scope. Super admins manage everyone.
    """
    manager_role = Role.parse(manager_role)
    if manager_role is Role.SUPER_ADMIN:
        return True

    if Role.parse(target_role) not in get_role_permissions(manager_role).can_assign_roles:
        return False

    resolved = resolve_scope(manager_role, manager_scope)
    return is_accessible(resolved, AccessScope.from_value(target_scope).as_location())


def filter_manageable_users(
    manager_role: Role | str,
    manager_scope: AccessScope | Mapping[str, Any] | None,
    users: Iterable[Mapping[str, Any]],
) -> list[Mapping[str, Any]]:
    """Users whose ``access_scope`` lies within the manager's scope."""
    resolved = resolve_scope(manager_role, manager_scope)
    return [
        user
        for user in users
        if is_accessible(resolved, AccessScope.from_value(user.get("access_scope")).as_location())
    ]


@dataclass(frozen=True)
class LocationAssignmentOptions:
    """Which scope fields an assigner picks and which are pinned to its own scope."""

    selectable: tuple[LocationLevel, ...]
    fixed: dict[str, str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectable": [level.value for level in self.selectable],
            "fixed": dict(self.fixed),
        }


def location_assignment_options(
    manager_role: Role | str,
    manager_scope: AccessScope | Mapping[str, Any] | None,
    target_role: Role | str,
) -> LocationAssignmentOptions:
    """
    Location fields to present when ``manager_role`` assigns ``target_role``.

    Raises RoleAssignmentError if the manager may not assign that role.
    """
    manager_role = Role.parse(manager_role)
    target_role = Role.parse(target_role)
    if target_role not in get_role_permissions(manager_role).can_assign_roles:
        raise RoleAssignmentError(
            f"{manager_role.value} cannot assign role {target_role.value}"
        )

    target_path = target_role.level.path()
    if manager_role is Role.SUPER_ADMIN:
        return LocationAssignmentOptions(selectable=target_path, fixed={})

    resolve_scope(manager_role, manager_scope)
    scope = AccessScope.from_value(manager_scope)
    manager_depth = manager_role.level.depth
    fixed = {
        level.id_field: scope.anchor(level) or ""
        for level in LOCATION_LEVELS[: manager_depth + 1]
    }
    return LocationAssignmentOptions(selectable=target_path[manager_depth + 1 :], fixed=fixed)
