"""Administrative location hierarchy (division → district → upazila → union → village).

Reference data is loaded once from JSON files and kept in memory, read-only.
Node ids are only unique within a level (district "1" and division "1" are
different places), so every lookup is keyed by ``(level, id)``.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
import json
from pathlib import Path
from typing import Any

from app.core.exceptions import InconsistentScopeError, LocationDataError
from app.core.logging_config import get_logger

logger = get_logger(__name__)


class LocationLevel(str, Enum):
    """Levels of the administrative tree, root first."""

    DIVISION = "division"
    DISTRICT = "district"
    UPAZILA = "upazila"
    UNION = "union"
    VILLAGE = "village"

    @property
    def id_field(self) -> str:
        return f"{self.value}_id"

    @property
    def depth(self) -> int:
        return LOCATION_LEVELS.index(self)

    @property
    def parent(self) -> "LocationLevel | None":
        if self.depth == 0:
            return None
        return LOCATION_LEVELS[self.depth - 1]

    @property
    def child(self) -> "LocationLevel | None":
        if self.depth == len(LOCATION_LEVELS) - 1:
            return None
        return LOCATION_LEVELS[self.depth + 1]

    def path(self) -> tuple["LocationLevel", ...]:
        """Levels from division down to (and including) this one."""
        return LOCATION_LEVELS[: self.depth + 1]


LOCATION_LEVELS: tuple[LocationLevel, ...] = tuple(LocationLevel)
LOCATION_ID_FIELDS: tuple[str, ...] = tuple(level.id_field for level in LOCATION_LEVELS)

DATA_FILES = {
    LocationLevel.DIVISION: "divisions.json",
    LocationLevel.DISTRICT: "districts.json",
    LocationLevel.UPAZILA: "upazilas.json",
    LocationLevel.UNION: "unions.json",
    LocationLevel.VILLAGE: "villages.json",
}

# The public Bangladesh geocode dataset spells the union's parent key "upazilla_id"
PARENT_KEY_ALIASES = {LocationLevel.UNION: ("upazila_id", "upazilla_id")}


def default_data_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "data" / "locations"


@dataclass(frozen=True)
class LocationNode:
    """A single place in the tree."""

    id: str
    name: str
    bn_name: str
    level: LocationLevel
    parent_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "bn_name": self.bn_name,
            "level": self.level.value,
            "parent_id": self.parent_id,
        }


def _node_from_record(level: LocationLevel, record: Mapping[str, Any]) -> LocationNode:
    parent_id = record.get("parent_id")
    if parent_id is None and level.parent is not None:
        for key in PARENT_KEY_ALIASES.get(level, (level.parent.id_field,)):
            if record.get(key) is not None:
                parent_id = record[key]
                break

    try:
        return LocationNode(
            id=str(record["id"]),
            name=record["name"],
            bn_name=record.get("bn_name") or record["name"],
            level=level,
            parent_id=str(parent_id) if parent_id is not None else None,
        )
    except KeyError as e:
        raise LocationDataError(f"{level.value} record missing field {e}: {record!r}") from e


class LocationHierarchy:
    """Immutable, validated five-level location tree."""

    def __init__(self, nodes: Iterable[LocationNode]):
        self._nodes: dict[tuple[LocationLevel, str], LocationNode] = {}
        self._children: dict[tuple[LocationLevel, str], list[LocationNode]] = {}
        self._roots: list[LocationNode] = []

        for node in nodes:
            key = (node.level, node.id)
            if key in self._nodes:
                raise LocationDataError(f"Duplicate {node.level.value} id: {node.id}")
            self._nodes[key] = node

        for node in self._nodes.values():
            if node.level.parent is None:
                if node.parent_id is not None:
                    raise LocationDataError(f"Division {node.id} must not have a parent")
                self._roots.append(node)
                continue

            parent_key = (node.level.parent, node.parent_id)
            if node.parent_id is None or parent_key not in self._nodes:
                raise LocationDataError(
                    f"{node.level.value} {node.id} references missing "
                    f"{node.level.parent.value} {node.parent_id}"
                )
            self._children.setdefault(parent_key, []).append(node)

    @classmethod
    def from_records(
        cls, records_by_level: Mapping[LocationLevel | str, Iterable[Mapping[str, Any]]]
    ) -> "LocationHierarchy":
        """Build from raw dicts keyed by level, as found in the JSON files."""
        nodes = []
        for level_key, records in records_by_level.items():
            level = LocationLevel(level_key)
            nodes.extend(_node_from_record(level, record) for record in records)
        return cls(nodes)

    @classmethod
    def from_directory(cls, data_dir: str | Path | None = None) -> "LocationHierarchy":
        """Load ``divisions.json`` ... ``villages.json``. Missing files load as empty levels."""
        path = Path(data_dir) if data_dir else default_data_dir()
        records: dict[LocationLevel, list[dict]] = {}

        for level, filename in DATA_FILES.items():
            file_path = path / filename
            if not file_path.exists():
                logger.warning(f"Location data file not found: {file_path}")
                records[level] = []
                continue
            with file_path.open(encoding="utf-8") as f:
                records[level] = json.load(f)

        hierarchy = cls.from_records(records)
        logger.info(
            "Location hierarchy loaded: "
            + ", ".join(f"{lvl.value}={hierarchy.count(lvl)}" for lvl in LOCATION_LEVELS)
        )
        return hierarchy

    # ============================================
    # LOOKUPS
    # ============================================

    def count(self, level: LocationLevel) -> int:
        return sum(1 for lvl, _ in self._nodes if lvl == level)

    def get(self, level: LocationLevel | str, node_id: str) -> LocationNode | None:
        return self._nodes.get((LocationLevel(level), str(node_id)))

    def divisions(self) -> list[LocationNode]:
        return sorted(self._roots, key=lambda n: n.name)

    def children(self, level: LocationLevel | str, node_id: str) -> list[LocationNode]:
        """Direct children of a node, sorted by name."""
        children = self._children.get((LocationLevel(level), str(node_id)), [])
        return sorted(children, key=lambda n: n.name)

    def ancestors(self, level: LocationLevel | str, node_id: str) -> list[LocationNode]:
        """Chain from the division down to the node itself. Empty if unknown."""
        node = self.get(level, node_id)
        chain: list[LocationNode] = []
        while node is not None:
            chain.append(node)
            if node.level.parent is None:
                break
            node = self.get(node.level.parent, node.parent_id)
        return list(reversed(chain))

    def complete_scope(self, level: LocationLevel | str, node_id: str) -> dict[str, str]:
        """All id fields from division down to the given node."""
        chain = self.ancestors(level, node_id)
        if not chain:
            raise InconsistentScopeError(
                f"Unknown {LocationLevel(level).value}: {node_id}"
            )
        return {node.level.id_field: node.id for node in chain}

    def check_chain(
        self,
        location: Mapping[str, Any],
        level: LocationLevel | str,
        require_complete: bool = False,
    ) -> dict[str, str]:
        """
        Verify the ids in ``location`` down to ``level`` form a path in the tree.

        The node at ``level`` must exist. Ancestor ids that are present must
        match the node's real ancestors; with ``require_complete`` they must
        also all be present. Returns the completed ancestor chain.
        """
        level = LocationLevel(level)
        anchor_id = location.get(level.id_field)
        if not anchor_id:
            raise InconsistentScopeError(f"Location is missing {level.id_field}")

        expected = self.complete_scope(level, anchor_id)
        for field, real_id in expected.items():
            given = location.get(field)
            if given in (None, ""):
                if require_complete:
                    raise InconsistentScopeError(f"Location is missing {field}")
                continue
            if str(given) != real_id:
                raise InconsistentScopeError(
                    f"{field}={given} does not match {level.id_field}={anchor_id} "
                    f"(expected {real_id})"
                )
        return expected

    def location_names(self, location: Mapping[str, Any]) -> dict[str, str]:
        """Bangla and English names for every id field present in ``location``."""
        names: dict[str, str] = {}
        for level in LOCATION_LEVELS:
            node_id = location.get(level.id_field)
            node = self.get(level, node_id) if node_id else None
            names[level.value] = node.bn_name if node else ""
            names[f"{level.value}_en"] = node.name if node else ""
        return names
