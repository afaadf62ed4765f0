"""
Catalog snapshots.

A catalog is what the diff engine compares: one map from stable id to
record per object kind, plus the dependency rows read from pg_depend.
Snapshots are read from JSON documents shaped like::

    {
        "version": 170000,
        "current_user": "postgres",
        "schemas": [{"name": "public", "owner": "postgres"}],
        "tables": [...],
        "depends": [{"dependent_stable_id": "...", "referenced_stable_id": "...", "deptype": "n"}]
    }
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pg_delta_core.lib.errors import CatalogLoadError
from pg_delta_core.lib.model import Record
from pg_delta_core.lib.objects import OBJECT_TYPES


@dataclass(frozen=True)
class Depend(Record):
    """One pg_depend row translated to stable ids."""
    dependent_stable_id: str
    referenced_stable_id: str
    deptype: str = "n"


class Catalog:
    """
    Immutable snapshot of a database's schema.

    Every kind in OBJECT_TYPES is available as an attribute named after
    its snapshot key (``catalog.tables``, ``catalog.roles``, ...).
    """

    def __init__(self, version: Optional[int] = None, current_user: Optional[str] = None,
                 depends: Optional[List[Depend]] = None, **objects: Dict[str, Any]):
        self.version = version
        self.current_user = current_user
        self.depends = list(depends or [])
        for object_type in OBJECT_TYPES:
            setattr(self, object_type.attribute, dict(objects.pop(object_type.attribute, None) or {}))
        if objects:
            raise CatalogLoadError(f"Unknown object kinds: {', '.join(sorted(objects))}")

    @classmethod
    def empty(cls, version: Optional[int] = None, current_user: Optional[str] = None) -> "Catalog":
        return cls(version=version, current_user=current_user)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Catalog":
        """Build a catalog from a JSON-shaped snapshot."""
        if not isinstance(data, dict):
            raise CatalogLoadError("Catalog snapshot must be a JSON object")

        objects = {}
        for object_type in OBJECT_TYPES:
            rows = data.get(object_type.attribute) or []
            if isinstance(rows, dict):
                rows = list(rows.values())
            records = {}
            for row in rows:
                try:
                    record = object_type.model.from_dict(row)
                except (TypeError, ValueError, AttributeError) as e:
                    raise CatalogLoadError(f"Invalid {object_type.kind} row {row!r}: {e}") from e
                if record.stable_id in records:
                    raise CatalogLoadError(f"Duplicate {object_type.kind}: {record.stable_id}")
                records[record.stable_id] = record
            objects[object_type.attribute] = records
            logging.debug(f"Loaded {len(records)} {object_type.attribute}")

        depends = []
        for row in data.get("depends") or []:
            try:
                depends.append(Depend.from_dict(row))
            except (TypeError, ValueError, AttributeError) as e:
                raise CatalogLoadError(f"Invalid depends row {row!r}: {e}") from e

        version = data.get("version")
        if version is not None:
            try:
                version = int(version)
            except (TypeError, ValueError) as e:
                raise CatalogLoadError(f"Invalid server version: {version!r}") from e

        return cls(version=version, current_user=data.get("current_user"), depends=depends, **objects)

    def to_dict(self) -> Dict[str, Any]:
        data = {"version": self.version, "current_user": self.current_user}
        for object_type in OBJECT_TYPES:
            objects = getattr(self, object_type.attribute)
            data[object_type.attribute] = [objects[key].to_dict() for key in sorted(objects)]
        data["depends"] = [depend.to_dict() for depend in self.depends]
        return data

    def objects(self) -> Dict[str, Any]:
        """All records of all kinds keyed by stable id."""
        result = {}
        for object_type in OBJECT_TYPES:
            result.update(getattr(self, object_type.attribute))
        return result

    def __repr__(self) -> str:
        counts = ", ".join(
            f"{object_type.attribute}={len(getattr(self, object_type.attribute))}"
            for object_type in OBJECT_TYPES
            if getattr(self, object_type.attribute)
        )
        return f"Catalog(version={self.version}, {counts})"


def load_catalog(path: str) -> Catalog:
    """Read a catalog snapshot from a JSON file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise CatalogLoadError(f"Could not read catalog {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Catalog {path} is not valid JSON: {e}") from e
    return Catalog.from_dict(data)
