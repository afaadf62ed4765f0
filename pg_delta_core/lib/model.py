"""
Immutable object records for catalog snapshots.

Every database object is a frozen dataclass split into identity fields
(what object this is, used to build the stable id) and data fields (its
current state, compared to detect alterations).
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.utils import deep_equal


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


@dataclass(frozen=True)
class Record:
    """
    Base for immutable snapshot rows.

    Lists are converted to tuples on construction. Nested record types are
    declared in NESTED so that from_dict can build them from plain dicts.
    """
    NESTED: ClassVar[Dict[str, type]] = {}

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, list):
                object.__setattr__(self, f.name, _freeze(value))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            nested = cls.NESTED.get(f.name)
            if nested is not None and value is not None:
                value = [nested.from_dict(item) if isinstance(item, dict) else item for item in value]
            kwargs[f.name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, tuple):
                value = [item.to_dict() if isinstance(item, Record) else item for item in value]
            elif isinstance(value, Record):
                value = value.to_dict()
            result[f.name] = value
        return result

    def replace(self, **changes):
        """Return a copy of this record with some fields replaced."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data.update(changes)
        return type(self)(**data)


@dataclass(frozen=True)
class Privilege(Record):
    """One ACL entry: a privilege held by a grantee, optionally on columns."""
    grantee: str
    privilege: str
    grantable: bool = False
    columns: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class PgModel(Record):
    """
    Base for database object records.

    Subclasses declare:
        KIND: stable id prefix and object type discriminant
        SQL_KIND: keyword used in COMMENT ON / ALTER ... OWNER TO statements
        IDENTITY: names of the identity fields
        IGNORED: fields kept on the record but excluded from comparison
        COMPARATORS: per-field equality functions used instead of deep equality
        GRANT_KIND: keyword after ON in GRANT / REVOKE (None when not grantable)
    """
    KIND: ClassVar[str] = ""
    SQL_KIND: ClassVar[str] = ""
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "name")
    IGNORED: ClassVar[Tuple[str, ...]] = ()
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {}
    GRANT_KIND: ClassVar[Optional[str]] = None

    @property
    def stable_id(self) -> str:
        return f"{self.KIND}:" + ".".join(str(getattr(self, name)) for name in self.IDENTITY)

    @property
    def identity_fields(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.IDENTITY}

    @property
    def data_fields(self) -> Dict[str, Any]:
        skip = set(self.IDENTITY) | set(self.IGNORED)
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in skip}

    @property
    def sql_name(self) -> str:
        """The object's name as written in DDL."""
        if "schema" in self.IDENTITY:
            return f"{getattr(self, 'schema')}.{getattr(self, 'name')}"
        return getattr(self, "name")

    @property
    def sql_kind(self) -> str:
        """Keyword naming the object kind in COMMENT ON, ALTER ... OWNER TO and DROP."""
        return self.SQL_KIND

    @property
    def sql_target(self) -> str:
        """Object reference used by COMMENT ON."""
        return f"{self.sql_kind} {self.sql_name}"

    @property
    def grant_target(self) -> str:
        return f"{self.GRANT_KIND or self.sql_kind} {self.sql_name}"

    @property
    def schema_name(self) -> Optional[str]:
        return getattr(self, "schema", None)

    @property
    def requires(self) -> List[str]:
        """Stable ids of the objects this object cannot exist without."""
        result = []
        if self.schema_name:
            result.append(stable_id.schema(self.schema_name))
        owner = getattr(self, "owner", None)
        if owner:
            result.append(stable_id.role(owner))
        return result

    @property
    def sub_ids(self) -> List[str]:
        """Stable ids of sub-objects created and dropped together with this object."""
        return []

    def data_equal(self, other: "PgModel") -> bool:
        mine = self.data_fields
        theirs = other.data_fields
        for name, value in mine.items():
            equals = self.COMPARATORS.get(name, deep_equal)
            if not equals(value, theirs.get(name)):
                return False
        return True

    def __str__(self) -> str:
        return self.stable_id
