"""
Change hierarchy: one immutable value per DDL statement.

Each change carries a discriminant (object_type, operation, scope, action)
and declares the stable ids it creates, drops and requires. The ordering
engine only looks at those three lists; serialize() renders the statement.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import quote_literal


class Operation(Enum):
    """What a change does to the object it targets."""
    CREATE = "create"
    ALTER = "alter"
    DROP = "drop"


class Scope(Enum):
    """Which aspect of the object a change touches."""
    OBJECT = "object"
    COMMENT = "comment"
    PRIVILEGE = "privilege"
    MEMBERSHIP = "membership"
    DEFAULT_PRIVILEGE = "default_privilege"


def _snake_case(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


@dataclass(frozen=True)
class Change:
    """
    Base for all changes.

    Subclasses set OPERATION, SCOPE and OBJECT_TYPE (or override the
    object_type property when the kind comes from the target record) and
    derive creates / drops / requires from their constructor arguments.
    """
    OPERATION: ClassVar[Operation] = Operation.ALTER
    SCOPE: ClassVar[Scope] = Scope.OBJECT
    OBJECT_TYPE: ClassVar[str] = ""

    @property
    def operation(self) -> Operation:
        return self.OPERATION

    @property
    def scope(self) -> Scope:
        return self.SCOPE

    @property
    def object_type(self) -> str:
        return self.OBJECT_TYPE

    @property
    def action(self) -> str:
        """Discriminant naming the concrete statement, e.g. ``alter_server_set_options``."""
        return _snake_case(type(self).__name__)

    @property
    def creates(self) -> List[str]:
        return []

    @property
    def drops(self) -> List[str]:
        return []

    @property
    def requires(self) -> List[str]:
        return []

    def serialize(self, options: Optional[Any] = None) -> str:
        raise NotImplementedError(f"{type(self).__name__} does not implement serialize()")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_type": self.object_type,
            "operation": self.operation.value,
            "scope": self.scope.value,
            "action": self.action,
            "creates": self.creates,
            "drops": self.drops,
            "requires": self.requires,
            "sql": self.serialize(),
        }

    def __str__(self) -> str:
        ids = self.creates or self.drops or self.requires[:1]
        return f"{type(self).__name__}({', '.join(ids)})"


@dataclass(frozen=True)
class TargetedChange(Change):
    """A change whose object type is taken from the record it targets."""
    target: PgModel

    @property
    def object_type(self) -> str:
        return self.target.KIND


@dataclass(frozen=True)
class CreateComment(TargetedChange):
    """COMMENT ON <object> IS '...'."""
    OPERATION: ClassVar[Operation] = Operation.CREATE
    SCOPE: ClassVar[Scope] = Scope.COMMENT

    @property
    def creates(self) -> List[str]:
        return [stable_id.comment(self.target.stable_id)]

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id]

    def serialize(self, options=None) -> str:
        comment = getattr(self.target, "comment")
        return f"COMMENT ON {self.target.sql_target} IS {quote_literal(comment)}"


@dataclass(frozen=True)
class DropComment(TargetedChange):
    """COMMENT ON <object> IS NULL."""
    OPERATION: ClassVar[Operation] = Operation.DROP
    SCOPE: ClassVar[Scope] = Scope.COMMENT

    @property
    def drops(self) -> List[str]:
        return [stable_id.comment(self.target.stable_id)]

    @property
    def requires(self) -> List[str]:
        return [stable_id.comment(self.target.stable_id), self.target.stable_id]

    def serialize(self, options=None) -> str:
        return f"COMMENT ON {self.target.sql_target} IS NULL"


@dataclass(frozen=True)
class ChangeOwner(TargetedChange):
    """ALTER <kind> <object> OWNER TO <role>."""
    owner: str

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id, stable_id.role(self.owner)]

    def serialize(self, options=None) -> str:
        return f"ALTER {self.target.sql_kind} {self.target.sql_name} OWNER TO {self.owner}"


def comment_changes(main: Optional[PgModel], branch: PgModel) -> List[Change]:
    """
    Emit the comment change needed to go from main's comment to branch's.

    main is None for created objects.
    """
    old = getattr(main, "comment", None) if main is not None else None
    new = getattr(branch, "comment", None)
    if old == new:
        return []
    if new is None:
        return [DropComment(main)]
    return [CreateComment(branch)]


def owner_change_on_create(record: PgModel, current_user: Optional[str]) -> List[Change]:
    """Objects are created owned by the connected user; fix ownership when it differs."""
    owner = getattr(record, "owner", None)
    if owner and current_user and owner != current_user:
        return [ChangeOwner(record, owner)]
    return []


def owner_change_on_alter(main: PgModel, branch: PgModel) -> List[Change]:
    if getattr(main, "owner", None) != getattr(branch, "owner", None):
        return [ChangeOwner(branch, getattr(branch, "owner"))]
    return []


@dataclass(frozen=True)
class CreateObject(TargetedChange):
    """
    Base for CREATE statements.

    Creates the target's stable id plus any sub-object ids it brings along
    (columns of a table, for instance) and requires what the target requires.
    """
    OPERATION: ClassVar[Operation] = Operation.CREATE

    @property
    def creates(self) -> List[str]:
        return [self.target.stable_id] + self.target.sub_ids

    @property
    def requires(self) -> List[str]:
        return self.target.requires


@dataclass(frozen=True)
class DropObject(TargetedChange):
    """Base for DROP statements."""
    OPERATION: ClassVar[Operation] = Operation.DROP

    @property
    def drops(self) -> List[str]:
        return [self.target.stable_id] + self.target.sub_ids

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + self.target.requires


@dataclass(frozen=True)
class AlterObject(TargetedChange):
    """Base for ALTER statements that only touch the target itself."""
    OPERATION: ClassVar[Operation] = Operation.ALTER

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id]
