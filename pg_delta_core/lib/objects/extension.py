"""
Extensions.

Extensions are owned by whoever creates them and cannot change owner, so
the owner is kept on the record but not compared.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject, comment_changes
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, quote_literal


@dataclass(frozen=True)
class Extension(PgModel):
    KIND: ClassVar[str] = "extension"
    SQL_KIND: ClassVar[str] = "EXTENSION"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)
    IGNORED: ClassVar[Tuple[str, ...]] = ("owner",)

    name: str
    schema: str
    version: Optional[str] = None
    relocatable: bool = False
    owner: Optional[str] = None
    comment: Optional[str] = None

    @property
    def sql_name(self) -> str:
        return self.name

    @property
    def requires(self) -> List[str]:
        return [stable_id.schema(self.schema)]


@dataclass(frozen=True)
class CreateExtension(CreateObject):

    def serialize(self, options=None) -> str:
        sql = f"CREATE EXTENSION {self.target.name} WITH SCHEMA {self.target.schema}"
        if self.target.version:
            sql += f" VERSION {quote_literal(self.target.version)}"
        return sql


@dataclass(frozen=True)
class DropExtension(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP EXTENSION {self.target.name}"


@dataclass(frozen=True)
class AlterExtensionUpdateVersion(AlterObject):
    version: str

    def serialize(self, options=None) -> str:
        return f"ALTER EXTENSION {self.target.name} UPDATE TO {quote_literal(self.version)}"


@dataclass(frozen=True)
class AlterExtensionSetSchema(AlterObject):
    schema: str

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id, stable_id.schema(self.schema)]

    def serialize(self, options=None) -> str:
        return f"ALTER EXTENSION {self.target.name} SET SCHEMA {self.schema}"


def diff_extensions(ctx, main: Dict[str, Extension], branch: Dict[str, Extension]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        extension = branch[key]
        changes.append(CreateExtension(extension))
        changes.extend(comment_changes(None, extension))

    for key in result.dropped:
        changes.append(DropExtension(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        # only relocatable extensions can move to another schema
        if old.schema != new.schema and not old.relocatable:
            changes.append(DropExtension(old))
            changes.append(CreateExtension(new))
            changes.extend(comment_changes(None, new))
            continue
        if old.version != new.version and new.version:
            changes.append(AlterExtensionUpdateVersion(new, new.version))
        if old.schema != new.schema:
            changes.append(AlterExtensionSetSchema(new, new.schema))
        changes.extend(comment_changes(old, new))

    return changes
