"""
Sequences.

``OWNED BY`` is emitted as a separate change after creation so that the
owning column exists by the time it runs.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes

NON_ALTERABLE_FIELDS = ("data_type", "persistence")

# (field, SQL clause) in the order they appear in CREATE / ALTER SEQUENCE
OPTION_FIELDS = (
    ("increment", "INCREMENT BY"),
    ("minimum_value", "MINVALUE"),
    ("maximum_value", "MAXVALUE"),
    ("start_value", "START WITH"),
    ("cache_size", "CACHE"),
)


@dataclass(frozen=True)
class Sequence(PgModel):
    KIND: ClassVar[str] = "sequence"
    SQL_KIND: ClassVar[str] = "SEQUENCE"
    GRANT_KIND: ClassVar[str] = "SEQUENCE"
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}

    schema: str
    name: str
    owner: str
    data_type: str = "bigint"
    start_value: int = 1
    minimum_value: int = 1
    maximum_value: int = 9223372036854775807
    increment: int = 1
    cycle_option: bool = False
    cache_size: int = 1
    persistence: str = "p"
    owned_by_schema: Optional[str] = None
    owned_by_table: Optional[str] = None
    owned_by_column: Optional[str] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()

    @property
    def owned_by(self) -> Optional[str]:
        if self.owned_by_schema and self.owned_by_table and self.owned_by_column:
            return f"{self.owned_by_schema}.{self.owned_by_table}.{self.owned_by_column}"
        return None

    @property
    def owned_by_ids(self) -> List[str]:
        """Stable ids of the owning table and column."""
        if not self.owned_by:
            return []
        return [
            stable_id.table(self.owned_by_schema, self.owned_by_table),
            stable_id.column(self.owned_by_schema, self.owned_by_table, self.owned_by_column),
        ]

    def option_clauses(self, fields=None) -> List[str]:
        clauses = []
        for field_name, clause in OPTION_FIELDS:
            if fields is None or field_name in fields:
                clauses.append(f"{clause} {getattr(self, field_name)}")
        if fields is None or "cycle_option" in fields:
            clauses.append("CYCLE" if self.cycle_option else "NO CYCLE")
        return clauses


@dataclass(frozen=True)
class CreateSequence(CreateObject):

    def serialize(self, options=None) -> str:
        sequence = self.target
        head = "CREATE UNLOGGED SEQUENCE" if sequence.persistence == "u" else "CREATE SEQUENCE"
        return " ".join([head, sequence.sql_name, "AS", sequence.data_type] + sequence.option_clauses())


@dataclass(frozen=True)
class DropSequence(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP SEQUENCE {self.target.sql_name}"


@dataclass(frozen=True)
class AlterSequenceSetOptions(AlterObject):
    fields: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        return " ".join([f"ALTER SEQUENCE {self.target.sql_name}"] + self.target.option_clauses(self.fields))


@dataclass(frozen=True)
class AlterSequenceSetOwnedBy(AlterObject):
    """ALTER SEQUENCE ... OWNED BY table.column | NONE."""

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id] + self.target.owned_by_ids

    def serialize(self, options=None) -> str:
        return f"ALTER SEQUENCE {self.target.sql_name} OWNED BY {self.target.owned_by or 'NONE'}"


def _dropped_with_owner(ctx, sequence: Sequence) -> bool:
    """A sequence owned by a column disappears with the column or its table."""
    if not sequence.owned_by:
        return False
    table = ctx.branch.tables.get(stable_id.table(sequence.owned_by_schema, sequence.owned_by_table))
    if table is None:
        return True
    return sequence.owned_by_column not in {column.name for column in table.columns}


def diff_sequences(ctx, main: Dict[str, Sequence], branch: Dict[str, Sequence]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(sequence):
        changes.append(CreateSequence(sequence))
        if sequence.owned_by:
            changes.append(AlterSequenceSetOwnedBy(sequence))
        changes.extend(owner_change_on_create(sequence, ctx.current_user))
        changes.extend(comment_changes(None, sequence))
        changes.extend(privileges_on_create(ctx, sequence))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        sequence = main[key]
        if _dropped_with_owner(ctx, sequence):
            continue
        changes.append(DropSequence(sequence))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropSequence(old))
            create(new)
            continue
        changed = tuple(
            name for name in [f for f, _ in OPTION_FIELDS] + ["cycle_option"]
            if getattr(old, name) != getattr(new, name)
        )
        if changed:
            changes.append(AlterSequenceSetOptions(new, changed))
        if old.owned_by != new.owned_by:
            changes.append(AlterSequenceSetOwnedBy(new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
