"""
Domains and their CHECK constraints.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject, Operation
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege, Record
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, sql_equal

NON_ALTERABLE_FIELDS = ("base_type", "collation")


@dataclass(frozen=True)
class DomainConstraint(Record):
    name: str
    definition: str
    validated: bool = True


@dataclass(frozen=True)
class Domain(PgModel):
    KIND: ClassVar[str] = "domain"
    SQL_KIND: ClassVar[str] = "DOMAIN"
    GRANT_KIND: ClassVar[str] = "DOMAIN"
    NESTED: ClassVar[Dict[str, type]] = {"constraints": DomainConstraint, "privileges": Privilege}
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"default": sql_equal}

    schema: str
    name: str
    base_type: str
    owner: str
    not_null: bool = False
    default: Optional[str] = None
    collation: Optional[str] = None
    comment: Optional[str] = None
    constraints: Tuple[DomainConstraint, ...] = ()
    privileges: Tuple[Privilege, ...] = ()

    def constraint_id(self, name: str) -> str:
        return stable_id.constraint(self.schema, self.name, name)


@dataclass(frozen=True)
class CreateDomain(CreateObject):

    def serialize(self, options=None) -> str:
        domain = self.target
        sql = f"CREATE DOMAIN {domain.sql_name} AS {domain.base_type}"
        if domain.collation:
            sql += f" COLLATE {domain.collation}"
        if domain.default is not None:
            sql += f" DEFAULT {domain.default}"
        if domain.not_null:
            sql += " NOT NULL"
        return sql


@dataclass(frozen=True)
class DropDomain(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP DOMAIN {self.target.sql_name}"


@dataclass(frozen=True)
class AlterDomainSetDefault(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER DOMAIN {self.target.sql_name} SET DEFAULT {self.target.default}"


@dataclass(frozen=True)
class AlterDomainDropDefault(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER DOMAIN {self.target.sql_name} DROP DEFAULT"


@dataclass(frozen=True)
class AlterDomainSetNotNull(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER DOMAIN {self.target.sql_name} SET NOT NULL"


@dataclass(frozen=True)
class AlterDomainDropNotNull(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER DOMAIN {self.target.sql_name} DROP NOT NULL"


@dataclass(frozen=True)
class AlterDomainAddConstraint(AlterObject):
    constraint: DomainConstraint

    @property
    def creates(self) -> List[str]:
        return [self.target.constraint_id(self.constraint.name)]

    def serialize(self, options=None) -> str:
        sql = f"ALTER DOMAIN {self.target.sql_name} ADD CONSTRAINT {self.constraint.name} {self.constraint.definition}"
        if not self.constraint.validated:
            sql += " NOT VALID"
        return sql


@dataclass(frozen=True)
class AlterDomainDropConstraint(AlterObject):
    constraint: DomainConstraint

    @property
    def drops(self) -> List[str]:
        return [self.target.constraint_id(self.constraint.name)]

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id, self.target.constraint_id(self.constraint.name)]

    def serialize(self, options=None) -> str:
        return f"ALTER DOMAIN {self.target.sql_name} DROP CONSTRAINT {self.constraint.name}"


@dataclass(frozen=True)
class AlterDomainValidateConstraint(AlterObject):
    constraint: DomainConstraint

    @property
    def requires(self) -> List[str]:
        return [self.target.stable_id, self.target.constraint_id(self.constraint.name)]

    def serialize(self, options=None) -> str:
        return f"ALTER DOMAIN {self.target.sql_name} VALIDATE CONSTRAINT {self.constraint.name}"


def _constraint_changes(old: Optional[Domain], new: Domain) -> List[Change]:
    changes = []
    before = {c.name: c for c in (old.constraints if old else ())}
    after = {c.name: c for c in new.constraints}

    for name in sorted(before):
        if name not in after:
            changes.append(AlterDomainDropConstraint(old, before[name]))

    for name in sorted(after):
        constraint = after[name]
        if name not in before:
            changes.append(AlterDomainAddConstraint(new, constraint))
            continue
        previous = before[name]
        if not sql_equal(previous.definition, constraint.definition) or (previous.validated and not constraint.validated):
            changes.append(AlterDomainDropConstraint(old, previous))
            changes.append(AlterDomainAddConstraint(new, constraint))
        elif constraint.validated and not previous.validated:
            changes.append(AlterDomainValidateConstraint(new, constraint))
    return changes


def diff_domains(ctx, main: Dict[str, Domain], branch: Dict[str, Domain]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(domain):
        changes.append(CreateDomain(domain))
        changes.extend(_constraint_changes(None, domain))
        changes.extend(owner_change_on_create(domain, ctx.current_user))
        changes.extend(comment_changes(None, domain))
        changes.extend(privileges_on_create(ctx, domain))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropDomain(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropDomain(old))
            create(new)
            continue
        if not sql_equal(old.default, new.default):
            if new.default is None:
                changes.append(AlterDomainDropDefault(new))
            else:
                changes.append(AlterDomainSetDefault(new))
        if old.not_null != new.not_null:
            changes.append(AlterDomainSetNotNull(new) if new.not_null else AlterDomainDropNotNull(new))
        changes.extend(_constraint_changes(old, new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
