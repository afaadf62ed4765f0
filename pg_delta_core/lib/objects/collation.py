"""
Collations.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, quote_literal

PROVIDERS = {"c": "libc", "i": "icu", "b": "builtin", "d": "default"}

NON_ALTERABLE_FIELDS = ("provider", "is_deterministic", "encoding", "collate", "ctype", "locale", "icu_rules")


@dataclass(frozen=True)
class Collation(PgModel):
    KIND: ClassVar[str] = "collation"
    SQL_KIND: ClassVar[str] = "COLLATION"

    schema: str
    name: str
    owner: str
    provider: str = "c"
    is_deterministic: bool = True
    encoding: Optional[int] = None
    collate: Optional[str] = None
    ctype: Optional[str] = None
    locale: Optional[str] = None
    icu_rules: Optional[str] = None
    version: Optional[str] = None
    comment: Optional[str] = None


@dataclass(frozen=True)
class CreateCollation(CreateObject):

    def serialize(self, options=None) -> str:
        collation = self.target
        props = [f"provider = {PROVIDERS.get(collation.provider, collation.provider)}"]
        if collation.locale:
            props.append(f"locale = {quote_literal(collation.locale)}")
        else:
            if collation.collate:
                props.append(f"lc_collate = {quote_literal(collation.collate)}")
            if collation.ctype:
                props.append(f"lc_ctype = {quote_literal(collation.ctype)}")
        if not collation.is_deterministic:
            props.append("deterministic = false")
        if collation.icu_rules:
            props.append(f"rules = {quote_literal(collation.icu_rules)}")
        if collation.version:
            props.append(f"version = {quote_literal(collation.version)}")
        return f"CREATE COLLATION {collation.sql_name} ({', '.join(props)})"


@dataclass(frozen=True)
class DropCollation(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP COLLATION {self.target.sql_name}"


@dataclass(frozen=True)
class AlterCollationRefreshVersion(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER COLLATION {self.target.sql_name} REFRESH VERSION"


def diff_collations(ctx, main: Dict[str, Collation], branch: Dict[str, Collation]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(collation):
        changes.append(CreateCollation(collation))
        changes.extend(owner_change_on_create(collation, ctx.current_user))
        changes.extend(comment_changes(None, collation))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropCollation(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropCollation(old))
            create(new)
            continue
        if old.version != new.version:
            changes.append(AlterCollationRefreshVersion(new))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))

    return changes
