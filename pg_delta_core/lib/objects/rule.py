"""
Rewrite rules.

The ``_RETURN`` rules that implement views are part of the view and are
never diffed on their own.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject, Operation
from pg_delta_core.lib.change import comment_changes
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, sql_equal

RULE_STATES = {"O": "ENABLE", "D": "DISABLE", "R": "ENABLE REPLICA", "A": "ENABLE ALWAYS"}


@dataclass(frozen=True)
class Rule(PgModel):
    KIND: ClassVar[str] = "rule"
    SQL_KIND: ClassVar[str] = "RULE"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("schema", "table_name", "name")
    COMPARATORS: ClassVar[Dict[str, Callable[[Any, Any], bool]]] = {"definition": sql_equal}

    schema: str
    table_name: str
    name: str
    definition: str
    table_kind: str = "r"
    enabled: str = "O"
    comment: Optional[str] = None

    @property
    def stable_id(self) -> str:
        return stable_id.rule(self.schema, self.table_name, self.name)

    @property
    def relation_id(self) -> str:
        if self.table_kind == "v":
            return stable_id.view(self.schema, self.table_name)
        return stable_id.table(self.schema, self.table_name)

    @property
    def relation_name(self) -> str:
        return f"{self.schema}.{self.table_name}"

    @property
    def requires(self) -> List[str]:
        return [stable_id.schema(self.schema), self.relation_id]

    @property
    def sql_target(self) -> str:
        return f"RULE {self.name} ON {self.relation_name}"


def _or_replace(definition: str) -> str:
    body = definition.strip().rstrip(";")
    if body.upper().startswith("CREATE RULE"):
        return "CREATE OR REPLACE RULE" + body[len("CREATE RULE"):]
    return body


@dataclass(frozen=True)
class CreateRule(CreateObject):
    replace: bool = False

    @property
    def operation(self) -> Operation:
        return Operation.ALTER if self.replace else Operation.CREATE

    @property
    def creates(self) -> List[str]:
        return [] if self.replace else super().creates

    @property
    def requires(self) -> List[str]:
        if self.replace:
            return [self.target.stable_id] + self.target.requires
        return super().requires

    def serialize(self, options=None) -> str:
        if self.replace:
            return _or_replace(self.target.definition)
        return self.target.definition.strip().rstrip(";")


@dataclass(frozen=True)
class DropRule(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP RULE {self.target.name} ON {self.target.relation_name}"


@dataclass(frozen=True)
class AlterRuleSetEnabled(AlterObject):

    def serialize(self, options=None) -> str:
        rule = self.target
        return f"ALTER TABLE {rule.relation_name} {RULE_STATES[rule.enabled]} RULE {rule.name}"


def diff_rules(ctx, main: Dict[str, Rule], branch: Dict[str, Rule]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    for key in result.created:
        rule = branch[key]
        if rule.name == "_RETURN":
            continue
        changes.append(CreateRule(rule))
        if rule.enabled != "O":
            changes.append(AlterRuleSetEnabled(rule))
        changes.extend(comment_changes(None, rule))

    for key in result.dropped:
        rule = main[key]
        if rule.name == "_RETURN" or rule.relation_id not in (ctx.branch.tables.keys() | ctx.branch.views.keys()):
            continue
        changes.append(DropRule(rule))

    for key in result.altered:
        old, new = main[key], branch[key]
        if new.name == "_RETURN":
            continue
        if not sql_equal(old.definition, new.definition):
            changes.append(CreateRule(new, replace=True))
        if old.enabled != new.enabled:
            changes.append(AlterRuleSetEnabled(new))
        changes.extend(comment_changes(old, new))

    return changes
