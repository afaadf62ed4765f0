"""
Per-kind object records and diff functions.

OBJECT_TYPES lists every kind in the order its changes are emitted and
pre-sorted: kinds that other kinds depend on come first.
"""

from dataclasses import dataclass
from typing import Callable, List

from pg_delta_core.lib.objects.aggregate import Aggregate, diff_aggregates
from pg_delta_core.lib.objects.collation import Collation, diff_collations
from pg_delta_core.lib.objects.composite_type import CompositeType, diff_composite_types
from pg_delta_core.lib.objects.domain import Domain, diff_domains
from pg_delta_core.lib.objects.enum_type import EnumType, diff_enums
from pg_delta_core.lib.objects.event_trigger import EventTrigger, diff_event_triggers
from pg_delta_core.lib.objects.extension import Extension, diff_extensions
from pg_delta_core.lib.objects.foreign_data_wrapper import ForeignDataWrapper, diff_foreign_data_wrappers
from pg_delta_core.lib.objects.foreign_table import ForeignTable, diff_foreign_tables
from pg_delta_core.lib.objects.index import Index, diff_indexes
from pg_delta_core.lib.objects.language import Language, diff_languages
from pg_delta_core.lib.objects.materialized_view import MaterializedView, diff_materialized_views
from pg_delta_core.lib.objects.procedure import Procedure, diff_procedures
from pg_delta_core.lib.objects.publication import Publication, diff_publications
from pg_delta_core.lib.objects.range_type import Range, diff_ranges
from pg_delta_core.lib.objects.rls_policy import RlsPolicy, diff_rls_policies
from pg_delta_core.lib.objects.role import Role, diff_roles
from pg_delta_core.lib.objects.rule import Rule, diff_rules
from pg_delta_core.lib.objects.schema import Schema, diff_schemas
from pg_delta_core.lib.objects.sequence import Sequence, diff_sequences
from pg_delta_core.lib.objects.server import Server, diff_servers
from pg_delta_core.lib.objects.subscription import Subscription, diff_subscriptions
from pg_delta_core.lib.objects.table import Table, diff_tables
from pg_delta_core.lib.objects.trigger import Trigger, diff_triggers
from pg_delta_core.lib.objects.user_mapping import UserMapping, diff_user_mappings
from pg_delta_core.lib.objects.view import View, diff_views


@dataclass(frozen=True)
class ObjectType:
    """
    Attributes:
        kind: Stable id prefix and change object_type
        attribute: Catalog attribute and snapshot key holding the objects
        model: Record class
        diff: Diff function (ctx, main, branch) -> changes
    """
    kind: str
    attribute: str
    model: type
    diff: Callable


OBJECT_TYPES: List[ObjectType] = [
    ObjectType("role", "roles", Role, diff_roles),
    ObjectType("schema", "schemas", Schema, diff_schemas),
    ObjectType("extension", "extensions", Extension, diff_extensions),
    ObjectType("language", "languages", Language, diff_languages),
    ObjectType("foreign_data_wrapper", "foreign_data_wrappers", ForeignDataWrapper, diff_foreign_data_wrappers),
    ObjectType("server", "servers", Server, diff_servers),
    ObjectType("user_mapping", "user_mappings", UserMapping, diff_user_mappings),
    ObjectType("collation", "collations", Collation, diff_collations),
    ObjectType("enum", "enums", EnumType, diff_enums),
    ObjectType("domain", "domains", Domain, diff_domains),
    ObjectType("composite_type", "composite_types", CompositeType, diff_composite_types),
    ObjectType("range", "ranges", Range, diff_ranges),
    ObjectType("procedure", "procedures", Procedure, diff_procedures),
    ObjectType("aggregate", "aggregates", Aggregate, diff_aggregates),
    ObjectType("sequence", "sequences", Sequence, diff_sequences),
    ObjectType("table", "tables", Table, diff_tables),
    ObjectType("foreign_table", "foreign_tables", ForeignTable, diff_foreign_tables),
    ObjectType("view", "views", View, diff_views),
    ObjectType("materialized_view", "materialized_views", MaterializedView, diff_materialized_views),
    ObjectType("index", "indexes", Index, diff_indexes),
    ObjectType("trigger", "triggers", Trigger, diff_triggers),
    ObjectType("rule", "rules", Rule, diff_rules),
    ObjectType("rls_policy", "rls_policies", RlsPolicy, diff_rls_policies),
    ObjectType("event_trigger", "event_triggers", EventTrigger, diff_event_triggers),
    ObjectType("publication", "publications", Publication, diff_publications),
    ObjectType("subscription", "subscriptions", Subscription, diff_subscriptions),
]

OBJECT_TYPE_ORDER = {object_type.kind: position for position, object_type in enumerate(OBJECT_TYPES)}

__all__ = [
    "OBJECT_TYPES",
    "OBJECT_TYPE_ORDER",
    "ObjectType",
    "Aggregate",
    "Collation",
    "CompositeType",
    "Domain",
    "EnumType",
    "EventTrigger",
    "Extension",
    "ForeignDataWrapper",
    "ForeignTable",
    "Index",
    "Language",
    "MaterializedView",
    "Procedure",
    "Publication",
    "Range",
    "RlsPolicy",
    "Role",
    "Rule",
    "Schema",
    "Sequence",
    "Server",
    "Subscription",
    "Table",
    "Trigger",
    "UserMapping",
    "View",
]
