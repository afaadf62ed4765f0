"""
Logical replication subscriptions.

The connection string is emitted as stored in the catalog; the masking
serializer in ``integrations`` redacts passwords when asked to.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import AlterObject, Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes, quote_literal

NON_ALTERABLE_FIELDS = ("two_phase",)

# Options that ALTER SUBSCRIPTION ... SET accepts
SETTABLE_OPTIONS = (
    "slot_name",
    "binary",
    "streaming",
    "synchronous_commit",
    "disable_on_error",
    "password_required",
    "run_as_owner",
    "origin",
    "failover",
)


def _option_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return quote_literal(str(value))


@dataclass(frozen=True)
class Subscription(PgModel):
    KIND: ClassVar[str] = "subscription"
    SQL_KIND: ClassVar[str] = "SUBSCRIPTION"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)

    name: str
    owner: str
    conninfo: str
    publications: Tuple[str, ...] = ()
    enabled: bool = True
    binary: bool = False
    streaming: str = "off"
    two_phase: bool = False
    disable_on_error: bool = False
    password_required: bool = True
    run_as_owner: bool = False
    failover: bool = False
    slot_name: Optional[str] = None
    slot_is_none: bool = False
    synchronous_commit: str = "off"
    origin: str = "any"
    comment: Optional[str] = None

    def option_value(self, option: str) -> str:
        if option == "slot_name":
            return "NONE" if self.slot_is_none else quote_literal(self.slot_name or self.name)
        return _option_value(getattr(self, option))

    def changed_options(self, other: "Subscription") -> Tuple[str, ...]:
        changed = []
        for option in SETTABLE_OPTIONS:
            if option == "slot_name":
                if (self.slot_name, self.slot_is_none) != (other.slot_name, other.slot_is_none):
                    changed.append(option)
            elif getattr(self, option) != getattr(other, option):
                changed.append(option)
        return tuple(changed)


@dataclass(frozen=True)
class CreateSubscription(CreateObject):
    """
    CREATE SUBSCRIPTION without connecting.

    The script never creates replication slots on the publisher; the
    subscription is created disabled and enabled afterwards when needed.
    """

    def serialize(self, options=None) -> str:
        subscription = self.target
        params = [f"{option} = {subscription.option_value(option)}" for option in SETTABLE_OPTIONS
                  if option != "slot_name"]
        params.append(f"two_phase = {_option_value(subscription.two_phase)}")
        params.append(f"slot_name = {subscription.option_value('slot_name')}")
        params.append("create_slot = false")
        params.append("connect = false")
        params.append("enabled = false")
        return (
            f"CREATE SUBSCRIPTION {subscription.name} CONNECTION {quote_literal(subscription.conninfo)} "
            f"PUBLICATION {', '.join(subscription.publications)} WITH ({', '.join(params)})"
        )


@dataclass(frozen=True)
class DropSubscription(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP SUBSCRIPTION {self.target.name}"


@dataclass(frozen=True)
class AlterSubscriptionSetConnection(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER SUBSCRIPTION {self.target.name} CONNECTION {quote_literal(self.target.conninfo)}"


@dataclass(frozen=True)
class AlterSubscriptionSetPublication(AlterObject):

    def serialize(self, options=None) -> str:
        return (
            f"ALTER SUBSCRIPTION {self.target.name} SET PUBLICATION "
            f"{', '.join(self.target.publications)} WITH (refresh = false)"
        )


@dataclass(frozen=True)
class AlterSubscriptionEnable(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER SUBSCRIPTION {self.target.name} ENABLE"


@dataclass(frozen=True)
class AlterSubscriptionDisable(AlterObject):

    def serialize(self, options=None) -> str:
        return f"ALTER SUBSCRIPTION {self.target.name} DISABLE"


@dataclass(frozen=True)
class AlterSubscriptionSetOptions(AlterObject):
    options: Tuple[str, ...]

    def serialize(self, options=None) -> str:
        params = ", ".join(f"{option} = {self.target.option_value(option)}" for option in self.options)
        return f"ALTER SUBSCRIPTION {self.target.name} SET ({params})"


def diff_subscriptions(ctx, main: Dict[str, Subscription], branch: Dict[str, Subscription]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(subscription):
        changes.append(CreateSubscription(subscription))
        if subscription.enabled:
            changes.append(AlterSubscriptionEnable(subscription))
        changes.extend(owner_change_on_create(subscription, ctx.current_user))
        changes.extend(comment_changes(None, subscription))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropSubscription(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropSubscription(old))
            create(new)
            continue
        if old.conninfo != new.conninfo:
            changes.append(AlterSubscriptionSetConnection(new))
        if tuple(old.publications) != tuple(new.publications):
            changes.append(AlterSubscriptionSetPublication(new))
        if old.enabled != new.enabled:
            changes.append(AlterSubscriptionEnable(new) if new.enabled else AlterSubscriptionDisable(new))
        changed = old.changed_options(new)
        if changed:
            changes.append(AlterSubscriptionSetOptions(new, changed))
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))

    return changes
