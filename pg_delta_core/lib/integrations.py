"""
Hooks applied to ordered changes before they are rendered.

A filter decides what happens to a change: True keeps it, False drops it
and a Change replaces it. A serializer may return the text to emit for a
change, or None to fall back to the change's own serialize().

Hooks dispatch on the change discriminants (object_type, operation,
scope, action) and never modify a change: replacements are new values.
"""

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Union

from pg_delta_core.lib.change import Change
from pg_delta_core.lib.context import DiffContext
from pg_delta_core.lib.utils import OptionChange, parse_option_pairs

ChangeFilter = Callable[[DiffContext, Change], Union[bool, Change]]
ChangeSerializer = Callable[[DiffContext, Change], Optional[str]]

OPTION_ACTIONS = (
    "alter_server_set_options",
    "alter_user_mapping_set_options",
)

_CONNINFO_PAIR = re.compile(r"(\w+)\s*=\s*('(?:[^'\\]|\\.)*'|\S+)")


@dataclass(frozen=True)
class EnvDependentConfig:
    """
    Attributes:
        server_option_keys: Server and user mapping options whose values differ
            between environments. None treats every option as environment
            dependent.
        ignore_subscription_connection: Drop ALTER SUBSCRIPTION ... CONNECTION
    """
    server_option_keys: Optional[FrozenSet[str]] = None
    ignore_subscription_connection: bool = True


@dataclass(frozen=True)
class MaskingConfig:
    """
    Attributes:
        mask_options: Mask server and user mapping option values
        mask_conninfo: Mask subscription connection strings
        warn_login_roles: Prefix CREATE ROLE ... LOGIN with a password reminder
    """
    mask_options: bool = True
    mask_conninfo: bool = True
    warn_login_roles: bool = True


def create_env_dependent_filter(config: Optional[EnvDependentConfig] = None) -> ChangeFilter:
    """
    Drop changes that only reflect differences between environments.

    Values of existing server and user mapping options (hosts, ports,
    credentials) are expected to differ between the databases being
    compared, so SET actions on them are removed. ADD and DROP actions are
    kept. A change left without actions is dropped.
    """
    config = config or EnvDependentConfig()

    def env_dependent(key: str) -> bool:
        return config.server_option_keys is None or key in config.server_option_keys

    def change_filter(ctx: DiffContext, change: Change) -> Union[bool, Change]:
        if change.action == "alter_subscription_set_connection":
            return not config.ignore_subscription_connection
        if change.action in OPTION_ACTIONS:
            kept = tuple(o for o in change.options if not (o.action == "SET" and env_dependent(o.option)))
            if len(kept) == len(change.options):
                return True
            if not kept:
                logging.debug(f"Dropping environment dependent change {change}")
                return False
            return dataclasses.replace(change, options=kept)
        return True

    return change_filter


def _placeholder(prefix: str, key: str) -> str:
    return f"__{prefix}_{key.upper()}__"


def mask_option_pairs(options) -> tuple:
    """Replace every value of a flat [key, value, ...] option list with a placeholder."""
    masked = []
    for key in parse_option_pairs(options):
        masked.extend([key, _placeholder("OPTION", key)])
    return tuple(masked)


def mask_conninfo(conninfo: str) -> str:
    """Replace every value of a libpq key=value connection string with a placeholder."""
    return _CONNINFO_PAIR.sub(lambda m: f"{m.group(1)}={_placeholder('CONN', m.group(1))}", conninfo)


def create_masking_serializer(config: Optional[MaskingConfig] = None) -> ChangeSerializer:
    """
    Render secrets as placeholders.

    The script stays valid SQL; each masked statement is preceded by a
    comment telling the operator which placeholders to fill in.
    """
    config = config or MaskingConfig()

    def warning(lines: List[str], sql: str) -> str:
        return "\n".join(f"-- WARNING: {line}" for line in lines) + "\n" + sql

    def serializer(ctx: DiffContext, change: Change) -> Optional[str]:
        action = change.action

        if config.mask_options and action in ("create_server", "create_user_mapping"):
            target = change.target
            if not target.options:
                return None
            masked = dataclasses.replace(change, target=target.replace(options=mask_option_pairs(target.options)))
            return warning(
                [f"{target.sql_kind} {target.sql_name} has masked options",
                 "replace the __OPTION_*__ placeholders before running this script"],
                masked.serialize(),
            )

        if config.mask_options and action in OPTION_ACTIONS:
            masked_options = tuple(
                OptionChange(o.action, o.option, _placeholder("OPTION", o.option) if o.action != "DROP" else None)
                for o in change.options
            )
            return warning(
                ["replace the __OPTION_*__ placeholders before running this script"],
                dataclasses.replace(change, options=masked_options).serialize(),
            )

        if config.mask_conninfo and action in ("create_subscription", "alter_subscription_set_connection"):
            target = change.target
            masked = dataclasses.replace(change, target=target.replace(conninfo=mask_conninfo(target.conninfo)))
            return warning(
                [f"subscription {target.name} has a masked connection string",
                 f"replace the __CONN_*__ placeholders or run ALTER SUBSCRIPTION {target.name} CONNECTION afterwards"],
                masked.serialize(),
            )

        if config.warn_login_roles and action == "create_role" and change.target.can_login:
            return warning(
                [f"role {change.target.name} can log in but has no password",
                 f"run ALTER ROLE {change.target.name} PASSWORD after this script"],
                change.serialize(),
            )

        return None

    return serializer


def apply_filter(ctx: DiffContext, changes: List[Change], change_filter: Optional[ChangeFilter]) -> List[Change]:
    """Run a filter over ordered changes, keeping their order."""
    if change_filter is None:
        return list(changes)
    result = []
    for change in changes:
        decision = change_filter(ctx, change)
        if decision is True:
            result.append(change)
        elif isinstance(decision, Change):
            result.append(decision)
    logging.debug(f"Filter kept {len(result)} of {len(changes)} changes")
    return result
