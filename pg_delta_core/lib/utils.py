"""
Comparison and option helpers shared by the per-kind diff functions.
"""

import re
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pglast import prettify
from pglast.parser import ParseError


def canonical(value: Any) -> Any:
    """Convert records, tuples and dicts into plain comparable structures."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: canonical(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [canonical(item) for item in value]
    if isinstance(value, dict):
        return {key: canonical(value[key]) for key in sorted(value)}
    return value


def deep_equal(a: Any, b: Any) -> bool:
    return canonical(a) == canonical(b)


def unordered_equal(a: Optional[Iterable[Any]], b: Optional[Iterable[Any]]) -> bool:
    """Compare two option lists ignoring order; None equals an empty list."""
    return sorted(canonical(list(a or [])), key=repr) == sorted(canonical(list(b or [])), key=repr)


def has_non_alterable_changes(
    main: Any,
    branch: Any,
    keys: Sequence[str],
    comparators: Optional[Mapping[str, Callable[[Any, Any], bool]]] = None,
) -> bool:
    """Return True if any of the given fields differs between main and branch."""
    comparators = comparators or {}
    for key in keys:
        equals = comparators.get(key, deep_equal)
        if not equals(getattr(main, key), getattr(branch, key)):
            return True
    return False


@dataclass
class DiffResult:
    """Stable ids partitioned by what happened to them between main and branch."""
    created: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    altered: List[str] = field(default_factory=list)


def diff_objects(main: Mapping[str, Any], branch: Mapping[str, Any]) -> DiffResult:
    """
    Partition two stable-id maps into created, dropped and altered ids.

    Ids are returned sorted so that diff output never depends on map
    iteration order.
    """
    result = DiffResult()
    for key in sorted(set(branch) - set(main)):
        result.created.append(key)
    for key in sorted(set(main) - set(branch)):
        result.dropped.append(key)
    for key in sorted(set(main) & set(branch)):
        if not main[key].data_equal(branch[key]):
            result.altered.append(key)
    return result


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def parse_key_value_options(options: Optional[Iterable[str]]) -> Dict[str, str]:
    """Parse ``["fillfactor=70", "autovacuum_enabled=false"]`` into a dict."""
    result = {}
    for option in options or []:
        key, sep, value = option.partition("=")
        if not sep:
            continue
        result[key.strip()] = value.strip()
    return result


def parse_option_pairs(options: Optional[Sequence[str]]) -> Dict[str, str]:
    """Parse a flat ``[key1, value1, key2, value2, ...]`` list into a dict."""
    result = {}
    if not options:
        return result
    for i in range(0, len(options) - 1, 2):
        result[options[i]] = options[i + 1]
    return result


def option_pairs_equal(a: Optional[Sequence[str]], b: Optional[Sequence[str]]) -> bool:
    """Compare two flat option lists as key to value maps, ignoring order."""
    return parse_option_pairs(a) == parse_option_pairs(b)


@dataclass(frozen=True)
class OptionChange:
    """One ADD / SET / DROP action of an ``OPTIONS (...)`` clause."""
    action: str
    option: str
    value: Optional[str] = None

    def to_sql(self) -> str:
        if self.action == "DROP":
            return f"DROP {self.option}"
        return f"{self.action} {self.option} {quote_literal(self.value or '')}"


def diff_option_pairs(main: Optional[Sequence[str]], branch: Optional[Sequence[str]]) -> List[OptionChange]:
    """
    Diff two flat option lists into ADD (only in branch), SET (value changed)
    and DROP (only in main) actions, in branch order then main order.
    """
    main_map = parse_option_pairs(main)
    branch_map = parse_option_pairs(branch)
    changes = []
    for key, value in branch_map.items():
        if key not in main_map:
            changes.append(OptionChange("ADD", key, value))
        elif main_map[key] != value:
            changes.append(OptionChange("SET", key, value))
    for key in main_map:
        if key not in branch_map:
            changes.append(OptionChange("DROP", key))
    return changes


def format_option_pairs(options: Optional[Sequence[str]]) -> str:
    """Render a flat option list as ``key 'value', ...`` for CREATE statements."""
    return ", ".join(f"{key} {quote_literal(value)}" for key, value in parse_option_pairs(options).items())


def diff_storage_params(
    main: Optional[Iterable[str]], branch: Optional[Iterable[str]]
) -> Tuple[Dict[str, str], List[str]]:
    """
    Compute the minimal storage parameter delta.

    Returns:
        (to_set, to_reset): keys whose value is new or changed in branch, and
        keys present in main but absent from branch
    """
    main_map = parse_key_value_options(main)
    branch_map = parse_key_value_options(branch)
    to_set = {key: value for key, value in branch_map.items() if main_map.get(key) != value}
    to_reset = [key for key in main_map if key not in branch_map]
    return to_set, to_reset


def _normalize_whitespace(sql: str) -> str:
    sql = re.sub(r'--.*$', '', sql, flags=re.MULTILINE)
    sql = re.sub(r'/\*.*?\*/', '', sql, flags=re.DOTALL)
    sql = re.sub(r'\s+', ' ', sql)
    sql = re.sub(r'\s*([,()])\s*', r'\1', sql)
    return sql.strip().rstrip(';').strip()


def normalize_sql(sql: Optional[str]) -> Optional[str]:
    """
    Normalize SQL text so that layout-only differences compare equal.

    The text is re-rendered through pglast when it parses; fragments that
    are not complete statements fall back to whitespace normalization.
    """
    if sql is None:
        return None
    try:
        rendered = prettify(sql)
    except (ParseError, NotImplementedError):
        return _normalize_whitespace(sql)
    return _normalize_whitespace(rendered)


def normalize_index_definition(definition: Optional[str]) -> Optional[str]:
    """Drop the default ``USING btree`` clause before comparing index definitions."""
    if definition is None:
        return None
    definition = re.sub(r'\s+USING\s+btree\b', '', definition, flags=re.IGNORECASE)
    return normalize_sql(definition)


def sql_equal(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_sql(a) == normalize_sql(b)


def index_definition_equal(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_index_definition(a) == normalize_index_definition(b)


# Settings whose value is a comma separated list of identifiers
LIST_SETTINGS = ("search_path", "temp_tablespaces", "session_preload_libraries", "local_preload_libraries")

_BARE_VALUE = re.compile(r'^-?[A-Za-z0-9_.]+$')


def format_config_value(key: str, value: str) -> str:
    """Render a ``rolconfig`` / ``proconfig`` value for ``SET key TO ...``."""
    if key in LIST_SETTINGS:
        return ", ".join(item.strip() for item in value.split(","))
    if _BARE_VALUE.match(value):
        return value
    return quote_literal(value)
