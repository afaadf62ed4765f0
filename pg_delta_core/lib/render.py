"""
Turn ordered changes into script text.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from pglast import prettify
from pglast.parser import ParseError, scan

from pg_delta_core.lib.change import Change
from pg_delta_core.lib.context import DiffContext

KEYWORD_KINDS = ("UNRESERVED_KEYWORD", "COL_NAME_KEYWORD", "TYPE_FUNC_NAME_KEYWORD", "RESERVED_KEYWORD")


@dataclass(frozen=True)
class RenderOptions:
    """
    Layout of the rendered script. None of these change what a statement does.

    Attributes:
        pretty: Re-indent statements with pglast's prettifier
        keyword_case: "upper" (as serialized) or "lower"
        comma_at_eoln: Put commas at the end of lines when pretty printing
        compact_lists_margin: Keep lists on one line when they fit in this width
    """
    pretty: bool = False
    keyword_case: str = "upper"
    comma_at_eoln: bool = False
    compact_lists_margin: Optional[int] = None

    def __post_init__(self):
        if self.keyword_case not in ("upper", "lower"):
            raise ValueError(f"keyword_case must be 'upper' or 'lower', not {self.keyword_case!r}")


def _split_comments(text: str):
    """Separate leading ``--`` comment lines from the statement below them."""
    lines = text.split("\n")
    position = 0
    while position < len(lines) and lines[position].lstrip().startswith("--"):
        position += 1
    return lines[:position], "\n".join(lines[position:])


def pretty_print(sql: str, options: RenderOptions) -> str:
    """Lay a statement out with pglast, returning it unchanged when pglast can't."""
    layout = {"comma_at_eoln": options.comma_at_eoln}
    if options.compact_lists_margin is not None:
        layout["compact_lists_margin"] = options.compact_lists_margin
    try:
        rendered = prettify(sql, **layout)
    except (ParseError, NotImplementedError) as e:
        logging.debug(f"Keeping statement as serialized, pglast could not print it: {e}")
        return sql
    return rendered.rstrip().rstrip(";")


def lowercase_keywords(sql: str) -> str:
    """Lowercase keyword tokens, leaving identifiers and literals alone."""
    try:
        tokens = scan(sql)
    except ParseError:
        return sql
    result = list(sql)
    for token in tokens:
        if token.kind not in KEYWORD_KINDS:
            continue
        text = sql[token.start:token.end + 1]
        # offsets are only trusted when they point at the keyword itself
        if text.upper() != token.name.upper():
            continue
        result[token.start:token.end + 1] = list(text.lower())
    return "".join(result)


def render_change(
    ctx: Optional[DiffContext],
    change: Change,
    options: Optional[RenderOptions] = None,
    serializer=None,
) -> str:
    """
    Render one change.

    A serializer hook gets the first chance; when it returns None the
    change's own serialize() is used. Comment lines a hook puts in front of
    the statement are kept as they are.
    """
    options = options or RenderOptions()
    text = serializer(ctx, change) if serializer is not None else None
    if text is None:
        text = change.serialize(options)

    comments, statement = _split_comments(text)
    if options.pretty and statement.strip():
        statement = pretty_print(statement, options)
    if options.keyword_case == "lower":
        statement = lowercase_keywords(statement)
    return "\n".join(comments + [statement])


def render_script(statements: List[str]) -> str:
    """Join rendered statements into one script."""
    if not statements:
        return ""
    return ";\n\n".join(statements) + ";"
