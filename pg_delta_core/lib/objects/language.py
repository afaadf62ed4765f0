"""
Procedural languages.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from pg_delta_core.lib.change import Change, CreateObject, DropObject
from pg_delta_core.lib.change import comment_changes, owner_change_on_alter, owner_change_on_create
from pg_delta_core.lib.model import PgModel, Privilege
from pg_delta_core.lib.privileges import privileges_on_alter, privileges_on_create
from pg_delta_core.lib.utils import diff_objects, has_non_alterable_changes

NON_ALTERABLE_FIELDS = ("is_trusted", "is_procedural", "call_handler", "inline_handler", "validator")


@dataclass(frozen=True)
class Language(PgModel):
    KIND: ClassVar[str] = "language"
    SQL_KIND: ClassVar[str] = "LANGUAGE"
    GRANT_KIND: ClassVar[str] = "LANGUAGE"
    IDENTITY: ClassVar[Tuple[str, ...]] = ("name",)
    NESTED: ClassVar[Dict[str, type]] = {"privileges": Privilege}

    name: str
    owner: str
    is_trusted: bool = True
    is_procedural: bool = True
    call_handler: Optional[str] = None
    inline_handler: Optional[str] = None
    validator: Optional[str] = None
    comment: Optional[str] = None
    privileges: Tuple[Privilege, ...] = ()


@dataclass(frozen=True)
class CreateLanguage(CreateObject):

    def serialize(self, options=None) -> str:
        language = self.target
        parts = ["CREATE"]
        if language.is_trusted:
            parts.append("TRUSTED")
        if language.is_procedural:
            parts.append("PROCEDURAL")
        parts.extend(["LANGUAGE", language.name])
        if language.call_handler:
            parts.extend(["HANDLER", language.call_handler])
        if language.inline_handler:
            parts.extend(["INLINE", language.inline_handler])
        if language.validator:
            parts.extend(["VALIDATOR", language.validator])
        return " ".join(parts)


@dataclass(frozen=True)
class DropLanguage(DropObject):

    def serialize(self, options=None) -> str:
        return f"DROP LANGUAGE {self.target.name}"


def diff_languages(ctx, main: Dict[str, Language], branch: Dict[str, Language]) -> List[Change]:
    result = diff_objects(main, branch)
    changes = []

    def create(language):
        changes.append(CreateLanguage(language))
        changes.extend(owner_change_on_create(language, ctx.current_user))
        changes.extend(comment_changes(None, language))
        changes.extend(privileges_on_create(ctx, language))

    for key in result.created:
        create(branch[key])

    for key in result.dropped:
        changes.append(DropLanguage(main[key]))

    for key in result.altered:
        old, new = main[key], branch[key]
        if has_non_alterable_changes(old, new, NON_ALTERABLE_FIELDS):
            changes.append(DropLanguage(old))
            create(new)
            continue
        changes.extend(owner_change_on_alter(old, new))
        changes.extend(comment_changes(old, new))
        changes.extend(privileges_on_alter(ctx, old, new))

    return changes
