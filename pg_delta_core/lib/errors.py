"""
Exceptions raised by the diff engine.
"""

from typing import List, Optional


class PgDeltaError(Exception):
    """Base class for all pg-delta errors."""


class CatalogLoadError(PgDeltaError):
    """A catalog snapshot could not be turned into object records."""


class ChangeValidationError(PgDeltaError):
    """
    A change was constructed with arguments SQL cannot express.

    This signals a programming error in a diff function, not a condition
    callers are expected to recover from.
    """


class CycleError(PgDeltaError):
    """
    The dependency graph of a phase contains a cycle that no filter could break.

    Attributes:
        stable_ids: Stable ids created or dropped by the changes in the cycle
        changes: Human readable descriptions of the changes in the cycle
    """

    def __init__(self, message: str, stable_ids: Optional[List[str]] = None, changes: Optional[List[str]] = None):
        super().__init__(message)
        self.stable_ids = stable_ids or []
        self.changes = changes or []
