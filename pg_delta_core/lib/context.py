"""
Shared state handed to the per-kind diff functions and integration hooks.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from pg_delta_core.lib.privileges import DefaultPrivilegeState


@dataclass
class DiffContext:
    """
    Attributes:
        main: Catalog describing the database as it is
        branch: Catalog describing the database as it should be
        version: server_version_num of the target server
        current_user: Role that will run the generated script
        default_privileges: Default ACL state seeded from the branch roles
    """
    main: Any
    branch: Any
    version: Optional[int] = None
    current_user: Optional[str] = None
    default_privileges: DefaultPrivilegeState = field(default_factory=DefaultPrivilegeState)

    @classmethod
    def from_catalogs(cls, main, branch) -> "DiffContext":
        return cls(
            main=main,
            branch=branch,
            version=branch.version or main.version,
            current_user=branch.current_user or main.current_user,
            default_privileges=DefaultPrivilegeState(branch.roles),
        )
