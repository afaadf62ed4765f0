"""
Plan and diff endpoints.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse

from pg_delta_core.api.errors import to_http_exception
from pg_delta_core.api.models import DiffRequest, PlanRequest
from pg_delta_core.lib.catalog import Catalog
from pg_delta_core.lib.context import DiffContext
from pg_delta_core.lib.diff import diff_catalogs
from pg_delta_core.lib.errors import PgDeltaError
from pg_delta_core.lib.integrations import (
    EnvDependentConfig,
    MaskingConfig,
    create_env_dependent_filter,
    create_masking_serializer,
)
from pg_delta_core.lib.plan import create_plan
from pg_delta_core.lib.render import RenderOptions

router = APIRouter()


@router.post("/plan", responses={
    200: {
        "description": "Ordered migration script",
        "content": {
            "text/plain": {
                "example": """CREATE SCHEMA app AUTHORIZATION postgres;

CREATE TABLE app.users (id integer NOT NULL);"""
            },
            "application/json": {
                "example": [
                    {
                        "object_type": "schema",
                        "operation": "create",
                        "scope": "object",
                        "action": "create_schema",
                        "phase": "create_alter",
                        "creates": ["schema:app"],
                        "drops": [],
                        "requires": ["role:postgres"],
                        "sql": "CREATE SCHEMA app AUTHORIZATION postgres"
                    }
                ]
            }
        }
    },
    400: {
        "description": "Changes could not be ordered",
        "content": {
            "application/json": {
                "example": {
                    "detail": {
                        "error": "Unresolvable dependency cycle in create_alter phase: ...",
                        "stable_ids": ["table:public.a", "table:public.b"],
                        "changes": ["CreateTable(table:public.a)", "CreateTable(table:public.b)"]
                    }
                }
            }
        }
    },
    422: {"description": "Invalid catalog snapshot"}
})
async def plan(request: PlanRequest):
    """
    Compute the script that turns the main catalog into the branch catalog.

    Catalog snapshots use the same JSON shape as the files read by the
    pg-delta command line.
    """
    change_filter = None
    if request.env_dependent_server_keys is not None:
        keys = frozenset(request.env_dependent_server_keys) or None
        change_filter = create_env_dependent_filter(EnvDependentConfig(server_option_keys=keys))
    serializer = create_masking_serializer(MaskingConfig()) if request.mask_sensitive else None

    try:
        result = create_plan(
            Catalog.from_dict(request.main),
            Catalog.from_dict(request.branch),
            filter=change_filter,
            serialize=serializer,
            render_options=RenderOptions(pretty=request.pretty, keyword_case=request.keyword_case),
        )
    except PgDeltaError as e:
        logging.info(f"Plan request failed: {e}")
        raise to_http_exception(e)

    # Return in requested format
    if request.output_format == "sql":
        return PlainTextResponse(result.to_sql())
    return JSONResponse(result.to_dict_list())


@router.post("/diff")
async def diff(request: DiffRequest):
    """List the changes between two catalogs, before ordering."""
    try:
        main = Catalog.from_dict(request.main)
        branch = Catalog.from_dict(request.branch)
        changes = diff_catalogs(main, branch, DiffContext.from_catalogs(main, branch))
    except PgDeltaError as e:
        raise to_http_exception(e)
    return JSONResponse([change.to_dict() for change in changes])
