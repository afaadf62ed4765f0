import argparse
import json
import logging
import sys

from pg_delta_core.lib.catalog import load_catalog
from pg_delta_core.lib.errors import PgDeltaError
from pg_delta_core.lib.integrations import (
    EnvDependentConfig,
    MaskingConfig,
    create_env_dependent_filter,
    create_masking_serializer,
)
from pg_delta_core.lib.plan import create_plan
from pg_delta_core.lib.render import RenderOptions


def format_plan(plan, output_format):
    """Render a plan in the requested output format."""
    if output_format == "json":
        return json.dumps(plan.to_dict_list(), indent=2)
    return plan.to_sql()


def write_output(text, filename):
    """Write text to a file, or to stdout when no file is given."""
    if filename:
        with open(filename, 'w', encoding="utf-8") as f:
            f.write(text)
            if text and not text.endswith("\n"):
                f.write("\n")
        logging.info(f"Plan written to: {filename}")
    elif text:
        print(text)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="pg-delta",
        description="pg-delta: compute the DDL script that turns one PostgreSQL catalog snapshot into another"
    )
    parser.add_argument("main", help="Catalog snapshot (JSON) of the database as it is")
    parser.add_argument("branch", help="Catalog snapshot (JSON) of the database as it should be")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)"
    )
    parser.add_argument(
        "--format",
        choices=["sql", "json"],
        default="sql",
        help="Output format (default: sql)"
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty print statements"
    )
    parser.add_argument(
        "--keyword-case",
        choices=["upper", "lower"],
        default="upper",
        help="Case of SQL keywords (default: upper)"
    )
    parser.add_argument(
        "--output", "-o",
        help="Write the plan to this file instead of stdout"
    )
    parser.add_argument(
        "--mask-sensitive",
        action="store_true",
        help="Replace server options, user mapping options and subscription connection strings with placeholders"
    )
    parser.add_argument(
        "--env-dependent-server-keys",
        nargs="*",
        metavar="KEY",
        help="Ignore changed values of these server and user mapping options "
             "(no KEY ignores every changed value)"
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set log level based on verbosity count
    if args.verbose == 0:
        log_level = logging.WARNING
    elif args.verbose == 1:
        log_level = logging.INFO
    else:
        log_level = logging.DEBUG

    # Configure logging
    logging.basicConfig(
        level=log_level,
        format='%(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    change_filter = None
    if args.env_dependent_server_keys is not None:
        keys = frozenset(args.env_dependent_server_keys) or None
        change_filter = create_env_dependent_filter(EnvDependentConfig(server_option_keys=keys))

    serializer = create_masking_serializer(MaskingConfig()) if args.mask_sensitive else None

    try:
        main_catalog = load_catalog(args.main)
        branch_catalog = load_catalog(args.branch)
        plan = create_plan(
            main_catalog,
            branch_catalog,
            filter=change_filter,
            serialize=serializer,
            render_options=RenderOptions(pretty=args.pretty, keyword_case=args.keyword_case),
        )
    except PgDeltaError as e:
        logging.error(str(e))
        return 1

    if plan.is_empty:
        logging.info("No differences found")
    else:
        logging.info(f"Total: {len(plan)} changes")

    write_output(format_plan(plan, args.format), args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
