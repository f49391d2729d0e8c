"""Run one query from the command line and print the result as JSON."""

import argparse
import json
import logging
import sys
from typing import Any

from sql_session.config import get_dsn, get_log_level, get_password, get_user
from sql_session.errors import SessionError
from sql_session.session import DatabaseSession, FetchMode


def _parse_param(raw: str) -> tuple[str, Any]:
    """Split ``name=value``; the value is JSON when it parses, else a string."""
    name, sep, value = raw.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected name=value, got {raw!r}")
    try:
        return name, json.loads(value)
    except json.JSONDecodeError:
        return name, value


def build_parser() -> argparse.ArgumentParser:
    """Command-line arguments for ``sql-session``."""
    parser = argparse.ArgumentParser(
        prog="sql-session", description="Run a parameterized SQL statement"
    )
    parser.add_argument("query", help="SQL text with :name placeholders")
    parser.add_argument(
        "-p",
        "--param",
        action="append",
        default=[],
        type=_parse_param,
        metavar="NAME=VALUE",
        help="Bind a parameter (JSON values, e.g. ids=[1,2,3])",
    )
    parser.add_argument("--dsn", default=None, help="Data source name (default: SQLS_DSN)")
    parser.add_argument("--user", default=None, help="Database user (default: SQLS_USER)")
    parser.add_argument(
        "--password", default=None, help="Database password (default: SQLS_PASSWORD)"
    )
    parser.add_argument("--num", action="store_true", help="Print rows as arrays")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``sql-session`` command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    dsn = args.dsn or get_dsn()
    user = args.user if args.user is not None else get_user()
    password = args.password if args.password is not None else get_password()
    fetch_mode = FetchMode.NUM if args.num else FetchMode.ASSOC

    try:
        with DatabaseSession(dsn, user, password) as db:
            result = db.query(args.query, dict(args.param), fetch_mode=fetch_mode)
    except SessionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (TypeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        # Driver errors, already written to the failure log
        print(f"Query failed: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
