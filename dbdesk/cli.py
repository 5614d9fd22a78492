"""Command-line access to stored profiles and live connections."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Sequence, TextIO

from .adapters import is_sql_adapter
from .config import configure_logging, load_config
from .errors import ValidationError, sanitize_error
from .manager import ConnectionManager, create_connection_manager
from .models import DatabaseType
from .types import QueryResult, RunQueryOptions


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dbdesk", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("profiles", help="List stored connection profiles")

    add = commands.add_parser("add-profile", help="Store a new connection profile")
    add.add_argument("name", help="Display name for the profile")
    add.add_argument("--type", dest="db_type", choices=[kind.value for kind in DatabaseType], required=True)
    add.add_argument("--host", default="localhost")
    add.add_argument("--port", type=int, required=True)
    add.add_argument("--database", required=True)
    add.add_argument("--user", required=True)
    add.add_argument("--password", required=True)
    add.add_argument("--ssl-mode", help="Postgres sslmode (disable, prefer, require, ...)")
    add.add_argument("--ssl", action="store_true", help="Use TLS for MySQL connections")

    remove = commands.add_parser("remove-profile", help="Delete a stored profile")
    remove.add_argument("profile_id")

    schemas = commands.add_parser("schemas", help="List schemas for a profile")
    schemas.add_argument("profile_id")

    tables = commands.add_parser("tables", help="List tables in a schema")
    tables.add_argument("profile_id")
    tables.add_argument("schema")

    query = commands.add_parser("query", help="Run SQL against a profile")
    query.add_argument("profile_id")
    query.add_argument("sql")
    query.add_argument("--limit", type=int, help="Page size for SELECT statements")
    query.add_argument("--offset", type=int, help="Rows to skip for SELECT statements")
    return parser


def main(argv: Sequence[str] | None = None, *, manager: ConnectionManager | None = None, out: TextIO | None = None) -> int:
    args = build_parser().parse_args(argv)
    out = out or sys.stdout
    if manager is None:
        config = load_config()
        configure_logging(config)
        manager = create_connection_manager(config)
    try:
        if args.command in ("schemas", "tables", "query"):
            asyncio.run(_run_connected(manager, args, out))
        else:
            _run_profiles(manager, args, out)
    except Exception as exc:
        error = sanitize_error(exc)
        print(f"{error.name}: {error.message}", file=sys.stderr)
        return 1
    return 0


def _run_profiles(manager: ConnectionManager, args: argparse.Namespace, out: TextIO) -> None:
    if args.command == "profiles":
        for profile in manager.list_profiles():
            options = profile.options
            print(
                f"{profile.id}\t{profile.name}\t{profile.type.value}\t{options.host}:{options.port}/{options.database}",
                file=out,
            )
    elif args.command == "add-profile":
        options: dict[str, Any] = {
            "host": args.host,
            "port": args.port,
            "database": args.database,
            "user": args.user,
            "password": args.password,
        }
        if args.db_type == DatabaseType.POSTGRES.value and args.ssl_mode:
            options["ssl_mode"] = args.ssl_mode
        if args.db_type == DatabaseType.MYSQL.value:
            options["ssl"] = args.ssl
        profile = manager.create_profile(args.name, args.db_type, options)
        print(profile.id, file=out)
    elif args.command == "remove-profile":
        if not manager.delete_profile(args.profile_id):
            raise ValidationError(f"Connection profile '{args.profile_id}' not found")


async def _run_connected(manager: ConnectionManager, args: argparse.Namespace, out: TextIO) -> None:
    try:
        adapter = await manager.connect_profile(args.profile_id)
        if args.command == "query":
            options = None
            if args.limit is not None or args.offset is not None:
                options = RunQueryOptions(limit=args.limit, offset=args.offset)
            _print_result(await adapter.run_query(args.sql, options), out)
            return
        if not is_sql_adapter(adapter):
            raise ValidationError("Connection does not support schema browsing")
        if args.command == "schemas":
            names = await adapter.list_schemas()
        else:
            names = await adapter.list_tables(args.schema)
        for name in names:
            print(name, file=out)
    finally:
        await manager.shutdown()


def _print_result(result: QueryResult, out: TextIO) -> None:
    if result.columns:
        print("\t".join(result.columns), file=out)
        for row in result.rows:
            print("\t".join("NULL" if row.get(column) is None else str(row.get(column)) for column in result.columns), file=out)
    summary = f"({result.row_count} rows, {result.execution_time:.1f} ms"
    if result.total_row_count is not None:
        summary += f", {result.total_row_count} total, offset {result.offset}"
    print(summary + ")", file=out)


__all__ = ["build_parser", "main"]
