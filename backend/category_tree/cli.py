import argparse
import asyncio
import sys

from category_tree.core.config import settings
from category_tree.core.errors import CategoryTreeError
from category_tree.core.logging_config import configure_logging
from category_tree.db.session import SessionLocal, init_models
from category_tree.repositories.categories import sql_store_factory
from category_tree.services import hierarchy_import
from category_tree.services.categories import CategoryService


def _build_service() -> CategoryService:
    return CategoryService(
        sql_store_factory(SessionLocal),
        search_limit=settings.search_limit,
        max_page_size=settings.max_page_size,
    )


async def import_categories(path: str, *, scope: str, encoding: str) -> None:
    summary = await hierarchy_import.import_file(_build_service(), path, scope=scope, encoding=encoding)
    print(
        f"Imported {summary.lines} lines: {summary.created} created, "
        f"{summary.reused} reused, {summary.skipped_fields} empty fields skipped"
    )


async def search_categories(query: str) -> None:
    results = await _build_service().find_by_query(query)
    if not results:
        print("No categories found")
        return
    for category in results:
        parent = category.parent_category_id or "-"
        print(f"{category.id}\t{category.name}\tparent={parent}")


def _add_schema_command(subparsers) -> None:
    subparsers.add_parser("init-db", help="Create the categories schema")


def _add_import_command(subparsers) -> None:
    import_cmd = subparsers.add_parser("import-categories", help="Import category chains from a delimited file")
    import_cmd.add_argument("--input", required=True, help="Path to a file of label,name1,name2,... lines")
    import_cmd.add_argument(
        "--scope",
        choices=("global", "parent"),
        default=settings.import_match_scope,
        help="Reuse same-named categories anywhere (global) or only under the current parent (parent)",
    )
    import_cmd.add_argument("--encoding", default=settings.import_encoding, help="Source file encoding")


def _add_search_command(subparsers) -> None:
    search = subparsers.add_parser("search", help="Search categories by name substring")
    search.add_argument("--query", required=True, help="Text to look for")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Category tree utilities")
    subparsers = parser.add_subparsers(dest="command")
    _add_schema_command(subparsers)
    _add_import_command(subparsers)
    _add_search_command(subparsers)
    return parser


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "init-db":
        asyncio.run(init_models())
        print("Schema ready")
        return True

    if args.command == "import-categories":
        asyncio.run(import_categories(args.input, scope=args.scope, encoding=args.encoding))
        return True

    if args.command == "search":
        asyncio.run(search_categories(args.query))
        return True

    return False


def main() -> None:
    configure_logging(settings.log_json)
    parser = _build_parser()
    args = parser.parse_args()
    try:
        handled = _run_cli_command(args)
    except CategoryTreeError as exc:
        print(f"Error [{exc.code}]: {exc.message}", file=sys.stderr)
        raise SystemExit(1) from exc
    if not handled:
        parser.print_help()


if __name__ == "__main__":
    main()
