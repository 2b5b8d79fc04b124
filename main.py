"""CLI entry point for the job query engine."""

import argparse
import asyncio
import logging
import sys

from jobquery.core.config import Settings
from jobquery.core.errors import SearchError
from jobquery.core.schemas import Page
from jobquery.search.cache import ResultCache
from jobquery.search.engine import QueryEngine
from jobquery.search.formatting import format_age, format_salary
from jobquery.search.persistence import SqlitePersistence, open_persistence
from jobquery.sources import get_source


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML file (default: config/settings.yaml if present)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser = argparse.ArgumentParser(
        description="Job query engine - filter, rank and paginate job listings",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- search subcommand ---
    search_parser = subparsers.add_parser(
        "search", parents=[common], help="Update filters and run the query",
    )
    search_parser.add_argument("keywords", nargs="?", help="Free-text keywords")
    search_parser.add_argument("--location", help="Location text (remote listings always pass)")
    search_parser.add_argument(
        "--remote-only", action="store_true", help="Only remote listings",
    )
    search_parser.add_argument(
        "--job-type",
        action="append",
        choices=["full_time", "part_time", "contract", "internship"],
        help="Job type (repeatable)",
    )
    search_parser.add_argument(
        "--experience",
        action="append",
        choices=["entry", "mid", "senior", "executive"],
        help="Experience level (repeatable)",
    )
    search_parser.add_argument("--skill", action="append", help="Required skill (repeatable)")
    search_parser.add_argument("--salary-min", type=int, help="Minimum salary")
    search_parser.add_argument("--salary-max", type=int, help="Maximum salary")
    search_parser.add_argument(
        "--date-posted", choices=["any", "day", "week", "month"], help="Posting age",
    )
    search_parser.add_argument(
        "--sort", choices=["relevance", "date", "salary"], help="Sort field",
    )
    search_parser.add_argument("--order", choices=["asc", "desc"], help="Sort order")
    search_parser.add_argument("--page", type=int, help="Page number to show")
    search_parser.add_argument(
        "--reset", action="store_true", help="Clear all stored filters first",
    )
    search_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the resulting filters without querying the data source",
    )
    search_parser.add_argument(
        "--export", choices=["json"], help="Export the page to format (json)",
    )

    # --- history subcommands ---
    subparsers.add_parser("filters", parents=[common], help="Show active filters")
    subparsers.add_parser("recent", parents=[common], help="Show recent searches")
    subparsers.add_parser("saved", parents=[common], help="List saved searches")

    save_parser = subparsers.add_parser(
        "save", parents=[common], help="Save the current filters and sort",
    )
    save_parser.add_argument("name", nargs="?", default="", help="Name for the saved search")

    load_parser = subparsers.add_parser(
        "load", parents=[common], help="Load a saved search and run it",
    )
    load_parser.add_argument("search_id", help="Saved search id")

    delete_parser = subparsers.add_parser(
        "delete", parents=[common], help="Delete a saved search",
    )
    delete_parser.add_argument("search_id", help="Saved search id")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_engine(settings: Settings) -> QueryEngine:
    """Wire source, cache and persistence from settings into one session."""
    if settings.source.kind == "file":
        source = get_source("file", path=settings.source.path)
    else:
        source = get_source("sample", count=settings.source.count, seed=settings.source.seed)

    cache = ResultCache(
        ttl_seconds=settings.cache.ttl_seconds,
        max_entries=settings.cache.max_entries,
    )
    persistence = open_persistence(settings.persistence.backend, settings.persistence.path)
    return QueryEngine(source, cache=cache, persistence=persistence, config=settings.engine)


def apply_search_args(engine: QueryEngine, args: argparse.Namespace) -> None:
    """Translate search flags into engine mutations."""
    if args.reset:
        engine.clear_all()
    if args.keywords is not None:
        engine.set_filter("keywords", args.keywords)
    if args.location is not None:
        engine.set_filter("location", args.location)
    if args.remote_only:
        engine.set_filter("remote_only", True)
    if args.job_type:
        engine.set_filter("job_type", args.job_type)
    if args.experience:
        engine.set_filter("experience_level", args.experience)
    if args.skill:
        engine.set_filter("skills", args.skill)
    if args.salary_min is not None or args.salary_max is not None:
        low, high = engine.filters.salary_range
        engine.set_filter("salary_range", (
            args.salary_min if args.salary_min is not None else low,
            args.salary_max if args.salary_max is not None else high,
        ))
    if args.date_posted is not None:
        engine.set_filter("date_posted", args.date_posted)
    if args.sort or args.order:
        engine.set_sort(args.sort or engine.sort.field, args.order or engine.sort.order)
    # Filter changes reset to page 1, so the page is applied last.
    if args.page is not None:
        engine.goto_page(args.page)


def print_active_filters(engine: QueryEngine) -> None:
    active = engine.active_filters()
    if not active:
        print("No active filters")
        return
    for f in active:
        print(f"  {f.label}: {f.value}")
    print(f"  Sort: {engine.sort.field} ({engine.sort.order})")


def print_page(page: Page) -> None:
    print(
        f"\nPage {page.page_number}/{max(page.total_pages, 1)} "
        f"- {page.total_results} matching listings",
    )
    offset = (page.page_number - 1) * page.page_size
    for i, listing in enumerate(page.items, start=offset + 1):
        remote = " [remote]" if listing.remote else ""
        print(
            f"{i:>4}. {listing.title} | {listing.company} | {listing.location}{remote} | "
            f"{format_salary(listing.salary_min)}-{format_salary(listing.salary_max)} | "
            f"{listing.type} | {format_age(listing.posted_at)}",
        )


async def cmd_search(engine: QueryEngine, args: argparse.Namespace) -> None:
    """Handle search subcommand."""
    apply_search_args(engine, args)

    if args.dry_run:
        print("[DRY RUN] Filters that would be queried:")
        print_active_filters(engine)
        print(f"[DRY RUN] Page {engine.page_number}, no data source call made")
        return

    page = await engine.execute()
    if args.export == "json":
        print(page.model_dump_json(indent=2))
        return
    print_active_filters(engine)
    print_page(page)


async def cmd_save(engine: QueryEngine, args: argparse.Namespace) -> None:
    """Handle save subcommand: run the query so the result count is current."""
    await engine.execute()
    search = engine.save_current_search(args.name)
    print(f"Saved '{search.name}' as {search.id} ({search.result_count} results)")


async def cmd_load(engine: QueryEngine, args: argparse.Namespace) -> None:
    page = await engine.load_saved_search(args.search_id)
    print_active_filters(engine)
    print_page(page)


def cmd_delete(engine: QueryEngine, args: argparse.Namespace) -> None:
    search = engine.delete_saved_search(args.search_id)
    print(f"Deleted '{search.name}' ({search.id})")


def cmd_saved(engine: QueryEngine) -> None:
    saved = engine.saved_searches()
    if not saved:
        print("No saved searches yet")
        return
    for s in saved:
        print(f"  {s.id}  {s.name}  ({s.result_count} results, {format_age(s.created_at)})")


def cmd_recent(engine: QueryEngine) -> None:
    recent = engine.recent_searches()
    if not recent:
        print("No recent searches")
        return
    for r in recent:
        where = f" in {r.location}" if r.location else ""
        print(f"  '{r.keywords}'{where}  ({r.timestamp:%Y-%m-%d %H:%M})")


async def run(engine: QueryEngine, args: argparse.Namespace) -> None:
    if args.command == "search":
        await cmd_search(engine, args)
    elif args.command == "save":
        await cmd_save(engine, args)
    elif args.command == "load":
        await cmd_load(engine, args)
    elif args.command == "delete":
        cmd_delete(engine, args)
    elif args.command == "saved":
        cmd_saved(engine)
    elif args.command == "recent":
        cmd_recent(engine)
    else:
        print_active_filters(engine)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.load(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        engine = build_engine(settings)
    except (SearchError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run(engine, args))
    except (SearchError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        persistence = engine.persistence
        if isinstance(persistence, SqlitePersistence):
            persistence.close()


if __name__ == "__main__":
    main()
