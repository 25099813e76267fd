import argparse
import json
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from . import __version__
from .catalog import CatalogView, visible_page_numbers
from .env import DEDUP_POLICIES, Settings, load_env
from .fetcher import BootstrapError, BulkFetcher
from .filters import FilterState
from .logger import get_logger
from .normalize import normalized_credits
from .schema import validate_snapshot
from .storage import SnapshotError, read_snapshot, resolve_snapshot_location, save_snapshot


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {
        "api_url": args.api_url,
        "page_size": args.page_size,
        "first_page": args.first_page,
        "max_retries": args.max_retries,
        "request_delay": args.request_delay,
        "dedup_policy": args.dedup_policy,
        "output_path": Path(args.output) if args.output else None,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def cmd_fetch(args: argparse.Namespace) -> None:
    try:
        settings = _settings_from_args(args)
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    logger = get_logger(level=settings.log_level, log_dir=settings.log_dir)
    logger.info("Fetching all courses", api_url=settings.api_url, page_size=settings.page_size)
    fetcher = BulkFetcher.from_settings(settings, logger=logger)
    try:
        snapshot, report = fetcher.run()
    except BootstrapError as e:
        logger.critical("Error fetching courses", error=str(e))
        logger.log_metrics_summary()
        raise SystemExit(1)

    try:
        save_snapshot(settings.output_path, snapshot)
    except OSError as e:
        logger.critical("Could not write snapshot", path=str(settings.output_path), error=str(e))
        raise SystemExit(1)
    logger.log_metrics_summary()

    print(f"Saved {snapshot.total} courses to {settings.output_path}")
    print(f"Expected courses: {report.reported_total}")
    print(f"Difference: {report.mismatch}")
    if report.duplicate_ids:
        print(f"Duplicates merged: {len(report.duplicate_ids)}")
    if report.failed_pages:
        print(f"Failed pages: {', '.join(str(p) for p in report.failed_pages)}")


def cmd_validate(args: argparse.Namespace) -> None:
    try:
        settings = Settings.from_env()
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    try:
        data = read_snapshot(Path(args.input))
    except SnapshotError as e:
        raise SystemExit(str(e))
    errors = validate_snapshot(data, settings.id_fields)
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print(f"Valid ({len(data['items'])} items)")


def _load_view(args: argparse.Namespace) -> CatalogView:
    location = resolve_snapshot_location(args.base) if args.base else args.input
    view = CatalogView()
    if not view.load(location):
        raise SystemExit(view.error)
    return view


def cmd_facets(args: argparse.Namespace) -> None:
    view = _load_view(args)
    facets = view.facets
    if args.json:
        print(json.dumps({
            "categories": [vars(f) for f in facets.categories],
            "qualifications": [vars(f) for f in facets.qualifications],
            "sponsors": [vars(f) for f in facets.sponsors],
            "jurisdictions": [vars(f) for f in facets.jurisdictions if f.count],
            "max_price": facets.max_price,
            "max_credits": facets.max_credits,
        }, indent=2))
        return

    sections = [
        ("Categories", facets.categories),
        ("Qualifications", facets.qualifications),
        ("Sponsors", facets.sponsors),
        ("Jurisdictions", [f for f in facets.jurisdictions if f.count]),
    ]
    for title, values in sections:
        print(f"{title}:")
        for f in values:
            print(f"  {f.value} ({f.count})")
    print(f"Max price: {facets.max_price:.2f}")
    print(f"Max credits: {facets.max_credits:.2f}")


def cmd_browse(args: argparse.Namespace) -> None:
    view = _load_view(args)
    view.filters = FilterState(
        search=args.search or "",
        categories=frozenset(args.category or []),
        qualifications=frozenset(args.qualification or []),
        sponsors=frozenset(args.sponsor or []),
        jurisdictions=frozenset(args.jurisdiction or []),
        max_price=args.max_price,
        min_credits=args.min_credits,
    )
    view.go_to_page(args.page)
    current = view.page()
    if not current.items:
        print("No courses match.")
        return
    first = (current.page - 1) * view.per_page + 1
    print(f"Showing {first}-{first + len(current.items) - 1} of {current.total_items} courses:\n")
    for course in current.items:
        print(f"{course.title}")
        print(f"  Sponsor: {course.sponsor}")
        if course.category:
            print(f"  Category: {course.category}")
        print(f"  Price: {course.price:.2f}  Credits: {normalized_credits(course):g}")
        print()
    pages = " ".join(
        f"[{n}]" if n == current.page else str(n)
        for n in visible_page_numbers(current.page, current.total_pages)
    )
    print(f"Page {current.page}/{current.total_pages}: {pages}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="coursecatalog", description="Course catalog snapshot fetcher and browser")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    fet = subparsers.add_parser("fetch", help="Fetch every page of the listing API into a snapshot file")
    fet.add_argument("--api-url", help="Listing endpoint (or set CATALOG_API_URL)")
    fet.add_argument("--page-size", type=int, help="Items per page (default 20)")
    fet.add_argument("--first-page", type=int, help="Index of the first page, 0 or 1 (default 1)")
    fet.add_argument("--max-retries", type=int, help="Attempts per page before giving up (default 3)")
    fet.add_argument("--request-delay", type=float, help="Seconds between page requests (default 1.0)")
    fet.add_argument("--dedup-policy", choices=DEDUP_POLICIES, help="Keep first-seen or last-seen duplicates")
    fet.add_argument("--output", help="Snapshot path (default: public/courses.json)")
    fet.set_defaults(func=cmd_fetch)

    val = subparsers.add_parser("validate", help="Check a snapshot file for shape and duplicate identifiers")
    val.add_argument("--input", required=True, help="Path to snapshot JSON")
    val.set_defaults(func=cmd_validate)

    fac = subparsers.add_parser("facets", help="Show filter facets derived from a snapshot")
    fac.add_argument("--input", default="public/courses.json", help="Snapshot path or URL")
    fac.add_argument("--base", help="Deployment base path or URL holding courses.json (overrides --input)")
    fac.add_argument("--json", action="store_true", help="Print facets as JSON")
    fac.set_defaults(func=cmd_facets)

    brw = subparsers.add_parser("browse", help="Search and filter a snapshot, one page at a time")
    brw.add_argument("--input", default="public/courses.json", help="Snapshot path or URL")
    brw.add_argument("--base", help="Deployment base path or URL holding courses.json (overrides --input)")
    brw.add_argument("--search", help="Match title or description")
    brw.add_argument("--category", action="append", help="Field of study (repeatable)")
    brw.add_argument("--qualification", action="append", help="Program qualification (repeatable)")
    brw.add_argument("--sponsor", action="append", help="Sponsor name (repeatable)")
    brw.add_argument("--jurisdiction", action="append", help="Jurisdiction name (repeatable)")
    brw.add_argument("--max-price", type=float, help="Price ceiling")
    brw.add_argument("--min-credits", type=float, help="Credit floor")
    brw.add_argument("--page", type=int, default=1, help="Page number (default 1)")
    brw.set_defaults(func=cmd_browse)

    return parser


def main(argv: Optional[List[str]] = None):
    # Load .env if present (CATALOG_API_URL, CATALOG_OUTPUT, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
