# bibliopulse/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from rich.logging import RichHandler

from bibliopulse.cache import SearchCache
from bibliopulse.config import PROVIDERS, AppConfig, load_dotenv
from bibliopulse.core.affiliate import amazon_affiliate_url
from bibliopulse.core.models import SEARCH_TYPES, Book
from bibliopulse.enrich.details import get_book_details
from bibliopulse.roadmap import RoadmapError, RoadmapStore
from bibliopulse.search import make_provider_session, search_all_books_outcome, search_books_by_isbns

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _setup_logging(level_name: str) -> None:
    level = LOG_LEVELS.get((level_name or "").lower(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _book_line(b: Book) -> str:
    authors = ", ".join(b.author) or "?"
    extra = f" [{b.isbn}]" if b.isbn else ""
    return f"{b.title} | {authors}{extra}"


def _print_books(books: List[Book], as_json: bool, affiliate_id: Optional[str] = None) -> None:
    if as_json:
        payload = []
        for b in books:
            d = b.to_dict()
            if affiliate_id:
                d["amazon_url"] = amazon_affiliate_url(b, affiliate_id)
            payload.append(d)
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    for b in books:
        print(_book_line(b))


def _cmd_search(args: argparse.Namespace, cfg: AppConfig) -> int:
    cache = None
    if cfg.cache_path and not args.no_cache:
        cache = SearchCache(cfg.cache_path, ttl_s=cfg.cache_ttl_s)
    outcome = search_all_books_outcome(
        args.query,
        args.type,
        args.lang,
        args.max,
        config=cfg,
        cache=cache,
    )
    if not outcome.ok:
        logging.getLogger(__name__).error("search failed: %s", outcome.error)
        return 2
    _print_books(outcome.books, args.json, cfg.affiliate_id if args.affiliate else None)
    return 0


def _cmd_isbns(args: argparse.Namespace, cfg: AppConfig) -> int:
    books = search_books_by_isbns(args.isbns, config=cfg)
    _print_books(books, args.json, cfg.affiliate_id if args.affiliate else None)
    return 0


def _cmd_details(args: argparse.Namespace, cfg: AppConfig) -> int:
    session = make_provider_session(cfg, "isbndb")
    details = get_book_details(
        args.isbn,
        session,
        timeout_s=cfg.timeout_s,
        retries=cfg.retries,
        translate=cfg.translate,
    )
    print(json.dumps(details, ensure_ascii=False, indent=2))
    return 0


def _cmd_roadmap(args: argparse.Namespace, cfg: AppConfig) -> int:
    store = RoadmapStore(cfg.roadmap_path)
    try:
        if args.action == "list":
            for f in store.list_features():
                print(f"[{f.status}] {f.name}")
            for p in store.list_proposals():
                print(f"[proposal] {p.name} ({p.proposed_by or 'anonymous'})")
        elif args.action == "propose":
            store.propose(args.name, args.description or "", proposed_by=args.by)
        elif args.action == "approve":
            store.approve(args.name, quarter=args.quarter)
        elif args.action == "reject":
            store.reject(args.name)
    except RoadmapError as e:
        logging.getLogger(__name__).error("%s", e)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="bibliopulse",
        description="BiblioPulse catalog search: ISBNdb / Google Books / OpenLibrary with match, noise and duplicate filtering",
    )
    ap.add_argument("--log-level", default="warning", help="Log level: debug, info, warning, error")
    sub = ap.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("search", help="Search books by author, title or ISBN")
    sp.add_argument("query")
    sp.add_argument("--type", default="title", choices=SEARCH_TYPES, help="Search type")
    sp.add_argument("--lang", default=None, help="Language filter (default: BIBLIOPULSE_LANGUAGE or fr)")
    sp.add_argument("--max", type=int, default=None, help="Maximum results")
    sp.add_argument("--provider", default=None, choices=PROVIDERS, help="Catalog provider (default: BIBLIOPULSE_PROVIDER or isbndb)")
    sp.add_argument("--no-cache", action="store_true", help="Bypass the search cache")
    sp.add_argument("--json", action="store_true", help="Print results as JSON")
    sp.add_argument("--affiliate", action="store_true", help="Add Amazon affiliate links to JSON output")
    sp.set_defaults(func=_cmd_search)

    ip = sub.add_parser("isbns", help="Look up several ISBNs at once")
    ip.add_argument("isbns", nargs="+")
    ip.add_argument("--provider", default=None, choices=PROVIDERS, help="Catalog provider")
    ip.add_argument("--json", action="store_true", help="Print results as JSON")
    ip.add_argument("--affiliate", action="store_true", help="Add Amazon affiliate links to JSON output")
    ip.set_defaults(func=_cmd_isbns)

    dp = sub.add_parser("details", help="Fetch book details for an ISBN (ISBNdb)")
    dp.add_argument("isbn")
    dp.set_defaults(func=_cmd_details)

    rp = sub.add_parser("roadmap", help="Manage roadmap features and proposals")
    rp.add_argument("action", choices=("list", "propose", "approve", "reject"))
    rp.add_argument("name", nargs="?", default="")
    rp.add_argument("--description", default=None)
    rp.add_argument("--by", default=None, help="Proposer name")
    rp.add_argument("--quarter", default=None, help="Target quarter when approving")
    rp.set_defaults(func=_cmd_roadmap)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    used = load_dotenv(".env")
    if used:
        logger.info("loaded .env: %s", used)

    cfg = AppConfig.from_env()
    if getattr(args, "provider", None):
        cfg.provider = args.provider
    if args.command in ("search", "isbns"):
        cfg.validate()
    if args.command == "roadmap" and args.action != "list" and not args.name:
        raise SystemExit("roadmap propose/approve/reject need a feature name.")

    return args.func(args, cfg)


if __name__ == "__main__":
    sys.exit(main())
