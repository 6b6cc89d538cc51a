from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Iterable, List, Optional

import requests

from bibliopulse.cache import SearchCache, cache_key
from bibliopulse.config import PROVIDERS, AppConfig
from bibliopulse.core.duplicates import remove_duplicate_books
from bibliopulse.core.filters import filter_non_book_results
from bibliopulse.core.keywords import Keywords, default_keywords, load_keywords
from bibliopulse.core.matching import is_author_match, is_title_explicit_match
from bibliopulse.core.models import SEARCH_TYPES, Book, SearchOutcome
from bibliopulse.core.normalize import normalize_isbn
from bibliopulse.enrich.covers import find_missing_covers
from bibliopulse.integrations import google_books, isbndb, openlibrary
from bibliopulse.integrations.http_client import CatalogError, SessionPool, make_isbndb_session, make_session

logger = logging.getLogger(__name__)


@lru_cache(maxsize=8)
def _keywords_from_file(path: str) -> Keywords:
    return load_keywords(path)


def _keywords(cfg: AppConfig) -> Keywords:
    if cfg.keywords_file:
        return _keywords_from_file(cfg.keywords_file)
    return default_keywords()


def make_provider_session(cfg: AppConfig, provider: Optional[str] = None) -> requests.Session:
    provider = provider or cfg.provider
    if provider == "isbndb" and cfg.isbndb_api_key:
        return make_isbndb_session(cfg.isbndb_api_key)
    return make_session()


def fetch_books(
    session: requests.Session,
    query: str,
    search_type: str,
    cfg: AppConfig,
    *,
    provider: Optional[str] = None,
    language: Optional[str] = None,
    max_results: Optional[int] = None,
) -> List[Book]:
    """Raw adapter call for the configured provider. Raises CatalogError."""
    provider = provider or cfg.provider
    limit = max(1, cfg.max_results if max_results is None else max_results)
    if provider == "isbndb":
        return isbndb.search(
            session,
            query,
            search_type,
            language=language,
            max_results=limit,
            timeout_s=cfg.timeout_s,
            retries=cfg.retries,
        )
    if provider == "google":
        return google_books.search(
            session,
            query,
            search_type,
            api_key=cfg.google_books_api_key,
            language=language,
            max_results=limit,
            timeout_s=cfg.timeout_s,
            retries=cfg.retries,
        )
    if provider == "openlibrary":
        return openlibrary.search(
            session,
            query,
            search_type,
            language=language,
            max_results=limit,
            timeout_s=cfg.timeout_s,
            retries=cfg.retries,
            concurrency=cfg.concurrency,
        )
    raise CatalogError(f"unknown provider {provider!r} (expected one of: {', '.join(PROVIDERS)})")


def _run(
    search_type: str,
    query: str,
    cfg: AppConfig,
    session: Optional[requests.Session],
    provider: Optional[str],
    language: Optional[str],
    max_results: Optional[int],
) -> List[Book]:
    sess = session or make_provider_session(cfg, provider)
    raw = fetch_books(
        sess,
        query,
        search_type,
        cfg,
        provider=provider,
        language=language,
        max_results=max_results,
    )
    if search_type == "isbn":
        return raw

    kw = _keywords(cfg)
    if search_type == "author":
        matched = [b for b in raw if is_author_match(b, query, kw)]
    else:
        matched = [b for b in raw if is_title_explicit_match(b, query, kw)]
    kept = filter_non_book_results(matched, kw)
    logger.info(
        "search: %s | query=%s | raw=%s | matched=%s | kept=%s",
        search_type,
        query,
        len(raw),
        len(matched),
        len(kept),
    )
    return kept


def _fail_soft(
    search_type: str,
    query: str,
    *,
    config: Optional[AppConfig],
    session: Optional[requests.Session],
    provider: Optional[str],
    language: Optional[str],
    max_results: Optional[int],
) -> List[Book]:
    cfg = config or AppConfig()
    try:
        return _run(search_type, query, cfg, session, provider, cfg.language if language is None else language, max_results)
    except (CatalogError, requests.RequestException) as e:
        logger.warning("search: %s failed | query=%s | err=%s", search_type, query, e)
        return []


def search_author_books(
    query: str,
    *,
    config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
    provider: Optional[str] = None,
    language: Optional[str] = None,
    max_results: Optional[int] = None,
) -> List[Book]:
    query = (query or "").strip()
    if not query:
        return []
    return _fail_soft(
        "author",
        query,
        config=config,
        session=session,
        provider=provider,
        language=language,
        max_results=max_results,
    )


def search_books_by_title(
    query: str,
    *,
    config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
    provider: Optional[str] = None,
    language: Optional[str] = None,
    max_results: Optional[int] = None,
) -> List[Book]:
    query = (query or "").strip()
    if not query:
        return []
    return _fail_soft(
        "title",
        query,
        config=config,
        session=session,
        provider=provider,
        language=language,
        max_results=max_results,
    )


def search_books_by_isbn(
    isbn: str,
    *,
    config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
    provider: Optional[str] = None,
) -> List[Book]:
    isbn = normalize_isbn(isbn)
    if not isbn:
        return []
    return _fail_soft(
        "isbn",
        isbn,
        config=config,
        session=session,
        provider=provider,
        language=None,
        max_results=None,
    )


def search_books_by_isbns(
    isbns: Iterable[str],
    *,
    config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
    provider: Optional[str] = None,
) -> List[Book]:
    """
    Look many ISBNs up concurrently; results keep the input order.

    Workers each get a clone of the provider session. An ISBN-10 and its
    ISBN-13 resolve to the same record, so the output is deduplicated too.
    """
    cfg = config or AppConfig()
    unique: List[str] = []
    for raw in isbns:
        isbn = normalize_isbn(raw)
        if isbn and isbn not in unique:
            unique.append(isbn)
    if not unique:
        return []

    base = session or make_provider_session(cfg, provider)

    pool = SessionPool(base)

    def _one(isbn: str) -> List[Book]:
        return search_books_by_isbn(isbn, config=cfg, session=pool.get(), provider=provider)

    with pool, ThreadPoolExecutor(max_workers=max(1, cfg.concurrency)) as ex:
        batches = list(ex.map(_one, unique))

    out = remove_duplicate_books(b for batch in batches for b in batch)
    logger.info("search: isbn batch | requested=%s | found=%s", len(unique), len(out))
    return out


def search_all_books_outcome(
    query: str,
    search_type: str = "title",
    language: Optional[str] = None,
    max_results: Optional[int] = None,
    *,
    config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
    cache: Optional[SearchCache] = None,
    provider: Optional[str] = None,
) -> SearchOutcome:
    """
    Full search pipeline, telling "no matches" apart from "search failed".

    Blank queries return an empty outcome without touching the network or
    the cache. "general" searches run as title searches.
    """
    query = (query or "").strip()
    if not query:
        return SearchOutcome(books=[])
    if search_type not in SEARCH_TYPES:
        return SearchOutcome(books=[], error=f"unknown search type {search_type!r}")
    if max_results is not None and max_results < 1:
        return SearchOutcome(books=[], error=f"max_results must be at least 1, got {max_results}")

    cfg = config or AppConfig()
    provider = provider or cfg.provider
    st = "title" if search_type == "general" else search_type
    lang = cfg.language if language is None else language
    limit = cfg.max_results if max_results is None else max_results
    if st == "isbn":
        query = normalize_isbn(query)
        if not query:
            return SearchOutcome(books=[])

    key = cache_key(query, st, lang, provider)
    if cache is not None:
        try:
            cached = cache.get(key)
        except OSError as e:
            logger.warning("search: cache read failed | key=%s | err=%r", key, e)
            cached = None
        if cached is not None:
            logger.info("search: cache hit | key=%s | results=%s", key, len(cached))
            return SearchOutcome(books=cached[:limit], from_cache=True)

    try:
        books = _run(st, query, cfg, session, provider, lang, limit)
    except (CatalogError, requests.RequestException) as e:
        logger.warning("search: failed | type=%s | query=%s | err=%s", st, query, e)
        return SearchOutcome(books=[], error=str(e))

    books = remove_duplicate_books(books)[:limit]

    if cfg.cover_lookup and books:
        books = find_missing_covers(books, concurrency=cfg.concurrency, timeout_s=cfg.timeout_s)

    if cache is not None and books:
        try:
            cache.put(key, books)
        except OSError as e:
            logger.warning("search: cache write failed | key=%s | err=%r", key, e)

    logger.info("search: done | type=%s | query=%s | results=%s", st, query, len(books))
    return SearchOutcome(books=books)


def search_all_books(
    query: str,
    search_type: str = "title",
    language: Optional[str] = None,
    max_results: Optional[int] = None,
    *,
    config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
    cache: Optional[SearchCache] = None,
    provider: Optional[str] = None,
) -> List[Book]:
    return search_all_books_outcome(
        query,
        search_type,
        language,
        max_results,
        config=config,
        session=session,
        cache=cache,
        provider=provider,
    ).books
