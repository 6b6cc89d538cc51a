from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Iterable, List, Optional

import requests

from bibliopulse.core.models import Book
from bibliopulse.core.normalize import normalize_isbn
from bibliopulse.integrations.http_client import SessionPool
from bibliopulse.integrations.openlibrary import COVERS_URL

logger = logging.getLogger(__name__)


def isbn_cover_url(isbn: str) -> str:
    return f"{COVERS_URL}/b/isbn/{normalize_isbn(isbn)}-L.jpg?default=false"


def _check_url(session: requests.Session, url: str, timeout_s: float) -> bool:
    try:
        r = session.head(url, timeout=timeout_s, allow_redirects=True)
        if r.status_code >= 400:
            r = session.get(url, timeout=timeout_s, stream=True)
        if r.status_code >= 400:
            return False
        ctype = (r.headers.get("Content-Type") or "").lower()
        return ctype.startswith("image/")
    except requests.RequestException:
        return False


def _lookup_one(book: Book, pool: SessionPool, timeout_s: float) -> Book:
    url = isbn_cover_url(book.isbn or "")
    if _check_url(pool.get(), url, timeout_s):
        return replace(book, cover=url)
    return book


def find_missing_covers(
    books: Iterable[Book],
    session: Optional[requests.Session] = None,
    *,
    concurrency: int = 6,
    timeout_s: float = 10,
) -> List[Book]:
    """
    Fill `cover` from OpenLibrary for books that have an ISBN but no cover.

    Each worker probes with its own clone of `session` (a plain session when
    none is given).
    """
    books = list(books)
    targets = [i for i, b in enumerate(books) if not b.cover and normalize_isbn(b.isbn or "")]
    if not targets:
        return books

    out = list(books)
    found = 0
    with SessionPool(session) as pool, ThreadPoolExecutor(max_workers=max(1, concurrency)) as ex:
        future_map = {ex.submit(_lookup_one, books[i], pool, timeout_s): i for i in targets}
        for fut in as_completed(future_map):
            idx = future_map[fut]
            book = fut.result()
            if book.cover:
                found += 1
            out[idx] = book

    logger.info("covers: checked=%s found=%s", len(targets), found)
    return out
