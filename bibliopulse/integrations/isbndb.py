from __future__ import annotations

import hashlib
import logging
import re
from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from bibliopulse.core.models import Book
from bibliopulse.core.normalize import as_list, clean_description, normalize_isbn
from bibliopulse.integrations.http_client import CatalogError, get_json

logger = logging.getLogger(__name__)

ISBNDB_BASE_URL = "https://api2.isbndb.com"
MAX_PAGE_SIZE = 1000

_ISBN_QUERY_RE = re.compile(r"^[0-9X]{10,13}$")


def _synth_id(title: str, author: str) -> str:
    digest = hashlib.sha1(f"{title}|{author}".encode("utf-8")).hexdigest()
    return f"isbndb-{digest[:10]}"


def _to_int(val) -> Optional[int]:
    try:
        n = int(str(val).strip())
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def map_isbndb_book(book: Dict, default_author: Optional[str] = None) -> Book:
    """
    Map an ISBNdb 'book' payload to a Book.

    ISBNdb list endpoints omit many fields; everything missing falls back
    to empty values.
    """
    title = (book.get("title") or book.get("title_long") or "").strip()

    authors = as_list(book.get("authors") or book.get("author"))
    if not authors and default_author:
        authors = [default_author]

    isbn = normalize_isbn(book.get("isbn13") or book.get("isbn") or book.get("isbn10") or "")
    book_id = isbn or _synth_id(title, "|".join(authors))

    language = as_list(book.get("language"))
    return Book(
        id=book_id,
        title=title,
        author=authors,
        cover=(book.get("image") or book.get("image_original") or None),
        language=language,
        isbn=isbn or None,
        publishers=as_list(book.get("publisher")),
        subjects=as_list(book.get("subjects")),
        description=clean_description(book.get("synopsis") or book.get("overview") or ""),
        number_of_pages=_to_int(book.get("pages")),
        publish_date=str(book.get("date_published") or ""),
        format=str(book.get("binding") or book.get("format") or ""),
        series=None,
    )


def _page_params(max_results: int, language: Optional[str]) -> Dict[str, str]:
    params = {"page": "1", "pageSize": str(max(1, min(MAX_PAGE_SIZE, int(max_results))))}
    if language:
        params["language"] = language
    return params


def fetch_isbn(
    session: requests.Session,
    isbn: str,
    *,
    timeout_s: float,
    retries: int = 0,
) -> List[Book]:
    isbn = normalize_isbn(isbn)
    if not isbn:
        return []

    if _ISBN_QUERY_RE.match(isbn):
        try:
            data = get_json(
                session,
                f"{ISBNDB_BASE_URL}/book/{quote(isbn, safe='')}",
                timeout_s=timeout_s,
                retries=retries,
                label="ISBNdb",
            )
            book = data.get("book") if isinstance(data, dict) else None
            if isinstance(book, dict):
                return [map_isbndb_book(book)]
            return []
        except CatalogError as e:
            if e.status_code not in (400, 404):
                raise
            logger.info("isbndb: direct lookup missed, trying search | isbn=%s | status=%s", isbn, e.status_code)

    data = get_json(
        session,
        f"{ISBNDB_BASE_URL}/search/books",
        params={"page": "1", "pageSize": "20", "isbn13": isbn},
        timeout_s=timeout_s,
        retries=retries,
        label="ISBNdb",
    )
    books = data.get("books") if isinstance(data, dict) else None
    return [map_isbndb_book(b) for b in books or [] if isinstance(b, dict)]


def search(
    session: requests.Session,
    query: str,
    search_type: str,
    *,
    language: Optional[str] = None,
    max_results: int = 20,
    timeout_s: float = 15,
    retries: int = 0,
) -> List[Book]:
    query = (query or "").strip()
    if not query:
        return []

    if search_type == "isbn":
        return fetch_isbn(session, query, timeout_s=timeout_s, retries=retries)

    q = quote(query, safe="")
    params = _page_params(max_results, language)

    if search_type == "author":
        data = get_json(
            session,
            f"{ISBNDB_BASE_URL}/authors/{q}",
            params=params,
            timeout_s=timeout_s,
            retries=retries,
            label="ISBNdb",
        )
        if not isinstance(data, dict):
            raise CatalogError("ISBNdb returned an unexpected author payload")
        out: List[Book] = []
        for author in data.get("authors") or []:
            if not isinstance(author, dict):
                continue
            name = author.get("name") or author.get("author") or ""
            for b in author.get("books") or []:
                if isinstance(b, dict):
                    out.append(map_isbndb_book(b, default_author=name))
        logger.debug("isbndb: author search | query=%s | books=%s", query, len(out))
        return out

    data = get_json(
        session,
        f"{ISBNDB_BASE_URL}/books/{q}",
        params=params,
        timeout_s=timeout_s,
        retries=retries,
        label="ISBNdb",
    )
    if not isinstance(data, dict):
        raise CatalogError("ISBNdb returned an unexpected books payload")
    books = [map_isbndb_book(b) for b in data.get("books") or [] if isinstance(b, dict)]
    logger.debug("isbndb: books search | query=%s | books=%s", query, len(books))
    return books
