from __future__ import annotations

import logging
from typing import Dict, List, Optional

import requests

from bibliopulse.core.models import Book
from bibliopulse.core.normalize import as_list, clean_description, normalize_isbn
from bibliopulse.integrations.http_client import CatalogError, get_json

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"
MAX_RESULTS = 40


def _pick_isbn(info: dict) -> Optional[str]:
    ids = {}
    for ident in info.get("industryIdentifiers") or []:
        if isinstance(ident, dict) and ident.get("type") and ident.get("identifier"):
            ids[ident["type"]] = normalize_isbn(ident["identifier"])
    return ids.get("ISBN_13") or ids.get("ISBN_10") or None


def map_google_item(item: Dict) -> Book:
    info = item.get("volumeInfo") or {}
    image_links = info.get("imageLinks") or {}
    cover = None
    if isinstance(image_links, dict):
        cover = image_links.get("thumbnail") or image_links.get("smallThumbnail") or None

    pages = info.get("pageCount")
    print_type = str(info.get("printType") or "")
    return Book(
        id=str(item.get("id") or _pick_isbn(info) or ""),
        title=info.get("title") or "",
        author=as_list(info.get("authors")),
        cover=cover,
        language=as_list(info.get("language")),
        isbn=_pick_isbn(info),
        publishers=as_list(info.get("publisher")),
        subjects=as_list(info.get("categories")),
        description=clean_description(info.get("description") or ""),
        number_of_pages=pages if isinstance(pages, int) and pages > 0 else None,
        publish_date=str(info.get("publishedDate") or ""),
        format="" if print_type == "BOOK" else print_type.lower(),
    )


def build_query(query: str, search_type: str) -> str:
    if search_type == "author":
        return f'inauthor:"{query}"'
    if search_type == "title":
        return f'intitle:"{query}"'
    if search_type == "isbn":
        return f"isbn:{normalize_isbn(query)}"
    return query


def search(
    session: requests.Session,
    query: str,
    search_type: str,
    *,
    api_key: Optional[str] = None,
    language: Optional[str] = None,
    max_results: int = 20,
    timeout_s: float = 15,
    retries: int = 0,
) -> List[Book]:
    query = (query or "").strip()
    if not query:
        return []
    if search_type == "isbn" and not normalize_isbn(query):
        return []

    params = {
        "q": build_query(query, search_type),
        "maxResults": str(max(1, min(MAX_RESULTS, int(max_results)))),
        "printType": "books",
    }
    if language and search_type != "isbn":
        params["langRestrict"] = language
    if api_key:
        params["key"] = api_key

    data = get_json(session, GOOGLE_BOOKS_URL, params=params, timeout_s=timeout_s, retries=retries, label="GoogleBooks")
    if not isinstance(data, dict):
        raise CatalogError("GoogleBooks returned an unexpected payload")
    books = [map_google_item(item) for item in data.get("items") or [] if isinstance(item, dict)]
    logger.debug("google: search | type=%s | query=%s | books=%s", search_type, query, len(books))
    return books
