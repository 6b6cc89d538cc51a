from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

import requests

from bibliopulse.core.models import Book
from bibliopulse.core.normalize import as_list, clean_description, normalize_isbn
from bibliopulse.integrations.http_client import CatalogError, SessionPool, get_json

logger = logging.getLogger(__name__)

OPENLIBRARY_URL = "https://openlibrary.org"
COVERS_URL = "https://covers.openlibrary.org"
SEARCH_FIELDS = "key,title,author_name,cover_i,language,first_publish_year,edition_key,isbn,publisher,subject"
MAX_LIMIT = 100

# OpenLibrary stores MARC language codes
LANGUAGE_CODES: Dict[str, Tuple[str, ...]] = {
    "fr": ("fre", "fra"),
    "en": ("eng",),
    "es": ("spa",),
    "de": ("ger", "deu"),
    "it": ("ita",),
    "pt": ("por",),
    "nl": ("dut", "nld"),
}


def language_codes(language: Optional[str]) -> Tuple[str, ...]:
    if not language:
        return ()
    lang = language.strip().lower()
    return LANGUAGE_CODES.get(lang, (lang,))


def cover_url(cover_id) -> Optional[str]:
    if not cover_id:
        return None
    return f"{COVERS_URL}/b/id/{cover_id}-L.jpg"


def _description(details: Optional[dict]) -> str:
    if not details:
        return ""
    desc = details.get("description") or ""
    if isinstance(desc, dict):
        desc = desc.get("value") or ""
    return clean_description(str(desc))


def _fetch_details(
    session: requests.Session,
    path: str,
    *,
    timeout_s: float,
    retries: int,
) -> Optional[dict]:
    try:
        data = get_json(session, f"{OPENLIBRARY_URL}{path}.json", timeout_s=timeout_s, retries=retries, label="OpenLibrary")
    except CatalogError as e:
        logger.debug("openlibrary: detail fetch failed | path=%s | err=%s", path, e)
        return None
    return data if isinstance(data, dict) else None


def map_openlibrary_doc(doc: Dict, work: Optional[dict] = None, edition: Optional[dict] = None) -> Book:
    isbns = as_list(doc.get("isbn"))
    isbn = normalize_isbn(isbns[0]) if isbns else ""
    pages = (edition or {}).get("number_of_pages") or (work or {}).get("number_of_pages")
    publishers = as_list((edition or {}).get("publishers")) or as_list(doc.get("publisher"))[:3]
    subjects = as_list((work or {}).get("subjects")) or as_list(doc.get("subject"))
    return Book(
        id=str(doc.get("key") or isbn or ""),
        title=doc.get("title") or "",
        author=as_list(doc.get("author_name")),
        cover=cover_url(doc.get("cover_i")),
        language=as_list(doc.get("language")),
        isbn=isbn or None,
        publishers=publishers,
        subjects=subjects,
        description=_description(work),
        number_of_pages=pages if isinstance(pages, int) and pages > 0 else None,
        publish_date=str(doc.get("first_publish_year") or ""),
    )


def _search_params(query: str, search_type: str, language: Optional[str], max_results: int) -> Dict[str, str]:
    params = {"fields": SEARCH_FIELDS, "limit": str(max(1, min(MAX_LIMIT, int(max_results))))}
    if search_type == "author":
        params["author"] = query
    elif search_type == "title":
        params["title"] = query
    elif search_type == "isbn":
        params["isbn"] = normalize_isbn(query)
    else:
        params["q"] = query
    codes = language_codes(language)
    if codes and search_type != "isbn":
        params["language"] = codes[0]
    return params


def search(
    session: requests.Session,
    query: str,
    search_type: str,
    *,
    language: Optional[str] = None,
    max_results: int = 20,
    timeout_s: float = 15,
    retries: int = 0,
    concurrency: int = 6,
) -> List[Book]:
    """
    Search OpenLibrary, then fetch work and first-edition details for every
    hit concurrently. A failed detail fetch only leaves those fields empty.
    """
    query = (query or "").strip()
    if not query:
        return []
    if search_type == "isbn" and not normalize_isbn(query):
        return []

    data = get_json(
        session,
        f"{OPENLIBRARY_URL}/search.json",
        params=_search_params(query, search_type, language, max_results),
        timeout_s=timeout_s,
        retries=retries,
        label="OpenLibrary",
    )
    if not isinstance(data, dict):
        raise CatalogError("OpenLibrary returned an unexpected payload")

    codes = set(language_codes(language)) if search_type != "isbn" else set()
    docs = []
    for doc in data.get("docs") or []:
        if not isinstance(doc, dict):
            continue
        if codes and not codes.intersection(as_list(doc.get("language"))):
            continue
        docs.append(doc)
    docs = docs[: max(1, int(max_results))]
    if not docs:
        return []

    pool = SessionPool(session)

    def _details(doc: dict) -> Book:
        sess = pool.get()
        work = None
        edition = None
        if doc.get("key"):
            work = _fetch_details(sess, str(doc["key"]), timeout_s=timeout_s, retries=retries)
        editions = as_list(doc.get("edition_key"))
        if editions:
            edition = _fetch_details(sess, f"/books/{editions[0]}", timeout_s=timeout_s, retries=retries)
        return map_openlibrary_doc(doc, work, edition)

    with pool, ThreadPoolExecutor(max_workers=max(1, concurrency)) as ex:
        books = list(ex.map(_details, docs))

    logger.debug("openlibrary: search | type=%s | query=%s | books=%s", search_type, query, len(books))
    return books
