from __future__ import annotations

import logging
import re
from typing import Any, Dict

import requests

from bibliopulse.core.normalize import as_list, clean_description, normalize_isbn
from bibliopulse.integrations.http_client import CatalogError, get_json
from bibliopulse.integrations.isbndb import ISBNDB_BASE_URL
from bibliopulse.integrations.translation import translate_to_french

logger = logging.getLogger(__name__)

_ISBN_ID_RE = re.compile(r"^[0-9]{10}$|^[0-9]{13}$")


def _empty_details() -> Dict[str, Any]:
    return {
        "description": "",
        "subjects": [],
        "number_of_pages": 0,
        "publish_date": "",
        "publishers": [],
    }


def get_book_details(
    book_id: str,
    session: requests.Session,
    *,
    timeout_s: float = 15,
    retries: int = 0,
    translate: bool = False,
) -> Dict[str, Any]:
    """
    Fetch the detail fields ISBNdb list endpoints leave out.

    Only 10/13 digit ids are looked up; anything else, and every failure,
    yields the empty defaults.
    """
    book_id = (book_id or "").strip()
    if not _ISBN_ID_RE.match(book_id):
        logger.debug("details: not an isbn | id=%s", book_id)
        return _empty_details()

    try:
        data = get_json(
            session,
            f"{ISBNDB_BASE_URL}/book/{book_id}",
            timeout_s=timeout_s,
            retries=retries,
            label="ISBNdb",
        )
    except CatalogError as e:
        logger.warning("details: lookup failed | id=%s | err=%s", book_id, e)
        return _empty_details()

    book = data.get("book") if isinstance(data, dict) else None
    if not isinstance(book, dict):
        return _empty_details()

    description = clean_description(book.get("synopsis") or "")
    if translate and description:
        description = translate_to_french(description, session, timeout_s=timeout_s)

    try:
        pages = int(book.get("pages") or 0)
    except (TypeError, ValueError):
        pages = 0

    return {
        "description": description,
        "subjects": as_list(book.get("subjects")),
        "number_of_pages": pages,
        "publish_date": str(book.get("date_published") or ""),
        "publishers": as_list(book.get("publisher")),
        "isbn": normalize_isbn(book.get("isbn13") or book.get("isbn") or "") or None,
        "language": as_list(book.get("language")) or ["fr"],
    }
