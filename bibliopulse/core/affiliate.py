from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote

from bibliopulse.core.models import Book
from bibliopulse.core.normalize import isbn13_to_isbn10, normalize_isbn

AMAZON_BASE_URL = "https://www.amazon.fr"
DEFAULT_AFFILIATE_ID = "bibliopulse22-21"

_ASIN_RE = re.compile(r"^[0-9]{9}[0-9X]$|^97[89][0-9]{10}$")


def _search_url(book: Book, affiliate_id: str) -> str:
    author = book.author[0] if book.author else ""
    q = quote(f"{book.title} {author}".strip(), safe="")
    return f"{AMAZON_BASE_URL}/s?k={q}&i=stripbooks&tag={affiliate_id}"


def amazon_affiliate_url(book: Optional[Book], affiliate_id: str = DEFAULT_AFFILIATE_ID) -> str:
    """
    Affiliate link for the "books to buy" list.

    Product page when the ISBN is usable (978 ISBN-13s become ASIN/ISBN-10),
    otherwise a title + author search.
    """
    if book is None:
        return f"{AMAZON_BASE_URL}/?tag={affiliate_id}"

    asin = normalize_isbn(book.isbn or "")
    if not _ASIN_RE.match(asin):
        return _search_url(book, affiliate_id)

    if len(asin) == 13 and asin.startswith("978"):
        asin = isbn13_to_isbn10(asin) or asin

    return f"{AMAZON_BASE_URL}/dp/{asin}/?tag={affiliate_id}"


def is_amazon_link_valid(url: Optional[str], affiliate_id: str = DEFAULT_AFFILIATE_ID) -> bool:
    if not url:
        return False
    if "amazon.fr" not in url:
        return False
    return f"tag={affiliate_id}" in url
