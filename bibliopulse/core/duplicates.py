from __future__ import annotations

from typing import Iterable, List, Optional, Set

from bibliopulse.core.models import Book
from bibliopulse.core.normalize import as_list, normalize_string

SUBTITLE_MIN_LEN_DIFF = 3


def _author_key(book: Book) -> str:
    return "|".join(sorted(normalize_string(a) for a in as_list(book.author)))


def dedup_key(book: Book) -> Optional[str]:
    """(normalized title, sorted normalized authors), or None for incomplete records."""
    if not book.title or not as_list(book.author):
        return None
    return f"{normalize_string(book.title)}___{_author_key(book)}"


def remove_duplicate_books(books: Iterable[Book]) -> List[Book]:
    unique: List[Book] = []
    seen_keys: Set[str] = set()
    seen_ids: Set[str] = set()
    for book in books:
        key = dedup_key(book)
        if key is None:
            continue
        if key in seen_keys or book.id in seen_ids:
            continue
        unique.append(book)
        seen_keys.add(key)
        seen_ids.add(book.id)
    return unique


def is_duplicate_book(existing_books: Iterable[Book], new_book: Optional[Book]) -> bool:
    """
    True when `new_book` already appears in `existing_books`.

    Besides an exact key match, a title that contains the other one
    ("Dune" / "Dune: Extended Edition") counts when the authors are
    identical and the lengths differ by more than a few characters.
    """
    if new_book is None or dedup_key(new_book) is None:
        return False

    new_title = normalize_string(new_book.title)
    new_author = _author_key(new_book)
    new_key = f"{new_title}___{new_author}"

    for book in existing_books:
        if book.id == new_book.id:
            continue
        key = dedup_key(book)
        if key is None:
            continue
        if key == new_key:
            return True

        title = normalize_string(book.title)
        if (title in new_title or new_title in title) and _author_key(book) == new_author:
            if abs(len(title) - len(new_title)) > SUBTITLE_MIN_LEN_DIFF:
                return True
    return False
