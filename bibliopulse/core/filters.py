from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from bibliopulse.core.keywords import Keywords, default_keywords
from bibliopulse.core.models import Book

logger = logging.getLogger(__name__)

MAX_TITLE_LEN = 100


def _any_in(terms: Iterable[str], hay: str) -> bool:
    return any(t in hay for t in terms)


def _subject_heads(subjects: List[str]) -> List[str]:
    return [s.split("/", 1)[0].strip().lower() for s in subjects if s.strip()]


@dataclass(frozen=True)
class NoiseSignals:
    technical: bool
    unwanted_type: bool
    suspicious_title: bool
    unwanted_format: bool
    audiobook: bool
    title_too_long: bool
    non_literary_subject: bool
    art_exhibition: bool
    museum_publisher: bool
    series_character: bool
    likely_fiction: bool

    def keyword_noise(self) -> bool:
        return self.technical or self.unwanted_type or self.suspicious_title or self.unwanted_format

    def hard_noise(self) -> bool:
        return (
            self.audiobook
            or self.title_too_long
            or self.non_literary_subject
            or self.art_exhibition
            or self.museum_publisher
            or self.series_character
        )


def noise_signals(book: Book, keywords: Optional[Keywords] = None) -> NoiseSignals:
    kw = keywords or default_keywords()

    title = book.title.lower()
    author = book.author_text.lower()
    subjects = " ".join(book.subjects).lower()
    description = (book.description or "").lower()
    fmt = (book.format or "").lower()
    publishers = " ".join(book.publishers).lower()

    blob = f"{title} {author} {subjects} {description} {fmt} {publishers}"

    suspicious = any(title.startswith(p) for p in kw.suspicious_title_prefixes) or _any_in(
        kw.suspicious_title_substrings, title
    )
    audiobook = "audio" in fmt or _any_in(kw.audio_title_markers, title)
    heads = _subject_heads(book.subjects)
    non_literary = any(h in kw.non_literary_subjects for h in heads)
    art_exhibition = (
        _any_in(kw.art_exhibition_keywords, title)
        or _any_in(kw.art_exhibition_keywords, publishers)
        or _any_in(kw.art_exhibition_keywords, description)
    )

    return NoiseSignals(
        technical=_any_in(kw.technical_keywords, blob),
        unwanted_type=_any_in(kw.unwanted_types, title),
        suspicious_title=suspicious,
        unwanted_format=_any_in(kw.unwanted_formats, blob),
        audiobook=audiobook,
        title_too_long=len(title) > MAX_TITLE_LEN,
        non_literary_subject=non_literary,
        art_exhibition=art_exhibition,
        museum_publisher=_any_in(kw.museum_publishers, publishers),
        series_character=_any_in(kw.series_characters, title),
        likely_fiction=_any_in(kw.fiction_title_markers, title) or _any_in(kw.fiction_subject_markers, subjects),
    )


def is_wanted_book(book: Book, keywords: Optional[Keywords] = None) -> bool:
    """
    Keep a record only when no noise signal fires.

    Fiction markers bypass the keyword signals (technical, unwanted type,
    suspicious title, unwanted format) but never the format/exhibition ones.
    """
    kw = keywords or default_keywords()
    if not book.title:
        return False
    if _any_in(kw.fast_reject_title, book.title.lower()):
        return False

    sig = noise_signals(book, kw)
    if sig.hard_noise():
        return False
    if sig.likely_fiction:
        return True
    return not sig.keyword_noise()


def filter_non_book_results(books: Iterable[Book], keywords: Optional[Keywords] = None) -> List[Book]:
    kw = keywords or default_keywords()
    kept: List[Book] = []
    dropped = 0
    for book in books:
        if is_wanted_book(book, kw):
            kept.append(book)
            continue
        dropped += 1
        logger.debug("filter: dropped | id=%s | title=%s", book.id, book.title)
    if dropped:
        logger.debug("filter: kept=%s dropped=%s", len(kept), dropped)
    return kept
