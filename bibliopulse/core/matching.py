from __future__ import annotations

import math
import re
from typing import Iterable, List, Optional

from bibliopulse.core.keywords import Keywords, default_keywords
from bibliopulse.core.models import Book
from bibliopulse.core.normalize import as_list, normalize_string

TITLE_OVERLAP_RATIO = 0.9
SHORT_WORD_LEN = 4
MIN_AUTHOR_LEN = 3


def _any_in(terms: Iterable[str], hay: str) -> bool:
    return any(t in hay for t in terms)


def _whole_word(word: str, hay: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", hay) is not None


def _is_generic_author(name: str, kw: Keywords) -> bool:
    name = (name or "").strip().lower()
    if _any_in(kw.generic_author_substrings, name):
        return True
    return name in kw.generic_author_names


def _query_terms(query: str) -> List[str]:
    terms = [normalize_string(t) for t in (query or "").lower().split() if len(t) > 1]
    return [t for t in terms if t]


def _terms_in_order(terms: List[str], hay: str) -> bool:
    rest = hay
    for term in terms:
        idx = rest.find(term)
        if idx == -1:
            return False
        rest = rest[idx + len(term):]
    return True


def _author_matches(author: str, terms: List[str], norm_query: str, kw: Keywords) -> bool:
    author_lower = (author or "").strip().lower()
    if not author_lower or len(author_lower) < MIN_AUTHOR_LEN:
        return False
    if _is_generic_author(author_lower, kw):
        return False

    norm_author = normalize_string(author_lower)
    if norm_author == norm_query:
        return True

    if _terms_in_order(terms, norm_author):
        return True

    words = norm_author.split()
    for term in terms:
        if not any(w == term or w.startswith(term) or w.endswith(term) for w in words):
            return False

    if len(terms) >= 2:
        # first and last query terms must land on two different author words
        first_hits = {i for i, w in enumerate(words) if w.startswith(terms[0])}
        last_hits = {i for i, w in enumerate(words) if w.startswith(terms[-1])}
        return any(i != j for i in first_hits for j in last_hits)

    return True


def is_author_match(book: Book, query: str, keywords: Optional[Keywords] = None) -> bool:
    """
    Decide whether `book` is really by the author named in `query`.

    Three tiers, tried per credited author: exact normalized equality,
    query terms found in order inside the name, then every term matching
    the start or end of a name word (first and last terms on distinct words).
    Placeholder credits such as "Collectif" never match.
    """
    kw = keywords or default_keywords()
    authors = as_list(book.author)
    if not authors:
        return False

    terms = _query_terms(query)
    if not terms:
        return False

    norm_query = normalize_string(query)
    if _is_generic_author(norm_query, kw):
        return False

    return any(_author_matches(a, terms, norm_query, kw) for a in authors)


def is_title_explicit_match(book: Book, query: str, keywords: Optional[Keywords] = None) -> bool:
    """
    Decide whether `book`'s title genuinely answers a title search.

    Errs towards rejecting: catalogs, art books and children's activity
    titles never match, short queries need a whole-word hit, long queries
    need most of their words present.
    """
    kw = keywords or default_keywords()
    if not book.title or not (query or "").strip():
        return False

    title_lower = book.title.lower()
    if _any_in(kw.exhibition_title_markers, title_lower) or _any_in(kw.children_comics_markers, title_lower):
        return False

    norm_title = normalize_string(book.title)
    norm_query = normalize_string(query)
    if not norm_title or not norm_query:
        return False

    query_words = norm_query.split()
    significant = [w for w in query_words if len(w) > 2]

    if 1 <= len(significant) <= 2:
        if not any(_whole_word(w, norm_title) for w in significant):
            return False
        if _any_in(kw.art_exhibition_keywords, title_lower):
            return False

    if norm_query in norm_title:
        if len(query_words) == 1 and len(norm_query) <= SHORT_WORD_LEN:
            return _whole_word(norm_query, norm_title)
        return True

    if len(significant) > 2:
        needed = math.ceil(len(significant) * TITLE_OVERLAP_RATIO)
        found = sum(1 for w in significant if w in norm_title)
        return found >= needed

    return False
