from __future__ import annotations

import html
import re
from typing import Iterable, List, Union

ISBN10_RE = re.compile(r"^\d{9}[\dX]$")
ISBN13_RE = re.compile(r"^\d{13}$")

_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]*>")
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_P_RE = re.compile(r"</?p>", re.IGNORECASE)
_BLANK_LINES_RE = re.compile(r"\n\s*\n")


def normalize_string(s: str) -> str:
    """Lower-case, drop punctuation and collapse whitespace for comparisons."""
    if not s:
        return ""
    s = str(s).lower()
    s = _PUNCT_RE.sub("", s)
    s = _WS_RE.sub(" ", s)
    return s.strip()


def as_list(val: Union[None, str, Iterable]) -> List[str]:
    if not val:
        return []
    if isinstance(val, str):
        v = val.strip()
        return [v] if v else []
    out: List[str] = []
    for x in val:
        if x is None:
            continue
        s = str(x).strip()
        if s:
            out.append(s)
    return out


def normalize_isbn(x: str) -> str:
    x = (x or "").strip()
    x = re.sub(r"[^0-9Xx]", "", x).upper()
    return x


def is_valid_isbn10(isbn10: str) -> bool:
    isbn10 = normalize_isbn(isbn10)
    if not ISBN10_RE.match(isbn10):
        return False
    total = 0
    for i, ch in enumerate(isbn10[:9], start=1):
        total += i * int(ch)
    check = isbn10[9]
    check_val = 10 if check == "X" else int(check)
    total += 10 * check_val
    return total % 11 == 0


def is_valid_isbn13(isbn13: str) -> bool:
    isbn13 = normalize_isbn(isbn13)
    if not ISBN13_RE.match(isbn13):
        return False
    digits = [int(c) for c in isbn13]
    s = 0
    for i in range(12):
        s += digits[i] * (1 if i % 2 == 0 else 3)
    check = (10 - (s % 10)) % 10
    return check == digits[12]


def isbn10_to_isbn13(isbn10: str) -> str:
    isbn10 = normalize_isbn(isbn10)
    if not is_valid_isbn10(isbn10):
        return ""
    core = "978" + isbn10[:9]
    digits = [int(c) for c in core]
    s = 0
    for i in range(12):
        s += digits[i] * (1 if i % 2 == 0 else 3)
    check = (10 - (s % 10)) % 10
    return f"{core}{check}"


def isbn13_to_isbn10(isbn13: str) -> str:
    """Only 978-prefixed ISBN-13s have an ISBN-10 form."""
    isbn13 = normalize_isbn(isbn13)
    if not ISBN13_RE.match(isbn13) or not isbn13.startswith("978"):
        return ""
    core = isbn13[3:12]
    total = sum(int(ch) * (10 - i) for i, ch in enumerate(core))
    check = 11 - (total % 11)
    if check == 10:
        check_ch = "X"
    elif check == 11:
        check_ch = "0"
    else:
        check_ch = str(check)
    return core + check_ch


def clean_description(text: str) -> str:
    if not text:
        return ""
    t = _BR_RE.sub("\n", str(text))
    t = _P_RE.sub("\n", t)
    t = _TAG_RE.sub("", t)
    t = html.unescape(t)
    t = _BLANK_LINES_RE.sub("\n\n", t)
    return t.strip()
