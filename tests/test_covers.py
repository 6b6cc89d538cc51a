import requests

from bibliopulse.core.models import Book
from bibliopulse.enrich import covers as covers_mod
from bibliopulse.integrations import http_client as http_mod


def test_isbn_cover_url() -> None:
    assert covers_mod.isbn_cover_url("978-2-266-32048-5") == (
        "https://covers.openlibrary.org/b/isbn/9782266320485-L.jpg?default=false"
    )


def test_find_missing_covers_only_checks_books_without_cover(monkeypatch) -> None:
    checked = []

    def fake_check(session, url, timeout_s):
        checked.append(url)
        return "9782266320485" in url

    monkeypatch.setattr(covers_mod, "_check_url", fake_check)

    books = [
        Book(id="a", title="Dune", isbn="9782266320485"),
        Book(id="b", title="Ça", isbn="9782253151340"),
        Book(id="c", title="Has cover", isbn="9780000000001", cover="http://img"),
        Book(id="d", title="No isbn"),
    ]
    out = covers_mod.find_missing_covers(books, session=object(), concurrency=2, timeout_s=1)

    assert [b.id for b in out] == ["a", "b", "c", "d"]
    assert out[0].cover == covers_mod.isbn_cover_url("9782266320485")
    assert out[1].cover is None
    assert out[2].cover == "http://img"
    assert len(checked) == 2


def test_find_missing_covers_uses_own_sessions_and_closes_them(monkeypatch) -> None:
    used = []
    closed = []

    def fake_check(session, url, timeout_s):
        used.append(session)
        return False

    monkeypatch.setattr(covers_mod, "_check_url", fake_check)
    monkeypatch.setattr(requests.Session, "close", lambda self: closed.append(self))

    caller = http_mod.make_isbndb_session("secret")
    books = [Book(id=str(i), title="T", isbn=f"978000000000{i}") for i in range(4)]
    covers_mod.find_missing_covers(books, session=caller, concurrency=2, timeout_s=1)
    assert caller not in used
    assert all(s.headers["User-Agent"] == http_mod.USER_AGENT for s in used)
    assert set(map(id, closed)) == set(map(id, used))
    assert caller not in closed

    used.clear()
    closed.clear()
    covers_mod.find_missing_covers(books, concurrency=2, timeout_s=1)
    assert used
    assert "Authorization" not in used[0].headers
    assert set(map(id, closed)) == set(map(id, used))
