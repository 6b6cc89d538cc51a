import pytest

from bibliopulse import search as search_mod
from bibliopulse.cache import SearchCache
from bibliopulse.config import AppConfig
from bibliopulse.core.models import Book
from bibliopulse.integrations import google_books as google_mod
from bibliopulse.integrations import isbndb as isbndb_mod
from bibliopulse.integrations.http_client import CatalogError, make_isbndb_session


def _cfg(**kw) -> AppConfig:
    return AppConfig(isbndb_api_key="test-key", **kw)


def _isbndb_book(title, authors, isbn, subjects=("Fiction",), binding="Paperback") -> dict:
    return {
        "title": title,
        "authors": authors,
        "isbn13": isbn,
        "subjects": list(subjects),
        "publisher": "Pocket",
        "binding": binding,
        "language": "fr",
    }


def _dune_payload() -> dict:
    return {
        "total": 6,
        "books": [
            _isbndb_book("Dune", ["Frank Herbert"], "9782266320485"),
            _isbndb_book("Dune!", ["Frank Herbert"], "9782221256682"),
            _isbndb_book("Dune : catalogue de l'exposition", ["Musée X"], "9780000000001", subjects=()),
            _isbndb_book("Dunes de sable", ["Paul Sable"], "9780000000002", subjects=()),
            _isbndb_book("Dictionnaire de Dune", ["Jean Dupont"], "9780000000003", subjects=()),
            _isbndb_book("Le Messie de Dune", ["Frank Herbert"], "9782266320492"),
        ],
    }


def test_blank_query_touches_neither_network_nor_cache(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(search_mod, "fetch_books", lambda *a, **k: calls.append(a) or [])

    class _NoCache:
        def get(self, key):
            raise AssertionError("cache must not be read for a blank query")

        def put(self, key, books):
            raise AssertionError("cache must not be written for a blank query")

    outcome = search_mod.search_all_books_outcome("   ", "title", config=_cfg(), session=object(), cache=_NoCache())
    assert outcome.ok
    assert outcome.books == []
    assert search_mod.search_author_books("", config=_cfg(), session=object()) == []
    assert search_mod.search_books_by_title(None, config=_cfg(), session=object()) == []
    assert search_mod.search_books_by_isbn("--", config=_cfg(), session=object()) == []
    assert calls == []


def test_title_search_end_to_end(monkeypatch) -> None:
    seen = []

    def fake_get_json(session, url, *, params=None, **kwargs):
        seen.append((url, params))
        return _dune_payload()

    monkeypatch.setattr(isbndb_mod, "get_json", fake_get_json)
    books = search_mod.search_all_books("Dune", "title", config=_cfg(), session=object())

    assert [b.title for b in books] == ["Dune", "Le Messie de Dune"]
    assert all(b.author == ["Frank Herbert"] for b in books)
    assert seen[0][0] == "https://api2.isbndb.com/books/Dune"
    assert seen[0][1]["language"] == "fr"


def test_dune_editions_collapse_to_one_record(monkeypatch) -> None:
    payload = {
        "total": 4,
        "books": [
            _isbndb_book("Dune", ["Frank Herbert"], "9782266320478", binding="Audio CD"),
            _isbndb_book("Dune : catalogue de l'exposition", ["Frank Herbert"], "9780000000001"),
            _isbndb_book("Dune", ["Frank Herbert"], "9782266320485"),
            _isbndb_book("Dune!", ["Frank Herbert"], "9782221256682"),
        ],
    }
    monkeypatch.setattr(isbndb_mod, "get_json", lambda *a, **k: payload)

    books = search_mod.search_all_books("Dune", "title", config=_cfg(), session=object())

    assert len(books) == 1
    assert (books[0].id, books[0].format) == ("9782266320485", "Paperback")


def test_general_search_runs_as_title(monkeypatch) -> None:
    seen = []

    def fake_fetch(session, query, search_type, cfg, **kwargs):
        seen.append(search_type)
        return [Book(id="1", title="Dune", author=["Frank Herbert"])]

    monkeypatch.setattr(search_mod, "fetch_books", fake_fetch)
    outcome = search_mod.search_all_books_outcome("dune", "general", config=_cfg(), session=object())
    assert seen == ["title"]
    assert [b.id for b in outcome.books] == ["1"]


def test_author_search_keeps_only_that_author(monkeypatch) -> None:
    def fake_fetch(session, query, search_type, cfg, **kwargs):
        assert search_type == "author"
        return [
            Book(id="1", title="Ça", author=["Stephen King"]),
            Book(id="2", title="Le Guide du voyageur", author=["Stephen Fry"]),
            Book(id="3", title="Histoires", author=["Collectif"]),
        ]

    monkeypatch.setattr(search_mod, "fetch_books", fake_fetch)
    books = search_mod.search_author_books("Stephen King", config=_cfg(), session=object())
    assert [b.id for b in books] == ["1"]


def test_failure_is_reported_in_outcome(monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise CatalogError("ISBNdb 503", status_code=503)

    monkeypatch.setattr(isbndb_mod, "get_json", boom)
    outcome = search_mod.search_all_books_outcome("Dune", "title", config=_cfg(), session=object())
    assert not outcome.ok
    assert outcome.books == []
    assert "503" in outcome.error

    assert search_mod.search_books_by_title("Dune", config=_cfg(), session=object()) == []


def test_unknown_search_type_is_an_error() -> None:
    outcome = search_mod.search_all_books_outcome("Dune", "publisher", config=_cfg(), session=object())
    assert not outcome.ok


def test_unknown_provider_fails_soft() -> None:
    cfg = _cfg(provider="amazon")
    assert search_mod.search_books_by_title("Dune", config=cfg, session=object()) == []


def test_results_are_truncated(monkeypatch) -> None:
    def fake_fetch(session, query, search_type, cfg, **kwargs):
        return [Book(id=str(i), title=f"Dune {i}", author=["Frank Herbert"]) for i in range(10)]

    monkeypatch.setattr(search_mod, "fetch_books", fake_fetch)
    books = search_mod.search_all_books("dune", "title", max_results=3, config=_cfg(), session=object())
    assert [b.id for b in books] == ["0", "1", "2"]


def test_cache_hit_skips_network(monkeypatch, tmp_path) -> None:
    cache = SearchCache(str(tmp_path / "cache.ndjson"))
    monkeypatch.setattr(isbndb_mod, "get_json", lambda *a, **k: _dune_payload())
    first = search_mod.search_all_books_outcome("Dune", "title", config=_cfg(), session=object(), cache=cache)
    assert not first.from_cache

    def _fail(*args, **kwargs):
        raise AssertionError("Should not call network when cache hit")

    monkeypatch.setattr(isbndb_mod, "get_json", _fail)
    again = search_mod.search_all_books_outcome("  dune ", "title", config=_cfg(), session=object(), cache=cache)
    assert again.from_cache
    assert [b.title for b in again.books] == [b.title for b in first.books]
    assert cache.stats["hits"] == 1


def test_dispatches_to_google(monkeypatch) -> None:
    seen = {}

    def fake_search(session, query, search_type, **kwargs):
        seen.update(kwargs, query=query, search_type=search_type)
        return []

    monkeypatch.setattr(google_mod, "search", fake_search)
    cfg = _cfg(provider="google", google_books_api_key="g-key")
    assert search_mod.fetch_books(object(), "Dune", "title", cfg, max_results=7) == []
    assert seen["api_key"] == "g-key"
    assert seen["max_results"] == 7
    assert seen["search_type"] == "title"


def test_fetch_books_unknown_provider_raises() -> None:
    with pytest.raises(CatalogError):
        search_mod.fetch_books(object(), "Dune", "title", _cfg(provider="nope"))


def test_isbn_batch_keeps_input_order(monkeypatch) -> None:
    def fake_fetch(session, query, search_type, cfg, **kwargs):
        assert search_type == "isbn"
        if query == "9780000000000":
            return []
        return [Book(id=query, title=f"Livre {query}", author=["A"], isbn=query)]

    monkeypatch.setattr(search_mod, "fetch_books", fake_fetch)
    books = search_mod.search_books_by_isbns(
        ["978-2-266-32048-5", "9780000000000", "2266320483", "9782266320485"],
        config=_cfg(concurrency=3),
        session=object(),
    )
    assert [b.id for b in books] == ["9782266320485", "2266320483"]


def test_isbn_batch_collapses_isbn10_and_isbn13(monkeypatch) -> None:
    def fake_fetch(session, query, search_type, cfg, **kwargs):
        return [Book(id="9782266320485", title="Dune", author=["Frank Herbert"], isbn="9782266320485")]

    monkeypatch.setattr(search_mod, "fetch_books", fake_fetch)
    books = search_mod.search_books_by_isbns(["9782266320485", "2266320483"], config=_cfg(), session=object())
    assert [b.id for b in books] == ["9782266320485"]


def test_isbn_batch_workers_get_cloned_sessions(monkeypatch) -> None:
    base = make_isbndb_session("test-key")
    used = []

    def fake_fetch(session, query, search_type, cfg, **kwargs):
        used.append(session)
        return []

    monkeypatch.setattr(search_mod, "fetch_books", fake_fetch)
    search_mod.search_books_by_isbns(
        ["9782266320485", "9782221256682", "9782266320492"],
        config=_cfg(concurrency=3),
        session=base,
    )
    assert len(used) == 3
    assert all(s is not base for s in used)
    assert all(s.headers["Authorization"] == "test-key" for s in used)


def test_max_results_below_one_is_rejected(monkeypatch) -> None:
    def fake_fetch(session, query, search_type, cfg, **kwargs):
        return [Book(id="1", title="Dune", author=["Frank Herbert"])]

    monkeypatch.setattr(search_mod, "fetch_books", fake_fetch)
    for bad in (0, -1):
        outcome = search_mod.search_all_books_outcome("Dune", "title", max_results=bad, config=_cfg(), session=object())
        assert not outcome.ok
        assert outcome.books == []
    assert [b.id for b in search_mod.search_books_by_title("Dune", max_results=-1, config=_cfg(), session=object())] == ["1"]


def test_fetch_books_clamps_limit(monkeypatch) -> None:
    seen = {}

    def fake_search(session, query, search_type, **kwargs):
        seen.update(kwargs)
        return []

    monkeypatch.setattr(isbndb_mod, "search", fake_search)
    search_mod.fetch_books(object(), "Dune", "title", _cfg(), max_results=-5)
    assert seen["max_results"] == 1
