from bibliopulse.core.filters import filter_non_book_results, is_wanted_book, noise_signals
from bibliopulse.core.keywords import Keywords, load_keywords
from bibliopulse.core.models import Book


def _book(title: str, **kw) -> Book:
    return Book(id=kw.pop("id", title), title=title, author=kw.pop("author", ["Auteur Test"]), **kw)


def test_plain_novel_is_kept() -> None:
    assert is_wanted_book(_book("Dune", subjects=["Fiction"], format="Paperback"))
    assert is_wanted_book(_book("L'Étranger"))


def test_fast_reject_titles() -> None:
    assert not is_wanted_book(_book("Catalogue d'exposition Matisse"))
    assert not is_wanted_book(_book("Album de famille", subjects=["Roman"]))


def test_fiction_override_beats_keyword_noise() -> None:
    book = _book("Le Roman de la momie", subjects=["roman"], description="Premier tome de la saga.")
    sig = noise_signals(book)
    assert sig.technical
    assert sig.likely_fiction
    assert is_wanted_book(book)


def test_keyword_noise_drops_non_fiction() -> None:
    assert not is_wanted_book(_book("Dictionnaire des synonymes"))
    assert not is_wanted_book(_book("Précis de droit civil"))
    assert not is_wanted_book(_book("Dune", format="Audio CD"))


def test_hard_signals_beat_fiction_override() -> None:
    assert not is_wanted_book(_book("Le Roman de Tintin"))
    assert not is_wanted_book(_book("Roman " + "x" * 120))
    assert not is_wanted_book(_book("Roman", subjects=["Science / Physics"]))
    assert not is_wanted_book(_book("Roman", publishers=["Réunion des musées nationaux"]))
    assert not is_wanted_book(_book("Livre audio : le roman"))


def test_subject_heads_only() -> None:
    book = _book("Fondation", subjects=["Fiction / Science Fiction / General"])
    assert not noise_signals(book).non_literary_subject
    assert is_wanted_book(book)


def test_untitled_record_dropped() -> None:
    assert not is_wanted_book(_book(""))


def test_filter_preserves_order() -> None:
    books = [
        _book("Dune", id="a"),
        _book("Encyclopédie du jardin", id="b"),
        _book("Les Misérables", id="c"),
    ]
    out = filter_non_book_results(books)
    assert [b.id for b in out] == ["a", "c"]


def test_custom_keywords_override(tmp_path) -> None:
    path = tmp_path / "kw.yaml"
    path.write_text("series_characters:\n  - arrakis\nbogus_list:\n  - x\n", encoding="utf-8")
    kw = load_keywords(str(path))
    assert isinstance(kw, Keywords)
    assert kw.series_characters == ("arrakis",)
    assert "dictionnaire" in kw.unwanted_types
    assert not is_wanted_book(_book("Arrakis"), kw)
    assert is_wanted_book(_book("Tintin"), kw)
