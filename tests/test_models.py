import pytest

from bibliopulse.core.models import Book, Review, RoadmapFeature, SearchOutcome


def test_book_coerces_string_fields_to_lists() -> None:
    b = Book(id=123, title="  Dune ", author="Frank Herbert", subjects="Fiction", language=None)
    assert b.id == "123"
    assert b.title == "Dune"
    assert b.author == ["Frank Herbert"]
    assert b.subjects == ["Fiction"]
    assert b.language == []
    assert b.author_text == "Frank Herbert"


def test_book_validates_reading_fields() -> None:
    with pytest.raises(ValueError):
        Book(id="1", title="x", status="abandoned")
    with pytest.raises(ValueError):
        Book(id="1", title="x", rating=6)
    b = Book(id="1", title="x", status="completed", rating=5)
    assert b.status == "completed"


def test_book_dict_round_trip_keeps_review() -> None:
    b = Book(id="1", title="Dune", author=["Frank Herbert"], review=Review(content="Culte", date="2024-01-02"))
    d = b.to_dict()
    assert d["review"] == {"content": "Culte", "date": "2024-01-02"}
    again = Book.from_dict({**d, "unknown": "ignored"})
    assert again == b
    assert isinstance(again.review, Review)


def test_search_outcome_ok() -> None:
    assert SearchOutcome(books=[]).ok
    assert not SearchOutcome(books=[], error="boom").ok


def test_roadmap_feature_status() -> None:
    with pytest.raises(ValueError):
        RoadmapFeature(name="x", description="", status="someday")
