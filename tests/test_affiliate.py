from bibliopulse.core.affiliate import amazon_affiliate_url, is_amazon_link_valid
from bibliopulse.core.models import Book


def test_product_link_from_isbn13() -> None:
    book = Book(id="1", title="Dune", author=["Frank Herbert"], isbn="978-0-306-40615-7")
    url = amazon_affiliate_url(book, "tag-21")
    assert url == "https://www.amazon.fr/dp/0306406152/?tag=tag-21"
    assert is_amazon_link_valid(url, "tag-21")


def test_product_link_from_isbn10_and_979() -> None:
    b10 = Book(id="1", title="x", isbn="207036822X")
    assert amazon_affiliate_url(b10, "t").endswith("/dp/207036822X/?tag=t")
    b979 = Book(id="2", title="x", isbn="9791032100000")
    assert amazon_affiliate_url(b979, "t").endswith("/dp/9791032100000/?tag=t")


def test_search_link_without_isbn() -> None:
    book = Book(id="1", title="Le Petit Prince", author=["Antoine de Saint-Exupéry"])
    url = amazon_affiliate_url(book, "t")
    assert url.startswith("https://www.amazon.fr/s?k=Le%20Petit%20Prince%20Antoine")
    assert "i=stripbooks" in url
    assert url.endswith("&tag=t")


def test_no_book() -> None:
    assert amazon_affiliate_url(None, "t") == "https://www.amazon.fr/?tag=t"


def test_link_validation() -> None:
    assert not is_amazon_link_valid("", "t")
    assert not is_amazon_link_valid("https://www.amazon.com/dp/1/?tag=t", "t")
    assert not is_amazon_link_valid("https://www.amazon.fr/dp/1/?tag=other", "t")
