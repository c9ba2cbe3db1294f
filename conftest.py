from datetime import date, timedelta

import pytest

from database import DocumentStore
from shop import RentalShop


class FakeClock:
    """Stands in for date.today so tests can move time forward."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int) -> None:
        self.today = self.today + timedelta(days=days)


@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 1))


@pytest.fixture
def data_file(tmp_path, request):
    # One document per test, inside a directory that does not exist yet
    return str(tmp_path / "data" / f"shop_{request.node.name}.json")


@pytest.fixture
def shop(data_file, clock):
    shop = RentalShop.open(data_file, clock=clock, strict=False)
    yield shop
    shop.close()


@pytest.fixture
def reload(data_file):
    """Read the document back from disk into a fresh store."""
    def _reload() -> DocumentStore:
        return DocumentStore(data_file, strict=False).load()
    return _reload


@pytest.fixture
def make_book(shop):
    def _make_book(**overrides):
        fields = {
            "title": "Dune",
            "author": "Frank Herbert",
            "isbn": "9780441172719",
            "price_buy": 350,
            "price_rent": 20,
            "stock": 1,
            "status": "available",
        }
        fields.update(overrides)
        return shop.create_book(fields)
    return _make_book


@pytest.fixture
def make_customer(shop):
    counter = {"n": 0}

    def _make_customer(**overrides):
        counter["n"] += 1
        fields = {"name": f"Customer {counter['n']}", "phone": f"08000000{counter['n']:02d}"}
        fields.update(overrides)
        return shop.create_customer(fields)
    return _make_customer
