from __future__ import annotations

BOOK_STATUSES = ("available", "rented", "sold")


class Book:
    """A title on the shop's shelf; `stock` counts the copies not rented out."""

    def __init__(self, id: int, title: str, author: str, isbn: str = "", price_buy: float = 0,
                 price_rent: float = 0, stock: int = 0, status: str = "available",
                 created_at: str | None = None) -> None:
        self.id = id
        self.title = title
        self.author = author
        self.isbn = isbn
        self.price_buy = price_buy
        self.price_rent = price_rent
        self.stock = stock
        self.status = status
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (#{self.id})"

    @property
    def is_rentable(self) -> bool:
        return self.stock > 0 and self.status == "available"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "price_buy": self.price_buy,
            "price_rent": self.price_rent,
            "stock": self.stock,
            "status": self.status,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=int(data["id"]),
            title=data["title"],
            author=data["author"],
            isbn=data.get("isbn") or "",
            price_buy=data.get("price_buy", 0),
            price_rent=data.get("price_rent", 0),
            stock=int(data.get("stock", 0)),
            status=data.get("status", "available"),
            created_at=data.get("created_at"),
        )
