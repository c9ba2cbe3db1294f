from __future__ import annotations

from datetime import date

RENTAL_STATUSES = ("active", "returned", "overdue")
# Rentals in these states still hold a copy of the book
OPEN_STATUSES = ("active", "overdue")


def parse_date(value: str | date | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    # Tolerate full ISO timestamps written by older builds
    return date.fromisoformat(str(value)[:10])


class Rental:
    """A rental transaction of one copy of a book to a customer.

    ``rental_date``, ``due_date`` and ``return_date`` carry day granularity
    only and are stored in the document as ``YYYY-MM-DD`` strings.
    """

    def __init__(self, id: int, book_id: int, customer_id: int, rental_date: date | str,
                 due_date: date | str, return_date: date | str | None = None,
                 status: str = "active", created_at: str | None = None) -> None:
        self.id = id
        self.book_id = book_id
        self.customer_id = customer_id
        self.rental_date = parse_date(rental_date)
        self.due_date = parse_date(due_date)
        self.return_date = parse_date(return_date)
        self.status = status
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"Rental #{self.id}: book {self.book_id} -> customer {self.customer_id} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def is_past_due(self, today: date) -> bool:
        return self.return_date is None and self.due_date < today

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "book_id": self.book_id,
            "customer_id": self.customer_id,
            "rental_date": self.rental_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "status": self.status,
            "created_at": self.created_at,
        }
        if self.return_date is not None:
            data["return_date"] = self.return_date.isoformat()
        return data

    @staticmethod
    def from_dict(data: dict) -> "Rental":
        return Rental(
            id=int(data["id"]),
            book_id=int(data["book_id"]),
            customer_id=int(data["customer_id"]),
            rental_date=data["rental_date"],
            due_date=data["due_date"],
            return_date=data.get("return_date"),
            status=data.get("status", "active"),
            created_at=data.get("created_at"),
        )


def derive_overdue(rental: Rental, today: date) -> str:
    """Return the status a rental should display on ``today``."""
    if rental.status == "active" and rental.is_past_due(today):
        return "overdue"
    return rental.status
