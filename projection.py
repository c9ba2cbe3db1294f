"""Read-only views over rentals: the denormalized rental row and the stats.

Nothing in here writes to the store. Dangling book or customer references
are shown as ``"Unknown"`` instead of failing the whole listing.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List

from rental import Rental, derive_overdue

UNKNOWN = "Unknown"


def days_rented(rental: Rental, today: date) -> int:
    """Whole days between rental and return; an open rental counts today as begun."""
    if rental.return_date is not None:
        return max((rental.return_date - rental.rental_date).days, 0)
    return max((today - rental.rental_date).days + 1, 0)


def is_overdue(rental: Rental, today: date) -> bool:
    return rental.status == "overdue" or (rental.status == "active" and rental.due_date < today)


def enrich(rental: Rental, books, customers, today: date) -> Dict:
    """Join a rental with its book and customer for display."""
    book = books.get(rental.book_id)
    customer = customers.get(rental.customer_id)

    view = rental.to_dict()
    view.setdefault("return_date", None)
    view.update({
        "status": derive_overdue(rental, today),
        "book_title": book.title if book else UNKNOWN,
        "book_author": book.author if book else UNKNOWN,
        "book_price_rent": book.price_rent if book else 0,
        "customer_name": customer.name if customer else UNKNOWN,
        "customer_phone": customer.phone if customer else UNKNOWN,
        "days_rented": days_rented(rental, today),
        "is_overdue": is_overdue(rental, today),
    })
    return view


def enrich_all(rentals: Iterable[Rental], books, customers, today: date) -> List[Dict]:
    return [enrich(r, books, customers, today) for r in rentals]


def rental_stats(rentals: List[Rental], books, today: date) -> Dict:
    """Aggregate counters for the rentals overview.

    ``overdue_rentals`` counts active rentals past their due date only; rows
    already stored as ``overdue`` are not included. ``total_revenue`` adds the
    book's flat ``price_rent`` once per returned rental.
    """
    revenue = 0.0
    for rental in rentals:
        if rental.status != "returned":
            continue
        book = books.get(rental.book_id)
        revenue += book.price_rent if book else 0

    return {
        "total_rentals": len(rentals),
        "active_rentals": sum(1 for r in rentals if r.status == "active"),
        "overdue_rentals": sum(1 for r in rentals if r.status == "active" and r.due_date < today),
        "returned_rentals": sum(1 for r in rentals if r.status == "returned"),
        "total_revenue": revenue,
    }
