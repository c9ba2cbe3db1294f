"""Rental lifecycle: renting a copy out, taking it back, and overdue upkeep.

State machine of a rental::

    active --return--> returned
    active --(due date passed)--> overdue --return--> returned

``returned`` is terminal apart from deletion. Every multi-entity operation
here runs in a single :meth:`DocumentStore.transaction`, so the rental row and
the book's stock are written together or not at all.
"""

import logging
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

import projection
from database import DocumentStore
from errors import ConflictGuard, NotFound, ValidationFailed
from rental import Rental, derive_overdue
from repositories import BookRepository, CustomerRepository, RentalRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], date]


class RentalLifecycle:
    def __init__(self, store: DocumentStore, books: BookRepository, customers: CustomerRepository,
                 rentals: RentalRepository, clock: Optional[Clock] = None) -> None:
        self._store = store
        self.books = books
        self.customers = customers
        self.rentals = rentals
        self.clock: Clock = clock or date.today

    def today(self) -> date:
        return self.clock()

    def create_rental(self, book_id: int, customer_id: int, rental_days: int) -> Dict:
        if isinstance(rental_days, bool) or not isinstance(rental_days, int) or rental_days < 1:
            raise ValidationFailed("rental_days must be a whole number of at least 1")

        with self._store.transaction():
            book = self.books.get(book_id)
            if book is None:
                raise NotFound("Book", book_id)
            if not book.is_rentable:
                raise ConflictGuard("Book is out of stock" if book.stock <= 0 else "Book is not available for rent")
            if self.customers.get(customer_id) is None:
                raise NotFound("Customer", customer_id)

            today = self.today()
            rental = self.rentals.create(
                book_id=book_id,
                customer_id=customer_id,
                rental_date=today,
                due_date=today + timedelta(days=rental_days),
            )
            remaining = book.stock - 1
            self.books.update(book_id, {
                "stock": remaining,
                "status": "rented" if remaining <= 0 else "available",
            })

        logger.info(f"Rental #{rental.id} created: book #{book_id} to customer #{customer_id}, due {rental.due_date}")
        return self.details(rental)

    def return_rental(self, rental_id: int) -> Dict:
        """Close an active or overdue rental and put the copy back on the shelf.

        The book goes back to ``available`` even if it had been marked ``sold``
        in the meantime.
        """
        with self._store.transaction():
            rental = self.rentals.get(rental_id)
            if rental is None:
                raise NotFound("Rental", rental_id)
            if not rental.is_open:
                raise ConflictGuard("Rental is not active")

            self.rentals.update(rental_id, {"return_date": self.today(), "status": "returned"})
            book = self.books.get(rental.book_id)
            if book is not None:
                self.books.update(book.id, {"stock": book.stock + 1, "status": "available"})
            else:
                logger.warning(f"Rental #{rental_id} returned but book #{rental.book_id} no longer exists")

        logger.info(f"Rental #{rental_id} returned")
        return self.details(rental)

    def delete_rental(self, rental_id: int) -> None:
        rental = self.rentals.get(rental_id)
        if rental is None:
            raise NotFound("Rental", rental_id)
        if rental.status != "returned":
            raise ConflictGuard("Cannot delete active rental. Please return the book first.")
        self.rentals.delete(rental_id)
        logger.info(f"Rental #{rental_id} deleted")

    def reconcile_overdue(self, rental_id: Optional[int] = None) -> List[Rental]:
        """Persist ``overdue`` on active rentals whose due date has passed.

        This is the only place where reading rentals leads to a write. Pass
        ``rental_id`` to limit the upkeep to one rental. Returns the rentals
        that changed.
        """
        today = self.today()
        with self._store.transaction():
            candidates = self._store.rentals if rental_id is None else [self.rentals.get(rental_id)]
            stale = [r for r in candidates if r is not None and derive_overdue(r, today) != r.status]
            for rental in stale:
                self.rentals.update(rental.id, {"status": "overdue"})
        if stale:
            logger.info(f"Marked {len(stale)} rental(s) overdue")
        return stale

    # ------------------------- Read paths ------------------------- #
    def details(self, rental: Rental) -> Dict:
        return projection.enrich(rental, self.books, self.customers, self.today())

    def list_with_details(self) -> List[Dict]:
        self.reconcile_overdue()
        return projection.enrich_all(self.rentals.list(), self.books, self.customers, self.today())

    def get_with_details(self, rental_id: int) -> Dict:
        if self.rentals.get(rental_id) is None:
            raise NotFound("Rental", rental_id)
        self.reconcile_overdue(rental_id)
        return self.details(self.rentals.get(rental_id))

    def list_for_customer(self, customer_id: int) -> List[Dict]:
        """Enriched rentals of one customer; derivations are shown, not stored."""
        if self.customers.get(customer_id) is None:
            raise NotFound("Customer", customer_id)
        rentals = self.rentals.list_for_customer(customer_id)
        return projection.enrich_all(rentals, self.books, self.customers, self.today())

    def list_overdue(self) -> List[Dict]:
        self.reconcile_overdue()
        overdue = [r for r in self.rentals.list() if r.status == "overdue"]
        return projection.enrich_all(overdue, self.books, self.customers, self.today())

    def stats(self) -> Dict:
        return projection.rental_stats(self.rentals.list(), self.books, self.today())
