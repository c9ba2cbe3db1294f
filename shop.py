from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from book import Book
from customer import Customer
from database import DocumentStore
from errors import ConflictGuard, NotFound
from rentals import Clock, RentalLifecycle
from repositories import BookRepository, CustomerRepository, RentalRepository

logger = logging.getLogger(__name__)


class RentalShop:
    """Wires one document store to the repositories and the rental lifecycle.

    This is the surface the HTTP routes and the CLI talk to. Lookups that miss
    raise :class:`NotFound`; blocked deletes raise :class:`ConflictGuard`.
    """

    def __init__(self, store: DocumentStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.books = BookRepository(store)
        self.customers = CustomerRepository(store)
        self.rentals = RentalRepository(store)
        self.lifecycle = RentalLifecycle(store, self.books, self.customers, self.rentals, clock=clock)

    @classmethod
    def open(cls, data_file: Optional[str] = None, clock: Optional[Clock] = None,
             strict: Optional[bool] = None) -> "RentalShop":
        store = DocumentStore(data_file, strict=strict).load()
        return cls(store, clock=clock)

    def close(self) -> None:
        self.store.close()

    # ------------------------- Books ------------------------- #
    def list_books(self) -> List[Book]:
        return self.books.list()

    def get_book(self, book_id: int) -> Book:
        book = self.books.get(book_id)
        if book is None:
            raise NotFound("Book", book_id)
        return book

    def create_book(self, fields: Dict[str, Any]) -> Book:
        return self.books.create(fields)

    def update_book(self, book_id: int, fields: Dict[str, Any]) -> Book:
        book = self.books.update(book_id, fields)
        if book is None:
            raise NotFound("Book", book_id)
        return book

    def delete_book(self, book_id: int) -> None:
        self.get_book(book_id)
        if not self.books.delete(book_id):
            raise ConflictGuard("Cannot delete book with active rentals")

    # ------------------------- Customers ------------------------- #
    def list_customers(self) -> List[Customer]:
        return self.customers.list()

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.customers.get(customer_id)
        if customer is None:
            raise NotFound("Customer", customer_id)
        return customer

    def create_customer(self, fields: Dict[str, Any]) -> Customer:
        return self.customers.create(fields)

    def update_customer(self, customer_id: int, fields: Dict[str, Any]) -> Customer:
        customer = self.customers.update(customer_id, fields)
        if customer is None:
            raise NotFound("Customer", customer_id)
        return customer

    def delete_customer(self, customer_id: int) -> None:
        self.get_customer(customer_id)
        if not self.customers.delete(customer_id):
            raise ConflictGuard("Cannot delete customer with active rentals")

    def list_customer_rentals(self, customer_id: int) -> List[Dict]:
        return self.lifecycle.list_for_customer(customer_id)

    # ------------------------- Rentals ------------------------- #
    def list_rentals(self) -> List[Dict]:
        return self.lifecycle.list_with_details()

    def get_rental(self, rental_id: int) -> Dict:
        return self.lifecycle.get_with_details(rental_id)

    def create_rental(self, book_id: int, customer_id: int, rental_days: int) -> Dict:
        return self.lifecycle.create_rental(book_id, customer_id, rental_days)

    def return_rental(self, rental_id: int) -> Dict:
        return self.lifecycle.return_rental(rental_id)

    def delete_rental(self, rental_id: int) -> None:
        self.lifecycle.delete_rental(rental_id)

    def list_overdue(self) -> List[Dict]:
        return self.lifecycle.list_overdue()

    def rental_stats(self) -> Dict:
        return self.lifecycle.stats()

    def health(self) -> Dict:
        return {
            "data_file": str(self.store.data_file),
            "last_save_ok": self.store.last_save_ok,
            "last_save_error": self.store.last_save_error,
            "books": len(self.store.books),
            "customers": len(self.store.customers),
            "rentals": len(self.store.rentals),
        }
