from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from book import BOOK_STATUSES, Book
from customer import Customer
from database import DocumentStore, utc_timestamp
from errors import ValidationFailed
from rental import RENTAL_STATUSES, Rental, parse_date
from utils.validators import EmailValidator, NumberValidator, PhoneValidator, TextValidator

logger = logging.getLogger(__name__)


def _newest_first(rows: list) -> list:
    return sorted(rows, key=lambda row: (row.created_at or "", row.id), reverse=True)


def _find_index(rows: list, row_id: int) -> int:
    for index, row in enumerate(rows):
        if row.id == row_id:
            return index
    return -1


class BookRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list(self) -> List[Book]:
        return _newest_first(self._store.books)

    def get(self, book_id: int) -> Optional[Book]:
        index = _find_index(self._store.books, book_id)
        return self._store.books[index] if index != -1 else None

    def create(self, fields: Dict[str, Any]) -> Book:
        values = self._clean(fields, partial=False)
        with self._store.transaction():
            book = Book(
                id=self._store.next_identifier("books"),
                created_at=utc_timestamp(),
                **values,
            )
            self._store.books.append(book)
            self._store.mark_dirty()
        logger.info(f"Book #{book.id} created: {book.title}")
        return book

    def update(self, book_id: int, fields: Dict[str, Any]) -> Optional[Book]:
        """Merge the given fields into a book. Returns None if it does not exist."""
        book = self.get(book_id)
        if book is None:
            return None
        values = self._clean(fields, partial=True)
        with self._store.transaction():
            for key, value in values.items():
                setattr(book, key, value)
            self._store.mark_dirty()
        return book

    def delete(self, book_id: int) -> bool:
        """Remove a book unless it is missing or still rented out."""
        with self._store.transaction():
            index = _find_index(self._store.books, book_id)
            if index == -1 or self.has_open_rentals(book_id):
                return False
            self._store.books.pop(index)
            self._store.mark_dirty()
        logger.info(f"Book #{book_id} deleted")
        return True

    def has_open_rentals(self, book_id: int) -> bool:
        return any(r.book_id == book_id and r.is_open for r in self._store.rentals)

    @staticmethod
    def _clean(fields: Dict[str, Any], partial: bool) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if not partial:
            values["title"] = TextValidator.require(fields.get("title"), "title")
            values["author"] = TextValidator.require(fields.get("author"), "author")
            values["isbn"] = TextValidator.clean(fields.get("isbn"))
            values["price_buy"] = NumberValidator.non_negative(fields.get("price_buy") or 0, "price_buy")
            values["price_rent"] = NumberValidator.non_negative(fields.get("price_rent") or 0, "price_rent")
            values["stock"] = NumberValidator.non_negative_int(fields.get("stock") or 0, "stock")
            values["status"] = fields.get("status") or "available"
        else:
            for key in ("title", "author"):
                if fields.get(key) is not None:
                    values[key] = TextValidator.require(fields[key], key)
            if fields.get("isbn") is not None:
                values["isbn"] = TextValidator.clean(fields["isbn"])
            for key in ("price_buy", "price_rent"):
                if fields.get(key) is not None:
                    values[key] = NumberValidator.non_negative(fields[key], key)
            if fields.get("stock") is not None:
                values["stock"] = NumberValidator.non_negative_int(fields["stock"], "stock")
            if fields.get("status") is not None:
                values["status"] = fields["status"]

        if "status" in values and values["status"] not in BOOK_STATUSES:
            raise ValidationFailed(f"status must be one of {', '.join(BOOK_STATUSES)}")
        return values


class CustomerRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list(self) -> List[Customer]:
        return _newest_first(self._store.customers)

    def get(self, customer_id: int) -> Optional[Customer]:
        index = _find_index(self._store.customers, customer_id)
        return self._store.customers[index] if index != -1 else None

    def find_by_phone(self, phone: str) -> Optional[Customer]:
        phone = PhoneValidator.normalize(phone)
        return next((c for c in self._store.customers if c.phone == phone), None)

    def create(self, fields: Dict[str, Any]) -> Customer:
        name = TextValidator.require(fields.get("name"), "name")
        phone = self._clean_phone(fields.get("phone"))
        email = self._clean_email(fields.get("email"))
        address = TextValidator.clean(fields.get("address"))

        with self._store.transaction():
            if self.find_by_phone(phone) is not None:
                raise ValidationFailed("Phone number already exists")
            customer = Customer(
                id=self._store.next_identifier("customers"),
                name=name,
                phone=phone,
                email=email,
                address=address,
                created_at=utc_timestamp(),
            )
            self._store.customers.append(customer)
            self._store.mark_dirty()
        logger.info(f"Customer #{customer.id} created")
        return customer

    def update(self, customer_id: int, fields: Dict[str, Any]) -> Optional[Customer]:
        customer = self.get(customer_id)
        if customer is None:
            return None

        values: Dict[str, Any] = {}
        if fields.get("name") is not None:
            values["name"] = TextValidator.require(fields["name"], "name")
        if fields.get("phone") is not None:
            values["phone"] = self._clean_phone(fields["phone"])
        if fields.get("email") is not None:
            values["email"] = self._clean_email(fields["email"])
        if fields.get("address") is not None:
            values["address"] = TextValidator.clean(fields["address"])

        with self._store.transaction():
            if "phone" in values and values["phone"] != customer.phone:
                owner = self.find_by_phone(values["phone"])
                if owner is not None and owner.id != customer_id:
                    raise ValidationFailed("Phone number already exists")
            for key, value in values.items():
                setattr(customer, key, value)
            self._store.mark_dirty()
        return customer

    def delete(self, customer_id: int) -> bool:
        with self._store.transaction():
            index = _find_index(self._store.customers, customer_id)
            if index == -1 or self.has_open_rentals(customer_id):
                return False
            self._store.customers.pop(index)
            self._store.mark_dirty()
        logger.info(f"Customer #{customer_id} deleted")
        return True

    def has_open_rentals(self, customer_id: int) -> bool:
        return any(r.customer_id == customer_id and r.is_open for r in self._store.rentals)

    @staticmethod
    def _clean_phone(raw: Any) -> str:
        phone = PhoneValidator.normalize(raw)
        if not phone:
            raise ValidationFailed("phone is required")
        if not PhoneValidator.is_valid(phone):
            raise ValidationFailed(f"Invalid phone number: {phone}")
        return phone

    @staticmethod
    def _clean_email(raw: Any) -> str:
        email = TextValidator.clean(raw)
        if email and not EmailValidator.is_valid(email):
            raise ValidationFailed(f"Invalid email address: {email}")
        return email


class RentalRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list(self) -> List[Rental]:
        return _newest_first(self._store.rentals)

    def get(self, rental_id: int) -> Optional[Rental]:
        index = _find_index(self._store.rentals, rental_id)
        return self._store.rentals[index] if index != -1 else None

    def list_for_customer(self, customer_id: int) -> List[Rental]:
        return _newest_first([r for r in self._store.rentals if r.customer_id == customer_id])

    def create(self, book_id: int, customer_id: int, rental_date: date, due_date: date) -> Rental:
        with self._store.transaction():
            rental = Rental(
                id=self._store.next_identifier("rentals"),
                book_id=book_id,
                customer_id=customer_id,
                rental_date=rental_date,
                due_date=due_date,
                status="active",
                created_at=utc_timestamp(),
            )
            self._store.rentals.append(rental)
            self._store.mark_dirty()
        return rental

    def update(self, rental_id: int, fields: Dict[str, Any]) -> Optional[Rental]:
        rental = self.get(rental_id)
        if rental is None:
            return None

        values: Dict[str, Any] = {}
        try:
            for key in ("rental_date", "due_date", "return_date"):
                if key in fields:
                    values[key] = parse_date(fields[key])
        except ValueError as e:
            raise ValidationFailed(f"Invalid date: {e}") from e
        for key in ("rental_date", "due_date"):
            if key in values and values[key] is None:
                raise ValidationFailed(f"{key} is required")
        if fields.get("status") is not None:
            if fields["status"] not in RENTAL_STATUSES:
                raise ValidationFailed(f"status must be one of {', '.join(RENTAL_STATUSES)}")
            values["status"] = fields["status"]

        status = values.get("status", rental.status)
        return_date = values.get("return_date", rental.return_date)
        if (status == "returned") != (return_date is not None):
            raise ValidationFailed("return_date must be set exactly when status is returned")

        with self._store.transaction():
            for key, value in values.items():
                setattr(rental, key, value)
            self._store.mark_dirty()
        return rental

    def delete(self, rental_id: int) -> bool:
        """Remove a returned rental. Open rentals are never removed."""
        with self._store.transaction():
            index = _find_index(self._store.rentals, rental_id)
            if index == -1 or self._store.rentals[index].status != "returned":
                return False
            self._store.rentals.pop(index)
            self._store.mark_dirty()
        return True
