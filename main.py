import logging
import os
import subprocess
import sys
from contextlib import contextmanager
from typing import Optional

import typer

from config import settings
from errors import RentalShopError
from shop import RentalShop
from utils.ui_helpers import (
    print_books,
    print_customers,
    print_rentals,
    print_stats_result,
    set_output_mode,
)

logging.basicConfig(level=settings.log_level)

app = typer.Typer(help="Bookstore back office CLI")

# Filled in by the global callback before any command runs
_state = {"data_file": None}


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    data_file: Optional[str] = typer.Option(
        None,
        "--data-file",
        envvar="LIBRARY_DB_FILE",
        help="Path of the JSON data file (default: settings.data_file)",
    ),
):
    """Global CLI options."""
    if output:
        set_output_mode(output)
    _state["data_file"] = data_file


def _open_shop() -> RentalShop:
    return RentalShop.open(_state["data_file"])


@contextmanager
def _reporting_errors():
    try:
        yield
    except RentalShopError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)


# --- Books ---
@app.command("books")
def cli_books():
    """List all books, newest first."""
    print_books(_open_shop().list_books())


@app.command("add-book")
def cli_add_book(
    title: str,
    author: str,
    isbn: str = typer.Option("", "--isbn"),
    price_buy: float = typer.Option(0.0, "--price-buy"),
    price_rent: float = typer.Option(0.0, "--price-rent"),
    stock: int = typer.Option(1, "--stock"),
):
    """Add a book to the shop."""
    shop = _open_shop()
    with _reporting_errors():
        book = shop.create_book({
            "title": title,
            "author": author,
            "isbn": isbn,
            "price_buy": price_buy,
            "price_rent": price_rent,
            "stock": stock,
        })
    print(f"Added book #{book.id}: {book.title} by {book.author}")


@app.command("delete-book")
def cli_delete_book(book_id: int):
    """Delete a book that is not rented out."""
    shop = _open_shop()
    with _reporting_errors():
        shop.delete_book(book_id)
    print(f"Book #{book_id} deleted.")


# --- Customers ---
@app.command("customers")
def cli_customers():
    """List all customers, newest first."""
    print_customers(_open_shop().list_customers())


@app.command("add-customer")
def cli_add_customer(
    name: str,
    phone: str,
    email: str = typer.Option("", "--email"),
    address: str = typer.Option("", "--address"),
):
    """Register a customer. Phone numbers must be unique."""
    shop = _open_shop()
    with _reporting_errors():
        customer = shop.create_customer({"name": name, "phone": phone, "email": email, "address": address})
    print(f"Added customer #{customer.id}: {customer.name}")


@app.command("delete-customer")
def cli_delete_customer(customer_id: int):
    shop = _open_shop()
    with _reporting_errors():
        shop.delete_customer(customer_id)
    print(f"Customer #{customer_id} deleted.")


# --- Rentals ---
@app.command("rentals")
def cli_rentals(customer: Optional[int] = typer.Option(None, "--customer", help="Only this customer's rentals")):
    """List rentals with book and customer details."""
    shop = _open_shop()
    with _reporting_errors():
        rentals = shop.list_customer_rentals(customer) if customer is not None else shop.list_rentals()
    print_rentals(rentals)


@app.command("rent")
def cli_rent(
    book_id: int,
    customer_id: int,
    days: int = typer.Option(settings.default_rental_days, "--days", "-d", help="Rental length in days"),
):
    """Rent a copy of a book to a customer."""
    shop = _open_shop()
    with _reporting_errors():
        rental = shop.create_rental(book_id, customer_id, days)
    print(f"Rental #{rental['id']}: {rental['book_title']} to {rental['customer_name']}, due {rental['due_date']}")


@app.command("return")
def cli_return(rental_id: int):
    """Take a rented copy back."""
    shop = _open_shop()
    with _reporting_errors():
        rental = shop.return_rental(rental_id)
    print(f"Rental #{rental['id']} returned after {rental['days_rented']} day(s).")


@app.command("delete-rental")
def cli_delete_rental(rental_id: int):
    shop = _open_shop()
    with _reporting_errors():
        shop.delete_rental(rental_id)
    print(f"Rental #{rental_id} deleted.")


@app.command("overdue")
def cli_overdue():
    """List overdue rentals (and mark them overdue in the data file)."""
    print_rentals(_open_shop().list_overdue(), empty_message="No overdue rentals.")


@app.command("stats")
def cli_stats():
    """Show rental statistics."""
    print_stats_result(_open_shop().rental_stats())


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
):
    """Start the HTTP API with uvicorn."""
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    env = dict(os.environ)
    if _state["data_file"]:
        env["LIBRARY_DB_FILE"] = _state["data_file"]
    subprocess.run(args, env=env)


if __name__ == "__main__":
    app()
