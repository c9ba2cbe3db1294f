import os
import json
from typing import Any, Dict, List
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "BOOKSHOP_CLI_OUTPUT"

_console = Console()

STATUS_STYLES = {
    "available": "green",
    "rented": "yellow",
    "sold": "dim",
    "active": "cyan",
    "overdue": "bold red",
    "returned": "green",
}


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status)
    return f"[{style}]{status}[/]" if style else status


def _print_rows(title: str, empty_message: str, rows: List[Dict[str, Any]], columns: List[str], plain_line) -> None:
    """Shared printer: plain lines, a JSON array, or a rich table."""
    mode = get_output_mode()

    if not rows:
        print(empty_message)
        return

    if mode == "json":
        print(json.dumps(rows, ensure_ascii=False, default=str))
    elif mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        for column in columns:
            table.add_column(column.replace("_", " ").title(), no_wrap=column == "id")
        for row in rows:
            cells = []
            for column in columns:
                value = row.get(column)
                cells.append(_styled(value) if column == "status" else ("" if value is None else str(value)))
            table.add_row(*cells)
        _console.print(table)
    else:
        for row in rows:
            print(plain_line(row))


def print_books(books: List[Any]) -> None:
    _print_rows(
        "📚 Books",
        "No books in the shop.",
        [b.to_dict() for b in books],
        ["id", "title", "author", "stock", "price_rent", "status"],
        lambda b: f"#{b['id']} {b['title']} by {b['author']} - stock {b['stock']} ({b['status']})",
    )


def print_customers(customers: List[Any]) -> None:
    _print_rows(
        "👥 Customers",
        "No customers yet.",
        [c.to_dict() for c in customers],
        ["id", "name", "phone", "email"],
        lambda c: f"#{c['id']} {c['name']} - {c['phone']}",
    )


def print_rentals(rentals: List[Dict[str, Any]], empty_message: str = "No rentals.") -> None:
    _print_rows(
        "🧾 Rentals",
        empty_message,
        rentals,
        ["id", "book_title", "customer_name", "rental_date", "due_date", "return_date", "status"],
        lambda r: (
            f"#{r['id']} {r['book_title']} -> {r['customer_name']} "
            f"due {r['due_date']} ({r['status']})"
        ),
    )


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print rental statistics according to the current output mode."""
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = (
            f"[bold]Total rentals:[/] {stats['total_rentals']}\n"
            f"[bold]Active:[/] {stats['active_rentals']}\n"
            f"[bold]Overdue:[/] {stats['overdue_rentals']}\n"
            f"[bold]Returned:[/] {stats['returned_rentals']}\n"
            f"[bold]Revenue:[/] {stats['total_revenue']:.2f}"
        )
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        print(f"Total rentals: {stats['total_rentals']}")
        print(f"Active rentals: {stats['active_rentals']}")
        print(f"Overdue rentals: {stats['overdue_rentals']}")
        print(f"Returned rentals: {stats['returned_rentals']}")
        print(f"Total revenue: {stats['total_revenue']:.2f}")
