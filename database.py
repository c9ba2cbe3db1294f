"""JSON document store backing the back office.

The whole dataset (books, customers, rentals and one id counter per table)
lives in a single JSON document. It is read once by :meth:`DocumentStore.load`
and rewritten in full after every mutation. Repositories never keep their own
copies of the rows; they work directly on the lists owned by the store.
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from book import Book
from config import settings
from customer import Customer
from errors import PersistenceFailure
from rental import Rental

logger = logging.getLogger(__name__)

# Default document location.
# Priority:
# 1) LIBRARY_DB_FILE (explicit override, handy for tests and one-off scripts)
# 2) LIBRARY_DATA_FILE via settings.data_file
DATABASE_FILE = os.environ.get("LIBRARY_DB_FILE") or settings.data_file

TABLES = ("books", "customers", "rentals")


def utc_timestamp() -> str:
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.isoformat(timespec="milliseconds") + "Z"


class DocumentStore:
    """Owns the in-memory tables, the id counters and the file behind them."""

    def __init__(self, data_file: Optional[str] = None, strict: Optional[bool] = None) -> None:
        self.data_file = Path(data_file or DATABASE_FILE)
        # strict=True turns swallowed save failures into PersistenceFailure
        self.strict = settings.strict_persistence if strict is None else strict

        self.books: List[Book] = []
        self.customers: List[Customer] = []
        self.rentals: List[Rental] = []
        self.next_id: Dict[str, int] = {table: 1 for table in TABLES}

        self.last_save_ok: Optional[bool] = None
        self.last_save_error: Optional[str] = None

        self._lock = threading.RLock()
        self._depth = 0
        self._dirty = False

    # ------------------------- Loading ------------------------- #
    def load(self) -> "DocumentStore":
        """Read the document from disk, creating or recovering it if needed."""
        with self._lock:
            if not self.data_file.exists():
                logger.info(f"No data file at {self.data_file}, creating an empty document")
                self._reset()
                self.save()
                return self

            try:
                with open(self.data_file, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                self._apply_document(raw)
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
                # Unreadable documents are replaced by a fresh one
                logger.error(f"Error loading {self.data_file} ({e}), creating a new database file")
                self._reset()
                self.save()
                return self

            logger.info(
                f"Loaded {len(self.books)} books, {len(self.customers)} customers and "
                f"{len(self.rentals)} rentals from {self.data_file}"
            )
        return self

    def _reset(self) -> None:
        self.books = []
        self.customers = []
        self.rentals = []
        self.next_id = {table: 1 for table in TABLES}

    def _apply_document(self, raw: Any) -> None:
        if not isinstance(raw, dict):
            raise TypeError("document root must be an object")

        books = [Book.from_dict(row) for row in raw.get("books") or []]
        customers = [Customer.from_dict(row) for row in raw.get("customers") or []]
        rentals = [Rental.from_dict(row) for row in raw.get("rentals") or []]

        rows = {"books": books, "customers": customers, "rentals": rentals}
        stored = raw.get("nextId")
        if not isinstance(stored, dict):
            logger.info("Document has no id counters, rebuilding them from existing rows")
            stored = {}
        next_id: Dict[str, int] = {}
        for table in TABLES:
            rebuilt = max((row.id for row in rows[table]), default=0) + 1
            counter = stored.get(table)
            if isinstance(counter, int) and not isinstance(counter, bool):
                # A counter behind the rows would hand out an existing id
                next_id[table] = max(counter, rebuilt)
            else:
                if stored:
                    logger.warning(f"Counter for {table} missing, rebuilt as {rebuilt}")
                next_id[table] = rebuilt

        self.books, self.customers, self.rentals = books, customers, rentals
        self.next_id = next_id

    def to_document(self) -> Dict[str, Any]:
        return {
            "books": [b.to_dict() for b in self.books],
            "customers": [c.to_dict() for c in self.customers],
            "rentals": [r.to_dict() for r in self.rentals],
            "nextId": dict(self.next_id),
        }

    # ------------------------- Saving ------------------------- #
    def save(self) -> bool:
        """Rewrite the whole document. Returns False when the write failed.

        Failures are logged and swallowed unless the store is strict, in which
        case :class:`PersistenceFailure` is raised.
        """
        with self._lock:
            try:
                self.data_file.parent.mkdir(parents=True, exist_ok=True)
                payload = json.dumps(self.to_document(), ensure_ascii=False, indent=2)
                tmp_path = self.data_file.with_name(self.data_file.name + ".tmp")
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self.data_file)
            except (OSError, TypeError, ValueError) as e:
                logger.exception(f"Error saving data to {self.data_file}")
                self.last_save_ok = False
                self.last_save_error = str(e)
                if self.strict:
                    raise PersistenceFailure(f"Could not write {self.data_file}: {e}") from e
                return False

            self.last_save_ok = True
            self.last_save_error = None
            self._dirty = False
            return True

    def close(self) -> None:
        """Flush the dataset one last time on shutdown."""
        self.save()

    # ------------------------- Mutation boundary ------------------------- #
    @contextmanager
    def transaction(self) -> Iterator["DocumentStore"]:
        """Group mutations so they are persisted once, or not at all.

        Nested transactions join the outermost one. If the block raises, or a
        strict store fails to write at the end of it, the in-memory tables and
        counters are restored to their state at entry.
        """
        with self._lock:
            outermost = self._depth == 0
            snapshot = self.to_document() if outermost else None
            self._depth += 1
            try:
                yield self
                if outermost and self._dirty:
                    self.save()
            except BaseException:
                if outermost:
                    self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        # Ids handed out inside the failed block stay retired
        counters = dict(self.next_id)
        self._apply_document(snapshot)
        self.next_id = {t: max(counters[t], self.next_id[t]) for t in TABLES}
        self._dirty = False

    def mark_dirty(self) -> None:
        """Record a mutation; it is saved when the current transaction ends."""
        with self._lock:
            self._dirty = True
            if self._depth == 0:
                self.save()

    def next_identifier(self, table: str) -> int:
        with self._lock:
            value = self.next_id[table]
            self.next_id[table] = value + 1
            return value
