"""Storage and retrieval of saved receipts.

Receipts live in a local SQLite database (``data/receipts.db``):

    receipts       - one row per purchase; dedupe_key is UNIQUE
    receipt_items  - line items, ordered by insertion

The unique dedupe key is the strict duplicate guard. The fuzzy check in
``slipscan.receipt.dedupe`` runs against ``fetch_existing_receipts()``.
"""

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from types import TracebackType

from slipscan.domain.receipt import ReceiptCandidate, StoredReceipt, StoredReceiptItem
from slipscan.receipt.dedupe import dedupe_key
from slipscan.receipt.reconcile import as_decimal, reconcile_item
from slipscan.runtime.logging import get_logger
from slipscan.runtime.paths import get_paths

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS receipts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT,
    merchant_name TEXT NOT NULL,
    purchase_datetime TEXT NOT NULL,
    subtotal REAL,
    tax REAL,
    total REAL,
    image_uri TEXT,
    raw_ocr_text TEXT,
    dedupe_key TEXT,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS receipts_dedupe_key ON receipts (dedupe_key);

CREATE TABLE IF NOT EXISTS receipt_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    receipt_id INTEGER NOT NULL REFERENCES receipts (id),
    description_raw TEXT NOT NULL,
    qty REAL,
    unit_price REAL,
    line_total REAL,
    category TEXT
);
"""


class DuplicateReceiptError(ValueError):
    """Raised when a receipt with the same purchase time and total is already stored."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Receipt already saved: {key}")
        self.key = key


def _to_real(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


class ReceiptStore:
    """SQLite-backed receipt store."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        if db_path is None:
            paths = get_paths()
            paths.ensure_data_directories()
            db_path = paths.database
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        if self.db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.executescript(SCHEMA)
        logger.debug("Opened receipt store at %s", self.db_path)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "ReceiptStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def insert_receipt(
        self,
        candidate: ReceiptCandidate,
        *,
        allow_duplicate: bool = False,
        created_at: str | None = None,
    ) -> int:
        """
        Save a receipt and its line items in one transaction.

        Items are reconciled before they are written. With allow_duplicate
        the row is stored without a dedupe key, so the unique index does not
        apply to it.

        Returns:
            New receipt id

        Raises:
            DuplicateReceiptError: the strict dedupe key is already taken
            ValueError: merchant or purchase time is missing
        """
        merchant = (candidate.merchant or "").strip()
        purchase_datetime = (candidate.purchase_datetime or "").strip()
        if not merchant:
            raise ValueError("Receipt merchant is required")
        if not purchase_datetime:
            raise ValueError("Receipt purchase date/time is required")

        key = dedupe_key(purchase_datetime, candidate.total)
        created = created_at or datetime.now(timezone.utc).isoformat()

        try:
            with self._conn:
                cursor = self._conn.execute(
                    """INSERT INTO receipts (
                        user_id, merchant_name, purchase_datetime, subtotal, tax, total,
                        image_uri, raw_ocr_text, dedupe_key, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        None,
                        merchant,
                        purchase_datetime,
                        _to_real(candidate.subtotal),
                        _to_real(candidate.tax),
                        _to_real(candidate.total),
                        candidate.image_uri,
                        candidate.raw_ocr_text,
                        None if allow_duplicate else key,
                        created,
                    ),
                )
                receipt_id = cursor.lastrowid
                for item in candidate.items:
                    description = item.description.strip()
                    if not description:
                        continue
                    item = reconcile_item(item)
                    self._conn.execute(
                        """INSERT INTO receipt_items (
                            receipt_id, description_raw, qty, unit_price, line_total, category
                        ) VALUES (?, ?, ?, ?, ?, ?)""",
                        (
                            receipt_id,
                            description,
                            _to_real(item.qty),
                            _to_real(item.unit_price),
                            _to_real(item.line_total),
                            None,
                        ),
                    )
        except sqlite3.IntegrityError as e:
            logger.warning("Rejected duplicate receipt %s", key)
            raise DuplicateReceiptError(key) from e

        logger.info("Saved receipt %s (%s, %s)", receipt_id, merchant, purchase_datetime)
        if receipt_id is None:
            raise RuntimeError("SQLite did not return a receipt id")
        return receipt_id

    def fetch_existing_receipts(self) -> list[StoredReceipt]:
        """All stored receipts, newest purchase first."""
        rows = self._conn.execute(
            "SELECT * FROM receipts ORDER BY purchase_datetime DESC, id DESC"
        ).fetchall()
        return [
            StoredReceipt(
                purchase_datetime=row["purchase_datetime"],
                total=as_decimal(row["total"]),
                subtotal=as_decimal(row["subtotal"]),
                tax=as_decimal(row["tax"]),
                id=row["id"],
                merchant_name=row["merchant_name"],
                dedupe_key=row["dedupe_key"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def get_receipt_items(self, receipt_id: int) -> list[StoredReceiptItem]:
        """Line items of one receipt, in insertion order."""
        rows = self._conn.execute(
            "SELECT * FROM receipt_items WHERE receipt_id = ? ORDER BY id ASC",
            (receipt_id,),
        ).fetchall()
        return [_item_from_row(row) for row in rows]

    def fetch_itemwise(self) -> list[StoredReceiptItem]:
        """All line items joined with their receipt's purchase time, newest first."""
        rows = self._conn.execute(
            """SELECT receipt_items.*, receipts.purchase_datetime AS purchase_datetime
            FROM receipt_items
            JOIN receipts ON receipts.id = receipt_items.receipt_id
            ORDER BY receipts.purchase_datetime DESC, receipt_items.id ASC"""
        ).fetchall()
        return [_item_from_row(row) for row in rows]


def _item_from_row(row: sqlite3.Row) -> StoredReceiptItem:
    keys = row.keys()
    return StoredReceiptItem(
        id=row["id"],
        receipt_id=row["receipt_id"],
        description=row["description_raw"],
        qty=as_decimal(row["qty"]),
        unit_price=as_decimal(row["unit_price"]),
        line_total=as_decimal(row["line_total"]),
        category=row["category"],
        purchase_datetime=row["purchase_datetime"] if "purchase_datetime" in keys else None,
    )
