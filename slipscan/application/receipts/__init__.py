"""Receipt workflows."""

from slipscan.application.receipts.listing import (
    filter_items_by_date,
    filter_receipts_by_date,
    run_list_itemwise,
    run_list_receipts,
)
from slipscan.application.receipts.scan import (
    ReceiptSaveResult,
    ReceiptScanRequest,
    ReceiptScanResult,
    run_receipt_scan,
    save_scanned_receipt,
)

__all__ = [
    "ReceiptScanRequest",
    "ReceiptScanResult",
    "ReceiptSaveResult",
    "run_receipt_scan",
    "save_scanned_receipt",
    "filter_receipts_by_date",
    "filter_items_by_date",
    "run_list_receipts",
    "run_list_itemwise",
]
