"""Document status lifecycle: guarded transitions over a repository port."""

from lifecycle.controller import ReceiptValidationOutcome, StockLifecycleController
from lifecycle.exceptions import (
    ConflictError,
    DocumentNotFoundError,
    GuardError,
    IncompleteInventoryError,
    StateError,
    StockError,
)
from lifecycle.repository import DocumentRepository, InMemoryDocumentRepository

__all__ = [
    "ReceiptValidationOutcome",
    "StockLifecycleController",
    "ConflictError",
    "DocumentNotFoundError",
    "GuardError",
    "IncompleteInventoryError",
    "StateError",
    "StockError",
    "DocumentRepository",
    "InMemoryDocumentRepository",
]
