"""Exceptions raised by the lifecycle controller and document repositories."""

from typing import List, Optional

from core.models.refs import ValidationResult


class StockError(Exception):
    """Base exception for stock lifecycle errors."""
    def __init__(self, message: str, document_id: Optional[str] = None):
        super().__init__(message)
        self.document_id = document_id


class DocumentNotFoundError(StockError):
    """No document with this id (or not of the expected type)."""
    pass


class ConflictError(StockError):
    """The stored document changed since it was read; reload and retry."""
    pass


class StateError(StockError):
    """Transition not allowed from the document's current status."""
    def __init__(self, message: str, document_id: Optional[str] = None, status: Optional[str] = None):
        super().__init__(message, document_id)
        self.status = status


class GuardError(StateError):
    """Transition refused because the document failed its guard validation."""
    def __init__(
        self,
        message: str,
        result: ValidationResult,
        document_id: Optional[str] = None,
        status: Optional[str] = None,
    ):
        super().__init__(message, document_id, status)
        self.result = result


class IncompleteInventoryError(StateError):
    """Inventory submitted while some lines have no physical count."""
    def __init__(self, message: str, missing_product_ids: List[str], document_id: Optional[str] = None):
        super().__init__(message, document_id)
        self.missing_product_ids = missing_product_ids
