"""Document repository port.

The controller never holds documents between calls. It reads a document,
computes the next version and writes it back through compare_and_set, which
only succeeds if nobody else committed in between.
"""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Optional, Tuple, Union

from core.models.canonical import PhysicalInventory, StockReceipt, StockTransfer
from core.numbering import DocumentKind
from lifecycle.exceptions import ConflictError, DocumentNotFoundError


StockDocument = Union[StockReceipt, StockTransfer, PhysicalInventory]


class DocumentRepository(ABC):
    """Abstract base class for document storage backends."""

    @abstractmethod
    def get(self, document_id: str) -> StockDocument:
        """Return the stored document.

        Raises:
            DocumentNotFoundError: If no document has this id
        """

    @abstractmethod
    def add(self, document: StockDocument) -> StockDocument:
        """Store a new document (in its initial status).

        Raises:
            ConflictError: If a document with the same id already exists
        """

    @abstractmethod
    def compare_and_set(self, document: StockDocument, expected_status, expected_version: int) -> None:
        """Replace the stored document if its status and version are unchanged.

        Raises:
            DocumentNotFoundError: If the document does not exist
            ConflictError: If the stored status or version differs
        """

    @abstractmethod
    def delete(self, document_id: str, expected_status, expected_version: int) -> None:
        """Delete a document under the same status/version guard as compare_and_set."""

    @abstractmethod
    def next_sequence(self, kind: DocumentKind, year: int) -> int:
        """Return the next number in the per-kind, per-year sequence (starting at 1)."""


class InMemoryDocumentRepository(DocumentRepository):
    """In-process repository for tests and single-node use."""

    def __init__(self):
        self._documents: Dict[str, StockDocument] = {}
        self._sequences: Dict[Tuple[str, int], int] = defaultdict(int)
        self._lock = threading.Lock()

    def _check(self, document_id: Optional[str], expected_status, expected_version: int) -> StockDocument:
        stored = self._documents.get(document_id)
        if stored is None:
            raise DocumentNotFoundError(f"Document not found: {document_id}", document_id)
        if stored.status != expected_status or stored.version != expected_version:
            raise ConflictError(
                f"Document {document_id} changed: expected {expected_status.value} v{expected_version}, "
                f"found {stored.status.value} v{stored.version}",
                document_id,
            )
        return stored

    def get(self, document_id: str) -> StockDocument:
        with self._lock:
            stored = self._documents.get(document_id)
        if stored is None:
            raise DocumentNotFoundError(f"Document not found: {document_id}", document_id)
        return stored

    def add(self, document: StockDocument) -> StockDocument:
        if not document.id:
            raise ValueError("Document id is required")
        with self._lock:
            if document.id in self._documents:
                raise ConflictError(f"Document already exists: {document.id}", document.id)
            self._documents[document.id] = document
        return document

    def compare_and_set(self, document: StockDocument, expected_status, expected_version: int) -> None:
        with self._lock:
            self._check(document.id, expected_status, expected_version)
            self._documents[document.id] = document

    def delete(self, document_id: str, expected_status, expected_version: int) -> None:
        with self._lock:
            self._check(document_id, expected_status, expected_version)
            del self._documents[document_id]

    def next_sequence(self, kind: DocumentKind, year: int) -> int:
        key = (DocumentKind(kind).value, year)
        with self._lock:
            self._sequences[key] += 1
            return self._sequences[key]
