"""Status lifecycle controller for receipts, transfers and inventories.

Transitions:
    receipt:   draft -> validated                       (guarded by full validation)
    transfer:  en_transit -> termine | termine_avec_ecart | annule
    inventory: en_cours -> en_attente_validation -> valide
               en_attente_validation -> en_cours        (rejection)

Every transition is committed through DocumentRepository.compare_and_set and
produces one audit event. Stock movements (receipt increments, transfer
decrements, inventory adjustments) are posted by the caller from the returned
documents.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from core.audit.events import AuditLogger, StockAuditEventType
from core.models.canonical import (
    InventoryStatus,
    PhysicalCount,
    PhysicalInventory,
    ReceiptStatus,
    StockLevel,
    StockReceipt,
    StockTransfer,
    TransferReception,
    TransferStatus,
)
from core.models.refs import CostImpact, StockValidationError, ValidationErrorKind, ValidationResult
from core.numbering import DocumentKind, format_document_number
from core.observability.logging import get_logger, with_correlation
from lifecycle.exceptions import (
    DocumentNotFoundError,
    GuardError,
    IncompleteInventoryError,
    StateError,
)
from lifecycle.repository import DocumentRepository, StockDocument
from validation.documents import validate_bon_reception, validate_inventaire, validate_transfert_reception
from valuation.cump import calculate_cump_impact


logger = get_logger(__name__)


@dataclass
class ReceiptValidationOutcome:
    """Validated receipt plus the cost impacts to post with the stock increment."""
    receipt: StockReceipt
    cost_impacts: List[CostImpact] = field(default_factory=list)


def _guard_result(field_name: str, kind: ValidationErrorKind, message: str) -> ValidationResult:
    return ValidationResult.from_findings([
        StockValidationError(field=field_name, kind=kind, message=message)
    ])


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


class StockLifecycleController:
    """Drives document status transitions.

    Args:
        repository: Document storage with compare-and-set semantics
        audit_logger: Receives one event per committed transition
        clock: Returns the current time (defaults to datetime.utcnow)
    """

    def __init__(
        self,
        repository: DocumentRepository,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.audit_logger = audit_logger or AuditLogger()
        self.clock = clock or datetime.utcnow

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, document_id: str, document_type):
        document = self.repository.get(document_id)
        if not isinstance(document, document_type):
            raise DocumentNotFoundError(
                f"{document_type.__name__} not found: {document_id}", document_id
            )
        return document

    @staticmethod
    def _require_status(document: StockDocument, *allowed, action: str) -> None:
        if document.status not in allowed:
            raise StateError(
                f"Cannot {action} {document.number or document.id}: status is {document.status.value}",
                document.id,
                document.status.value,
            )

    def _commit(
        self,
        current: StockDocument,
        updates: Dict[str, object],
        event_type: StockAuditEventType,
        message: str,
        actor: Optional[str],
        details: Optional[Dict[str, object]] = None,
    ) -> StockDocument:
        """Write the next version of a document and audit the transition."""
        updates = dict(updates, version=current.version + 1)
        updated = current.model_copy(update=updates)
        self.repository.compare_and_set(updated, current.status, current.version)

        self.audit_logger.log_info(
            event_type,
            message,
            document_id=current.id,
            document_number=current.number,
            store_id=getattr(current, "store_id", None) or getattr(current, "source_store_id", None),
            from_status=current.status.value,
            to_status=updated.status.value,
            details=details,
            actor=actor,
            timestamp=self.clock(),
        )
        logger.info(
            message,
            extra_fields={"from_status": current.status.value, "to_status": updated.status.value},
        )
        return updated

    def _delete(self, current: StockDocument, event_type: StockAuditEventType, actor: Optional[str]) -> None:
        self.repository.delete(current.id, current.status, current.version)
        message = f"Deleted {current.number or current.id}"
        self.audit_logger.log_info(
            event_type,
            message,
            document_id=current.id,
            document_number=current.number,
            store_id=current.store_id,
            from_status=current.status.value,
            actor=actor,
            timestamp=self.clock(),
        )
        logger.info(message)

    # =========================================================================
    # Numbering
    # =========================================================================

    def next_document_number(self, kind: DocumentKind, year: Optional[int] = None) -> str:
        """Issue the next BR-/TR-/INV-YYYY-NNNN number for a year."""
        year = year or self.clock().year
        return format_document_number(kind, year, self.repository.next_sequence(kind, year))

    # =========================================================================
    # Goods Receipts
    # =========================================================================

    def validate_receipt(
        self,
        receipt_id: str,
        validated_by: str,
        stock_levels: Sequence[StockLevel] = (),
    ) -> ReceiptValidationOutcome:
        """draft -> validated.

        Raises:
            StateError: If the receipt is not a draft
            GuardError: If full receipt validation fails (carries the result)
        """
        receipt = self._load(receipt_id, StockReceipt)
        with with_correlation(
            document_number=receipt.number,
            document_type="receipt",
            store_id=receipt.store_id,
            user_id=validated_by,
            operation="validate_receipt",
        ):
            self._require_status(receipt, ReceiptStatus.DRAFT, action="validate")

            now = self.clock()
            result = validate_bon_reception(receipt, today=now.date())
            if not result.is_valid:
                logger.warning(
                    "Receipt validation refused",
                    extra_fields={"errors": [e.kind.value for e in result.errors]},
                )
                raise GuardError(
                    f"Receipt {receipt.number or receipt.id} failed validation",
                    result,
                    receipt.id,
                    receipt.status.value,
                )

            cost_impacts = calculate_cump_impact(receipt, stock_levels)
            updated = self._commit(
                receipt,
                {"status": ReceiptStatus.VALIDATED, "validated_by": validated_by, "validated_at": now},
                StockAuditEventType.RECEIPT_VALIDATED,
                f"Receipt {receipt.number or receipt.id} validated",
                validated_by,
                {"total_value": str(receipt.total_value), "line_count": len(receipt.lines)},
            )
            return ReceiptValidationOutcome(receipt=updated, cost_impacts=cost_impacts)

    def delete_receipt(self, receipt_id: str, deleted_by: Optional[str] = None) -> None:
        """Delete a draft receipt; validated receipts are permanent."""
        receipt = self._load(receipt_id, StockReceipt)
        with with_correlation(document_number=receipt.number, document_type="receipt", store_id=receipt.store_id):
            self._require_status(receipt, ReceiptStatus.DRAFT, action="delete")
            self._delete(receipt, StockAuditEventType.RECEIPT_DELETED, deleted_by)

    # =========================================================================
    # Transfers
    # =========================================================================

    def receive_transfer(
        self,
        transfer_id: str,
        receptions: Sequence[TransferReception],
        received_by: str,
        comment: Optional[str] = None,
    ) -> StockTransfer:
        """en_transit -> termine, or termine_avec_ecart when any line differs.

        Raises:
            StateError: If the transfer is not in transit
            GuardError: If the receptions are invalid, or a variance has no comment
        """
        transfer = self._load(transfer_id, StockTransfer)
        with with_correlation(
            document_number=transfer.number,
            document_type="transfer",
            store_id=transfer.destination_store_id,
            user_id=received_by,
            operation="receive_transfer",
        ):
            self._require_status(transfer, TransferStatus.EN_TRANSIT, action="receive")

            result = validate_transfert_reception(transfer, receptions)
            if not result.is_valid:
                raise GuardError(
                    f"Invalid reception for transfer {transfer.number or transfer.id}",
                    result, transfer.id, transfer.status.value,
                )

            by_product = {r.product_id: r for r in receptions}
            lines = []
            has_variance = False
            for line in transfer.lines:
                reception = by_product.get(line.product_id)
                if reception is None:
                    lines.append(line)
                    continue
                variance = reception.quantity_received - line.quantity_sent
                has_variance = has_variance or variance != 0
                lines.append(line.model_copy(update={
                    "quantity_received": reception.quantity_received,
                    "variance": variance,
                    "comment": reception.comment or line.comment,
                }))

            if has_variance and not (comment and comment.strip()):
                raise GuardError(
                    "A reception comment is required when quantities differ",
                    _guard_result(
                        "reception_comment",
                        ValidationErrorKind.MISSING_COMMENT,
                        "A reception comment is required when quantities differ",
                    ),
                    transfer.id,
                    transfer.status.value,
                )

            status = TransferStatus.TERMINE_AVEC_ECART if has_variance else TransferStatus.TERMINE
            event_type = (
                StockAuditEventType.TRANSFER_RECEIVED_WITH_VARIANCE
                if has_variance else StockAuditEventType.TRANSFER_RECEIVED
            )
            return self._commit(
                transfer,
                {
                    "status": status,
                    "lines": lines,
                    "received_by": received_by,
                    "received_at": self.clock(),
                    "reception_comment": comment,
                },
                event_type,
                f"Transfer {transfer.number or transfer.id} received",
                received_by,
                {"variances": {l.product_id: str(l.variance) for l in lines if l.variance}},
            )

    def cancel_transfer(self, transfer_id: str, cancelled_by: str, reason: Optional[str] = None) -> StockTransfer:
        """en_transit -> annule."""
        transfer = self._load(transfer_id, StockTransfer)
        with with_correlation(
            document_number=transfer.number,
            document_type="transfer",
            store_id=transfer.source_store_id,
            user_id=cancelled_by,
            operation="cancel_transfer",
        ):
            self._require_status(transfer, TransferStatus.EN_TRANSIT, action="cancel")
            updates = {
                "status": TransferStatus.ANNULE,
                "cancelled_by": cancelled_by,
                "cancelled_at": self.clock(),
            }
            if reason:
                updates["comments"] = _append_note(transfer.comments, f"Cancelled: {reason}")
            return self._commit(
                transfer,
                updates,
                StockAuditEventType.TRANSFER_CANCELLED,
                f"Transfer {transfer.number or transfer.id} cancelled",
                cancelled_by,
                {"reason": reason} if reason else None,
            )

    # =========================================================================
    # Physical Inventories
    # =========================================================================

    @staticmethod
    def _counted_line(line, physical: Decimal):
        """Line with its physical count, variance and variance value set."""
        variance = physical - line.theoretical_quantity
        return line.model_copy(update={
            "physical_quantity": physical,
            "variance": variance,
            "variance_value": variance * line.unit_cost,
        })

    @staticmethod
    def _inventory_totals(lines) -> Dict[str, Decimal]:
        total_variance = Decimal("0")
        variance_value = Decimal("0")
        for line in lines:
            if line.variance is not None:
                total_variance += abs(line.variance)
            if line.variance_value is not None:
                variance_value += abs(line.variance_value)
        return {"total_variance": total_variance, "variance_value": variance_value}

    def record_counts(
        self,
        inventory_id: str,
        counts: Union[Mapping[str, Decimal], Sequence[PhysicalCount]],
        counted_by: Optional[str] = None,
    ) -> PhysicalInventory:
        """Enter physical quantities on an inventory still being counted.

        Args:
            inventory_id: Inventory to update
            counts: product_id -> physical quantity, or PhysicalCount entries
            counted_by: Acting user, for the audit trail

        Raises:
            StateError: If the inventory is not en_cours
            GuardError: If a count is negative or names a product not on the sheet
        """
        inventory = self._load(inventory_id, PhysicalInventory)
        if isinstance(counts, Mapping):
            quantities = {product_id: Decimal(str(qty)) for product_id, qty in counts.items()}
        else:
            quantities = {c.product_id: c.physical_quantity for c in counts}

        with with_correlation(
            document_number=inventory.number,
            document_type="inventory",
            store_id=inventory.store_id,
            user_id=counted_by,
            operation="record_counts",
        ):
            self._require_status(inventory, InventoryStatus.EN_COURS, action="record counts on")

            known = {line.product_id for line in inventory.lines}
            errors = []
            for product_id, quantity in quantities.items():
                if product_id not in known:
                    errors.append(StockValidationError(
                        field="product_id",
                        kind=ValidationErrorKind.MISSING_PRODUCT,
                        message=f"Product {product_id} is not on this inventory",
                        details={"product_id": product_id},
                    ))
                elif quantity < 0:
                    errors.append(StockValidationError(
                        field="physical_quantity",
                        kind=ValidationErrorKind.NEGATIVE_QUANTITY,
                        message="Counted quantity cannot be negative",
                        details={"product_id": product_id},
                    ))
            if errors:
                raise GuardError(
                    f"Invalid counts for inventory {inventory.number or inventory.id}",
                    ValidationResult.from_findings(errors),
                    inventory.id,
                    inventory.status.value,
                )

            lines = []
            for line in inventory.lines:
                if line.product_id in quantities:
                    line = self._counted_line(line, quantities[line.product_id])
                lines.append(line)

            updates = {"lines": lines}
            updates.update(self._inventory_totals(lines))
            return self._commit(
                inventory,
                updates,
                StockAuditEventType.INVENTORY_COUNTS_RECORDED,
                f"Counts recorded on inventory {inventory.number or inventory.id}",
                counted_by,
                {"counted": sorted(quantities)},
            )

    def submit_inventory(self, inventory_id: str, submitted_by: str) -> PhysicalInventory:
        """en_cours -> en_attente_validation once every line is counted.

        Raises:
            StateError: If the inventory is not en_cours
            IncompleteInventoryError: If any line has no physical quantity
            GuardError: If the inventory fails structural validation
        """
        inventory = self._load(inventory_id, PhysicalInventory)
        with with_correlation(
            document_number=inventory.number,
            document_type="inventory",
            store_id=inventory.store_id,
            user_id=submitted_by,
            operation="submit_inventory",
        ):
            self._require_status(inventory, InventoryStatus.EN_COURS, action="submit")

            missing = [line.product_id for line in inventory.lines if not line.is_counted]
            if missing:
                raise IncompleteInventoryError(
                    f"{len(missing)} line(s) have no physical count",
                    missing,
                    inventory.id,
                )

            result = validate_inventaire(inventory)
            if not result.is_valid:
                raise GuardError(
                    f"Inventory {inventory.number or inventory.id} failed validation",
                    result, inventory.id, inventory.status.value,
                )

            # Counts may have been entered outside record_counts
            lines = [self._counted_line(line, line.physical_quantity) for line in inventory.lines]
            updates = {
                "status": InventoryStatus.EN_ATTENTE_VALIDATION,
                "lines": lines,
                "submitted_by": submitted_by,
                "submitted_at": self.clock(),
            }
            totals = self._inventory_totals(lines)
            updates.update(totals)
            return self._commit(
                inventory,
                updates,
                StockAuditEventType.INVENTORY_SUBMITTED,
                f"Inventory {inventory.number or inventory.id} submitted for validation",
                submitted_by,
                {k: str(v) for k, v in totals.items()},
            )

    def review_inventory(
        self,
        inventory_id: str,
        reviewer: str,
        approved: bool,
        reason: Optional[str] = None,
    ) -> PhysicalInventory:
        """Approve (-> valide) or reject (-> en_cours) a submitted inventory.

        Raises:
            StateError: If the inventory is not awaiting validation
            GuardError: If a rejection has no reason
        """
        inventory = self._load(inventory_id, PhysicalInventory)
        with with_correlation(
            document_number=inventory.number,
            document_type="inventory",
            store_id=inventory.store_id,
            user_id=reviewer,
            operation="review_inventory",
        ):
            self._require_status(inventory, InventoryStatus.EN_ATTENTE_VALIDATION, action="review")

            if approved:
                return self._commit(
                    inventory,
                    {
                        "status": InventoryStatus.VALIDE,
                        "validated_by": reviewer,
                        "validated_at": self.clock(),
                    },
                    StockAuditEventType.INVENTORY_VALIDATED,
                    f"Inventory {inventory.number or inventory.id} validated",
                    reviewer,
                    {"variance_value": str(inventory.variance_value)},
                )

            if not (reason and reason.strip()):
                raise GuardError(
                    "A reason is required to reject an inventory",
                    _guard_result("comments", ValidationErrorKind.MISSING_COMMENT,
                                  "A reason is required to reject an inventory"),
                    inventory.id,
                    inventory.status.value,
                )
            return self._commit(
                inventory,
                {
                    "status": InventoryStatus.EN_COURS,
                    "comments": _append_note(inventory.comments, f"Rejected by {reviewer}: {reason}"),
                },
                StockAuditEventType.INVENTORY_REJECTED,
                f"Inventory {inventory.number or inventory.id} rejected",
                reviewer,
                {"reason": reason},
            )

    def delete_inventory(self, inventory_id: str, deleted_by: Optional[str] = None) -> None:
        """Delete an inventory that has not been validated."""
        inventory = self._load(inventory_id, PhysicalInventory)
        with with_correlation(document_number=inventory.number, document_type="inventory", store_id=inventory.store_id):
            self._require_status(
                inventory,
                InventoryStatus.EN_COURS,
                InventoryStatus.EN_ATTENTE_VALIDATION,
                action="delete",
            )
            self._delete(inventory, StockAuditEventType.INVENTORY_DELETED, deleted_by)
