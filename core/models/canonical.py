"""Core canonical data models - stock documents and reference data.

These models represent receipts, transfers and physical inventories in a
standardized format that is independent of any storage backend.

Field names are snake_case; every field also accepts the camelCase key used
by the point-of-sale front end (e.g. ``quantiteRecue``, ``storeSourceId``).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from various formats (string with commas, ints, floats)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        s = s.replace(",", "").replace(" ", "")
        return Decimal(s)
    return value


def _parse_date(value):
    """Parse date from various string formats."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y-%m-%dT%H:%M:%S"):
            try:
                return datetime.strptime(s[:19], fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Cannot parse date: {s}")
    return value


DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
DateValue = Annotated[date, BeforeValidator(_parse_date)]


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical data structures."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Document Statuses
# =============================================================================

class ReceiptStatus(str, Enum):
    DRAFT = "draft"
    VALIDATED = "validated"


class TransferStatus(str, Enum):
    EN_TRANSIT = "en_transit"
    TERMINE = "termine"
    TERMINE_AVEC_ECART = "termine_avec_ecart"
    ANNULE = "annule"


class InventoryStatus(str, Enum):
    EN_COURS = "en_cours"
    EN_ATTENTE_VALIDATION = "en_attente_validation"
    VALIDE = "valide"


TERMINAL_STATUSES = {
    ReceiptStatus.VALIDATED,
    TransferStatus.TERMINE,
    TransferStatus.TERMINE_AVEC_ECART,
    TransferStatus.ANNULE,
    InventoryStatus.VALIDE,
}


# =============================================================================
# Reference Data
# =============================================================================

class Product(CanonicalBase):
    """Catalog product."""
    id: str
    name: str
    unit: Optional[str] = None
    unit_price: Optional[DecimalValue] = Field(None, alias="unitPrice")
    category: Optional[str] = None


class Supplier(CanonicalBase):
    """Supplier as entered in the supplier form (any field may be missing)."""
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class StockLevel(CanonicalBase):
    """On-hand stock snapshot for one product in one store."""
    store_id: str = Field(..., alias="storeId")
    product_id: str = Field(..., alias="productId")
    quantity: DecimalValue = Decimal("0")
    reserved_quantity: DecimalValue = Field(Decimal("0"), alias="reservedQuantity")
    available_quantity: Optional[DecimalValue] = Field(None, alias="availableQuantity")
    average_cost: Optional[DecimalValue] = Field(None, alias="averageCost")
    last_updated: Optional[datetime] = Field(None, alias="lastUpdated")

    @model_validator(mode="after")
    def _default_available(self) -> "StockLevel":
        if self.available_quantity is None:
            self.available_quantity = self.quantity - self.reserved_quantity
        return self


# =============================================================================
# Goods Receipt (Bon de Réception)
# =============================================================================

class ReceiptLine(CanonicalBase):
    """A product line on a goods receipt."""
    product_id: Optional[str] = Field(None, alias="productId")
    quantity_received: DecimalValue = Field(Decimal("0"), alias="quantiteRecue")
    unit_cost: DecimalValue = Field(Decimal("0"), alias="coutUnitaire")
    subtotal: DecimalValue = Field(Decimal("0"), alias="sousTotal")


class StockReceipt(CanonicalBase):
    """Goods receipt from a supplier into one store."""
    id: Optional[str] = None
    number: Optional[str] = Field(None, alias="numero")
    date: Optional[DateValue] = Field(None, alias="dateReception")
    supplier_id: Optional[str] = Field(None, alias="supplierId")
    store_id: Optional[str] = Field(None, alias="storeId")
    lines: List[ReceiptLine] = Field(default_factory=list, alias="lignes")
    total_value: DecimalValue = Field(Decimal("0"), alias="totalValue")
    status: ReceiptStatus = ReceiptStatus.DRAFT
    version: int = 0

    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    validated_by: Optional[str] = Field(None, alias="validatedBy")
    validated_at: Optional[datetime] = Field(None, alias="validatedAt")
    comments: Optional[str] = Field(None, alias="commentaires")


# =============================================================================
# Inter-store Transfer (Transfert)
# =============================================================================

class TransferLine(CanonicalBase):
    """A product line on a transfer."""
    product_id: Optional[str] = Field(None, alias="productId")
    quantity_sent: DecimalValue = Field(Decimal("0"), alias="quantiteEnvoyee")
    quantity_received: Optional[DecimalValue] = Field(None, alias="quantiteRecue")
    variance: Optional[DecimalValue] = Field(None, alias="ecart")
    unit_cost: Optional[DecimalValue] = Field(None, alias="coutUnitaire")
    comment: Optional[str] = Field(None, alias="commentaire")


class StockTransfer(CanonicalBase):
    """Transfer of goods from a source store to a destination store."""
    id: Optional[str] = None
    number: Optional[str] = Field(None, alias="numero")
    created_on: Optional[DateValue] = Field(None, alias="dateCreation")
    source_store_id: Optional[str] = Field(None, alias="storeSourceId")
    destination_store_id: Optional[str] = Field(None, alias="storeDestinationId")
    lines: List[TransferLine] = Field(default_factory=list, alias="lignes")
    status: TransferStatus = TransferStatus.EN_TRANSIT
    version: int = 0

    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    received_by: Optional[str] = Field(None, alias="receptionneBy")
    received_at: Optional[datetime] = Field(None, alias="receptionneAt")
    cancelled_by: Optional[str] = Field(None, alias="annuleBy")
    cancelled_at: Optional[datetime] = Field(None, alias="annuleAt")
    comments: Optional[str] = Field(None, alias="commentaires")
    reception_comment: Optional[str] = Field(None, alias="commentairesReception")


class TransferReception(CanonicalBase):
    """Quantity actually received at the destination for one product."""
    product_id: str = Field(..., alias="productId")
    quantity_received: DecimalValue = Field(..., alias="quantiteRecue")
    comment: Optional[str] = Field(None, alias="commentaire")


# =============================================================================
# Physical Inventory (Inventaire)
# =============================================================================

class InventoryLine(CanonicalBase):
    """A counted product line on a physical inventory."""
    product_id: Optional[str] = Field(None, alias="productId")
    theoretical_quantity: DecimalValue = Field(Decimal("0"), alias="quantiteTheorique")
    physical_quantity: Optional[DecimalValue] = Field(None, alias="quantitePhysique")
    variance: Optional[DecimalValue] = Field(None, alias="ecart")
    variance_value: Optional[DecimalValue] = Field(None, alias="valeurEcart")
    unit_cost: DecimalValue = Field(Decimal("0"), alias="coutUnitaire")
    comment: Optional[str] = Field(None, alias="commentaire")

    @property
    def is_counted(self) -> bool:
        return self.physical_quantity is not None


class PhysicalInventory(CanonicalBase):
    """Physical stock count of one store."""
    id: Optional[str] = None
    number: Optional[str] = Field(None, alias="numero")
    date: Optional[DateValue] = None
    store_id: Optional[str] = Field(None, alias="storeId")
    lines: List[InventoryLine] = Field(default_factory=list, alias="lignes")
    status: InventoryStatus = InventoryStatus.EN_COURS
    total_variance: DecimalValue = Field(Decimal("0"), alias="totalEcarts")
    variance_value: DecimalValue = Field(Decimal("0"), alias="valeurEcarts")
    version: int = 0

    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    submitted_by: Optional[str] = Field(None, alias="submittedBy")
    submitted_at: Optional[datetime] = Field(None, alias="submittedAt")
    validated_by: Optional[str] = Field(None, alias="validatedBy")
    validated_at: Optional[datetime] = Field(None, alias="validatedAt")
    comments: Optional[str] = Field(None, alias="commentaires")


class PhysicalCount(CanonicalBase):
    """A single counted quantity, as captured on the counting sheet."""
    store_id: str = Field(..., alias="storeId")
    product_id: str = Field(..., alias="productId")
    physical_quantity: DecimalValue = Field(..., alias="physicalQuantity")


# =============================================================================
# Operation Context (sourced from the audit/journal subsystem)
# =============================================================================

class RecentOperation(CanonicalBase):
    type: str
    timestamp: datetime
    value: DecimalValue = Decimal("0")
    quantity: DecimalValue = Decimal("0")


class HistoricalData(CanonicalBase):
    average_cost: DecimalValue = Field(Decimal("0"), alias="averageCost")
    average_quantity: DecimalValue = Field(Decimal("0"), alias="averageQuantity")
    operation_frequency: DecimalValue = Field(Decimal("0"), alias="operationFrequency")


class OperationContext(CanonicalBase):
    """Who is acting, when, and what they did recently."""
    user_id: str = Field(..., alias="userId")
    user_role: str = Field("manager", alias="userRole")
    store_id: Optional[str] = Field(None, alias="storeId")
    timestamp: datetime
    recent_operations: List[RecentOperation] = Field(default_factory=list, alias="recentOperations")
    historical_data: Optional[HistoricalData] = Field(None, alias="historicalData")


# =============================================================================
# Candidate Operations (tagged variant)
# =============================================================================

class ReceiptOperation(CanonicalBase):
    kind: Literal["receipt"] = "receipt"
    document: StockReceipt


class TransferOperation(CanonicalBase):
    kind: Literal["transfer"] = "transfer"
    document: StockTransfer


class InventoryOperation(CanonicalBase):
    kind: Literal["inventory"] = "inventory"
    document: PhysicalInventory


CandidateOperation = Annotated[
    Union[ReceiptOperation, TransferOperation, InventoryOperation],
    Field(discriminator="kind"),
]


class OperationEnvelope(CanonicalBase):
    """Wrapper used to parse a candidate operation from a plain dict."""
    operation: CandidateOperation
