"""Document numbering.

Format: ``<PREFIX>-YYYY-NNNN`` with a 4-digit zero-padded sequence that
restarts every year, e.g. ``BR-2025-0007``. A year holds at most 9999
documents of each kind. Downstream exports parse these
identifiers, so the format must not change.
"""

import re
from enum import Enum
from typing import Tuple


class DocumentKind(str, Enum):
    """Document families and their number prefix."""
    RECEIPT = "BR"
    TRANSFER = "TR"
    INVENTORY = "INV"


MAX_SEQUENCE = 9999

_NUMBER_RE = re.compile(r"^(BR|TR|INV)-(\d{4})-(\d{4})$")


def format_document_number(kind: DocumentKind, year: int, sequence: int) -> str:
    """Build a document number.

    Raises:
        ValueError: If the year is not 4 digits or the sequence is outside 1..9999
    """
    if not 1000 <= year <= 9999:
        raise ValueError(f"Year must have 4 digits: {year}")
    if not 1 <= sequence <= MAX_SEQUENCE:
        raise ValueError(f"Sequence must be between 1 and {MAX_SEQUENCE}: {sequence}")
    return f"{DocumentKind(kind).value}-{year}-{sequence:04d}"


def parse_document_number(number: str) -> Tuple[DocumentKind, int, int]:
    """Split a document number into (kind, year, sequence).

    Raises:
        ValueError: If the number does not follow PREFIX-YYYY-NNNN
    """
    match = _NUMBER_RE.match(number.strip()) if number else None
    if not match:
        raise ValueError(f"Not a document number: {number!r}")
    prefix, year, sequence = match.groups()
    return DocumentKind(prefix), int(year), int(sequence)
