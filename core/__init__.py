"""Core module - storage-neutral stock models and shared services.

This module contains the canonical document models, business-rule
configuration, document numbering, audit and logging. It is intentionally
storage-agnostic: persistence and ledger posting belong to the host
application.
"""

__version__ = "1.0.0"
