"""
Observability for the stock engine.

Provides structured logging with correlation IDs (document number, store,
user) so every finding and transition can be traced back to its document.
"""

from core.observability.logging import (
    CorrelatedLogger,
    CorrelationContext,
    configure_logging,
    get_correlation_context,
    get_logger,
    with_correlation,
)

__all__ = [
    "CorrelatedLogger",
    "CorrelationContext",
    "configure_logging",
    "get_correlation_context",
    "get_logger",
    "with_correlation",
]
