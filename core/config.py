"""Business rules configuration.

Thresholds governing risk scoring and inventory tolerance. Defaults match the
values used in production stores; each one can be overridden from the
environment (or a ``.env`` file at the repository root):

    STOCK_MAX_QUANTITY_PER_OPERATION=1000
    STOCK_MAX_VALUE_PER_OPERATION=5000000
    STOCK_MAX_OPERATIONS_PER_HOUR=50
    STOCK_MAX_COST_VARIANCE_PERCENTAGE=25
    STOCK_BUSINESS_HOURS_START=6
    STOCK_BUSINESS_HOURS_END=22
    STOCK_MIN_TIME_BETWEEN_OPERATIONS=2
    STOCK_INVENTORY_TOLERANCE_PERCENTAGE=5
    STOCK_CRITICAL_STOCK_THRESHOLD=5
    STOCK_OVERSTOCK_THRESHOLD=100
"""

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from core.models.canonical import DecimalValue


REPO_ROOT = Path(__file__).resolve().parents[1]
ENV_PREFIX = "STOCK_"


class BusinessHours(BaseModel):
    """Opening window, in whole hours of the store's local clock."""
    start: int = Field(6, ge=0, le=23)
    end: int = Field(22, ge=0, le=23)

    @model_validator(mode="after")
    def _check_order(self) -> "BusinessHours":
        if self.start > self.end:
            raise ValueError(f"business hours start ({self.start}) is after end ({self.end})")
        return self


class BusinessRules(BaseModel):
    """Static thresholds used by the risk assessor and reconciliation engine."""
    max_quantity_per_operation: DecimalValue = Decimal("1000")
    max_value_per_operation: DecimalValue = Decimal("5000000")
    max_operations_per_hour: int = 50
    max_cost_variance_percentage: DecimalValue = Decimal("25")
    business_hours: BusinessHours = Field(default_factory=BusinessHours)
    min_time_between_operations: DecimalValue = Decimal("2")  # minutes
    inventory_tolerance_percentage: DecimalValue = Decimal("5")
    critical_stock_threshold: DecimalValue = Decimal("5")
    overstock_threshold: DecimalValue = Decimal("100")


DEFAULT_BUSINESS_RULES = BusinessRules()


# Environment variable suffix -> BusinessRules field
_RULE_ENV_FIELDS = {
    "MAX_QUANTITY_PER_OPERATION": "max_quantity_per_operation",
    "MAX_VALUE_PER_OPERATION": "max_value_per_operation",
    "MAX_OPERATIONS_PER_HOUR": "max_operations_per_hour",
    "MAX_COST_VARIANCE_PERCENTAGE": "max_cost_variance_percentage",
    "MIN_TIME_BETWEEN_OPERATIONS": "min_time_between_operations",
    "INVENTORY_TOLERANCE_PERCENTAGE": "inventory_tolerance_percentage",
    "CRITICAL_STOCK_THRESHOLD": "critical_stock_threshold",
    "OVERSTOCK_THRESHOLD": "overstock_threshold",
}


def _load_env_file(env_file: Optional[Path]) -> None:
    env_path = Path(env_file) if env_file else REPO_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)


def load_business_rules(
    env_file: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> BusinessRules:
    """Build BusinessRules from defaults overridden by STOCK_* variables.

    Args:
        env_file: Optional .env path (defaults to the repository root .env)
        environ: Mapping to read instead of os.environ (tests)

    Returns:
        Validated BusinessRules

    Raises:
        pydantic.ValidationError: If an override is not a valid number
    """
    if environ is None:
        _load_env_file(env_file)
        environ = dict(os.environ)

    overrides = {}
    for suffix, field_name in _RULE_ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value not in (None, ""):
            overrides[field_name] = value

    hours = {}
    for key in ("start", "end"):
        value = environ.get(f"{ENV_PREFIX}BUSINESS_HOURS_{key.upper()}")
        if value not in (None, ""):
            hours[key] = value
    if hours:
        overrides["business_hours"] = hours

    return BusinessRules.model_validate(overrides)


def load_log_settings(environ: Optional[Dict[str, str]] = None) -> Dict[str, object]:
    """Read STOCK_LOG_LEVEL / STOCK_LOG_JSON into configure_logging() kwargs."""
    if environ is None:
        _load_env_file(None)
        environ = dict(os.environ)

    level_name = environ.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    json_format = environ.get(f"{ENV_PREFIX}LOG_JSON", "").strip().lower() in ("1", "true", "yes")
    return {"level": level, "json_format": json_format}
