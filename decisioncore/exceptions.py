"""
Custom exceptions for DecisionCore.

Only caller bugs and lookups of unknown rows raise. Absent data, malformed
signals, collector timeouts and missing escalation rules degrade instead.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for DecisionCore."""
    UNKNOWN_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    CONFIGURATION_ERROR = "E1002"

    # Data errors (2xxx)
    DATA_NOT_FOUND = "E2000"
    MISSING_ESTIMATE = "E2001"


class DecisionCoreError(Exception):
    """Base exception for DecisionCore."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class MissingEstimateError(DecisionCoreError):
    """No estimated default exists for a metric and the caller supplied none."""

    status_code = 422

    def __init__(self, metric_key: str):
        super().__init__(
            message=f"No estimated default available for metric '{metric_key}'",
            error_code=ErrorCode.MISSING_ESTIMATE,
            details={"metric_key": metric_key},
        )
        self.metric_key = metric_key


class CardNotFoundError(DecisionCoreError):
    """Decision card does not exist for this tenant."""

    status_code = 404

    def __init__(self, tenant_id: str, card_id: str):
        super().__init__(
            message=f"Decision card '{card_id}' not found",
            error_code=ErrorCode.DATA_NOT_FOUND,
            details={"card_id": card_id},
        )
        self.tenant_id = tenant_id
        self.card_id = card_id


class InvalidConfigurationError(DecisionCoreError, ValueError):
    """Configuration is internally inconsistent."""

    status_code = 422

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            details={"config_key": config_key} if config_key else None,
        )
        self.config_key = config_key
