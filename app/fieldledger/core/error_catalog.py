from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    REPORT_NOT_FOUND = ErrorDefinition(
        "REPORT_NOT_FOUND",
        "Daily report not found",
        status.HTTP_404_NOT_FOUND,
    )
    BANK_CARD_NOT_FOUND = ErrorDefinition(
        "BANK_CARD_NOT_FOUND",
        "Bank card not found",
        status.HTTP_404_NOT_FOUND,
    )
    CASH_BOX_FLOOR = ErrorDefinition(
        "CASH_BOX_FLOOR",
        "At least one cash-box row must remain",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    READ_ONLY_VIEW = ErrorDefinition(
        "READ_ONLY_VIEW",
        "Aggregated view is read-only",
        status.HTTP_409_CONFLICT,
    )
    DATE_LOCKED = ErrorDefinition(
        "DATE_LOCKED",
        "Report date is finalized",
        status.HTTP_409_CONFLICT,
    )
    SAVE_IN_PROGRESS = ErrorDefinition(
        "SAVE_IN_PROGRESS",
        "Save in progress, please wait",
        status.HTTP_409_CONFLICT,
    )
    SAVE_FAILED = ErrorDefinition(
        "SAVE_FAILED",
        "Report could not be saved",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    REPORT_TARGET_UNRESOLVED = ErrorDefinition(
        "REPORT_TARGET_UNRESOLVED",
        "Daily report could not be created or resolved",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    APPROVAL_REQUIRED = ErrorDefinition(
        "APPROVAL_REQUIRED",
        "Approval code required",
        status.HTTP_403_FORBIDDEN,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
