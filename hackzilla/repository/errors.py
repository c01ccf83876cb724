# hackzilla/repository/errors.py
from typing import Optional

from pydantic import ValidationError


class CheckinError(Exception):
    """Base exception for check-in errors."""

    pass


class TeamValidationError(CheckinError):
    """Caller-supplied team data is missing or malformed. Raised before any store call."""

    def __init__(self, message: str, cause: Optional[ValidationError] = None):
        super().__init__(message)
        self.cause = cause

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "TeamValidationError":
        fields = sorted(
            {".".join(str(part) for part in err["loc"]) for err in error.errors()}
        )
        return cls(f"Invalid team data in: {', '.join(fields)}", cause=error)


class StoreUnavailableError(CheckinError):
    """A record store call failed where partial state would be worse than none."""

    def __init__(self, operation: str, collection: str, details: str):
        super().__init__(f"{operation} on '{collection}' failed: {details}")
        self.operation = operation
        self.collection = collection
        self.details = details
