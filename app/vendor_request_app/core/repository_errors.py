from __future__ import annotations

from typing import Mapping


class SchemaBootstrapRequiredError(RuntimeError):
    """Raised when required runtime schema objects are missing or inaccessible."""


class RequestValidationFailed(ValueError):
    """Raised when submitted request fields fail validation; no store or blob call is made."""

    def __init__(self, field_errors: Mapping[str, str]) -> None:
        self.field_errors = dict(field_errors)
        summary = "; ".join(f"{field}: {message}" for field, message in self.field_errors.items())
        super().__init__(summary or "Request validation failed.")


class UploadError(RuntimeError):
    """Raised when the blob store rejects or fails to store a document."""


class PersistenceError(RuntimeError):
    """Raised when a record store read or write fails."""


class RequestNotFoundError(LookupError):
    """Raised when a vendor request id does not resolve to a stored record."""

    def __init__(self, request_id: str) -> None:
        self.request_id = str(request_id or "")
        super().__init__(f"Vendor request '{self.request_id}' was not found.")
