"""
billing/errors.py

Exception hierarchy for the billing core.

The calculators never raise on bad numbers (they treat them as zero). These errors are for
request payloads the API refuses and for document renders that cannot produce a complete output.
create_app() maps each class to a JSON error response with the status code below.
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.__class__.__name__, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BillingError):
    """Raised when a request payload carries an invalid value (status, category, date...)."""

    status_code = 400


class ConflictError(BillingError):
    """Raised when a unique business key is already taken (e.g. topsheet number)."""

    status_code = 409


class DocumentRenderError(BillingError):
    """Raised when a document could not be composed. No partial output is returned."""

    status_code = 500


class InvalidDocumentError(DocumentRenderError):
    """Raised when the entity handed to a renderer is structurally broken."""

    status_code = 422


class RenderTimeoutError(DocumentRenderError):
    """Raised when a render does not finish within the configured upper bound."""

    status_code = 504
