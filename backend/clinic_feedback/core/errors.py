"""Domain exceptions raised by services and translated to HTTP responses in ``main``."""

from __future__ import annotations


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(DomainError):
    status_code = 400


class NotFound(DomainError):
    status_code = 404


class InvalidPhoneError(ValidationFailed):
    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"Invalid phone number {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class BranchNotRecognized(ValidationFailed):
    def __init__(self, raw: str, suggestions: list[str]) -> None:
        message = f"Branch {raw!r} not recognized"
        if suggestions:
            message += f" (closest: {', '.join(suggestions)})"
        super().__init__(message)
        self.raw = raw
        self.suggestions = suggestions


class ImportRejected(DomainError):
    """Raised when a spreadsheet import cannot produce a report.

    Either the file is structurally unusable (empty, no header row) or every
    data row failed validation and nothing was imported.
    """

    status_code = 422

    def __init__(self, message: str, *, error_count: int = 1) -> None:
        super().__init__(message)
        self.error_count = error_count


class IntegrationUnavailable(DomainError):
    status_code = 503
