"""
Error Taxonomy Module

Exceptions raised by the loan tracker core. The HTTP layer maps them to
client (4xx) and server (5xx) outcomes.
"""


class LoanTrackerError(Exception):
    """Base exception for all loan tracker errors"""


class ValidationError(LoanTrackerError):
    """Raised when required input is missing or invalid"""


class MalformedIdentifierError(ValidationError):
    """Raised when an id is not a well-formed identifier for the active backend"""


class NotFoundError(LoanTrackerError):
    """Raised when a well-formed id matches no borrower"""


class PersistenceError(LoanTrackerError):
    """Raised when reading or writing the store fails"""


class BackendUnavailableError(LoanTrackerError):
    """Raised when the database cannot be reached; triggers failover"""
