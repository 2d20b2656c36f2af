"""
Exception hierarchy for the Bid 2.0 backend.

Every failure the RFQ lifecycle, bidding and LLM layers can report is a
subclass of Bid2Error. Services raise them; the exception handler registered
in main.py turns them into typed JSON results, so none of them surface as an
unhandled 500.

Exception Hierarchy:
    Bid2Error (base)
    ├── ValidationError
    ├── AuthenticationError
    ├── NotAuthorizedError
    ├── ResourceNotFoundError
    │   └── BidNotFoundError
    ├── InvalidTransitionError
    ├── NoMatchingSuppliersError
    ├── DuplicateBidError
    └── ExternalServiceError
        ├── UpstreamUnavailableError
        └── UnparseableResponseError

Usage:
    from exceptions import InvalidTransitionError

    raise InvalidTransitionError(
        "RFQ must be in draft to send",
        detail={"rfq_id": 12, "status": "sent"},
    )
"""

from typing import Optional, Dict, Any


class Bid2Error(Exception):
    """
    Base exception for all Bid 2.0 application errors.

    Attributes:
        message: Human-readable error message
        detail: Optional dict with additional error context
        status_code: Suggested HTTP status code (for API errors)
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status_code = status_code

    @property
    def error_type(self) -> str:
        """Taxonomy name without the ``Error`` suffix (``InvalidTransition``)."""
        name = self.__class__.__name__
        return name[:-5] if name.endswith("Error") else name

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for JSON serialization."""
        result = {
            "error": self.error_type,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


class ValidationError(Bid2Error):
    """
    Raised when a required field is missing or malformed.

    Examples:
        raise ValidationError("Lead time is required")
        raise ValidationError("Missing fields", detail={"missing": ["category"]})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=400)


class AuthenticationError(Bid2Error):
    """Raised when no valid session backs the request."""

    def __init__(self, message: str = "Not authenticated", *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=401)


class NotAuthorizedError(Bid2Error):
    """
    Raised when the actor is not permitted to act on an RFQ or bid.

    Examples:
        raise NotAuthorizedError("Only the owning contractor can send this RFQ")
        raise NotAuthorizedError("Supplier was not matched", detail={"rfq_id": 3})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=403)


class ResourceNotFoundError(Bid2Error):
    """
    Raised when a requested resource doesn't exist.

    Examples:
        raise ResourceNotFoundError("RFQ not found", detail={"rfq_id": 123})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=404)


class BidNotFoundError(ResourceNotFoundError):
    """Raised when a bid id does not reference a bid of the given RFQ."""


class InvalidTransitionError(Bid2Error):
    """
    Raised when an RFQ lifecycle precondition is violated.

    Examples:
        raise InvalidTransitionError("RFQ already sent", detail={"status": "sent"})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=409)


class NoMatchingSuppliersError(Bid2Error):
    """Raised when sending an RFQ would address zero suppliers."""

    def __init__(
        self,
        message: str = "No matching suppliers found for this category and city.",
        *,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, detail=detail, status_code=422)


class DuplicateBidError(Bid2Error):
    """Raised when a supplier submits a second bid for the same RFQ."""

    def __init__(
        self,
        message: str = "You have already submitted a bid for this RFQ.",
        *,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, detail=detail, status_code=409)


class ExternalServiceError(Bid2Error):
    """
    Base exception for external service failures.

    This is a parent class for the hosted LLM failure modes.
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
    ):
        if service_name and detail is None:
            detail = {"service": service_name}
        elif service_name and detail:
            detail["service"] = service_name

        super().__init__(message, detail=detail, status_code=502)


class UpstreamUnavailableError(ExternalServiceError):
    """
    Raised when the hosted LLM cannot be reached or answers with an error.

    Examples:
        raise UpstreamUnavailableError("LLM request timed out")
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, service_name="llm")


class UnparseableResponseError(ExternalServiceError):
    """Raised when the LLM reply is not usable JSON even after recovery."""

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, service_name="llm")


ERROR_TYPES = {
    cls.__name__[:-5]: cls
    for cls in (
        ValidationError,
        AuthenticationError,
        NotAuthorizedError,
        ResourceNotFoundError,
        BidNotFoundError,
        InvalidTransitionError,
        NoMatchingSuppliersError,
        DuplicateBidError,
        UpstreamUnavailableError,
        UnparseableResponseError,
    )
}
