"""Custom exception classes for the application."""
from typing import Any, Dict, List, Optional
from fastapi import status


class ClaimRelayException(Exception):
    """Base exception class for ClaimRelay application."""

    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error summary
            status_code: HTTP status code
            details: Additional error details
            code: Machine-readable error code (defaults to the class code)
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code:
            self.code = code
        super().__init__(self.message)


class ResourceNotFoundException(ClaimRelayException):
    """Exception raised when a requested resource is not found."""

    code = "NOT_FOUND"

    def __init__(
        self,
        resource_type: str,
        identifier: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        """
        Initialize resource not found exception.

        Args:
            resource_type: Type of resource (e.g., "Claim", "Submission")
            identifier: Identifier that was not found
            details: Additional error details
            code: Resource-specific error code (e.g., "CLAIM_NOT_FOUND")
        """
        message = f"{resource_type} with identifier '{identifier}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details or {"resource_type": resource_type, "identifier": identifier},
            code=code,
        )


class ClaimValidationException(ClaimRelayException):
    """Exception raised when claim data is incomplete or malformed."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        errors: List[str],
        message: str = "Please fix the following issues before submitting",
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize claim validation exception.

        Args:
            errors: Individual validation problems
            message: Summary message
            details: Additional error details
        """
        self.errors = list(errors)
        error_details = details or {}
        error_details["errors"] = self.errors

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=error_details,
        )


class AlreadyInProgressException(ClaimRelayException):
    """Exception raised when a submission for the claim is already in flight."""

    code = "SUBMISSION_IN_PROGRESS"

    def __init__(self, claim_id: str):
        """
        Initialize already-in-progress exception.

        Args:
            claim_id: Claim whose submission is in flight
        """
        super().__init__(
            message=f"A submission for claim '{claim_id}' is already in progress",
            status_code=status.HTTP_409_CONFLICT,
            details={"claim_id": claim_id},
        )


class IllegalTransitionException(ClaimRelayException):
    """Exception raised when a claim status change is not permitted."""

    code = "ILLEGAL_TRANSITION"

    def __init__(self, current_status: str, requested_status: str, message: Optional[str] = None):
        """
        Initialize illegal transition exception.

        Args:
            current_status: Status the claim is in
            requested_status: Status that was requested
            message: Optional override for the summary message
        """
        super().__init__(
            message=message or f"Cannot move claim from '{current_status}' to '{requested_status}'",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current_status, "requested_status": requested_status},
        )


class FallbackGenerationException(ClaimRelayException):
    """Exception raised when the claim-form fallback document cannot be produced."""

    code = "FALLBACK_GENERATION_FAILED"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize fallback generation exception.

        Args:
            message: What went wrong while generating the document
            details: Additional error details
        """
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details,
        )


class SubmissionFailedException(ClaimRelayException):
    """Exception raised when neither electronic delivery nor the fallback succeeded."""

    code = "SUBMISSION_FAILED"

    def __init__(
        self,
        claim_id: str,
        attempts: List[Dict[str, Any]],
        fallback_error: Optional[str] = None,
        message: str = "Claim submission failed. Please try again or contact support.",
    ):
        """
        Initialize submission failed exception.

        Args:
            claim_id: Claim that could not be submitted
            attempts: Summary of every provider attempt, in order
            fallback_error: Reason the fallback document could not be produced
            message: Summary message
        """
        self.attempts = attempts
        self.fallback_error = fallback_error
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={
                "claim_id": claim_id,
                "attempts": attempts,
                "fallback_error": fallback_error,
            },
        )


class DatabaseException(ClaimRelayException):
    """Exception raised when a database operation fails."""

    code = "DATABASE_ERROR"

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """
        Initialize database exception.

        Args:
            message: Database error message
            operation: Database operation that failed (e.g., "commit", "verify")
            details: Additional error details
        """
        error_details = details or {}
        if operation:
            error_details["operation"] = operation

        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=error_details,
        )


class ExternalServiceException(ClaimRelayException):
    """Exception raised when an external service call fails."""

    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize external service exception.

        Args:
            message: External service error message
            service_name: Name of external service
            details: Additional error details
        """
        error_details = details or {}
        if service_name:
            error_details["service_name"] = service_name

        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=error_details,
        )
