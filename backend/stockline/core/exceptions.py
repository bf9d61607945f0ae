"""
Error taxonomy for command handling, plus safe HTTP errors for the API.

Command errors never leave a handler as a raw exception: the router turns
them into a failed response, and the clarification-carrying ones become
pending clarifications instead of failures.

SECURITY PRINCIPLE: Don't expose internal details to users.
Use generic error messages externally, detailed logging internally.
"""
import logging
from typing import TYPE_CHECKING, Optional

from fastapi import HTTPException, status

if TYPE_CHECKING:
    from stockline.services.clarifications import ClarificationRequest

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong while saving your changes. Please try again."


class CommandError(Exception):
    """Base class for business-rule failures raised while executing a command."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CommandError):
    """Malformed or missing parameters. Aborts only the current intent."""


class UnknownIntentError(CommandError):
    """Intent name has no registered handler. Reported, batch continues."""

    def __init__(self, intent: str):
        super().__init__(f"Unknown command: {intent}")
        self.intent = intent


class TransactionAbortError(CommandError):
    """Store-level commit failure. Nothing was written."""

    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE):
        super().__init__(message)


class ClarificationNeeded(CommandError):
    """Resolution is blocked; carries the clarification that replaces a hard failure."""

    def __init__(self, clarification: "ClarificationRequest"):
        super().__init__(clarification.prompt)
        self.clarification = clarification


class NotFoundError(ClarificationNeeded):
    """Product or customer absent after fuzzy matching."""


class InsufficientStockError(ClarificationNeeded):
    """Requested quantity exceeds current stock."""


class AmbiguousUnitError(ClarificationNeeded):
    """Base unit or conversion factor unknown."""


class ClarificationClosedError(CommandError):
    """Resolve or cancel attempted on a clarification that is no longer pending."""


class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        Generic 404 that doesn't confirm resource existence.

        Same response whether the resource doesn't exist or belongs to
        another merchant.
        """
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """400 for input validation / business logic errors caused by the caller."""
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """409 for resource conflicts, e.g. a clarification that is no longer pending."""
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Optional[Exception] = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from user.

        Never expose stack traces, SQL errors, or internal paths to users.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=True,
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )
