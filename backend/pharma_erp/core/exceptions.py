"""
Domain errors and their safe HTTP translations.

Services raise ErpError subclasses carrying a human-readable message.
Routes translate them with BusinessError so that validation problems reach the
operator verbatim. Settlement failures are logged in full and surfaced as a 500
whose detail carries a stable code and the ids of any orphaned records.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class ErpError(Exception):
    """Base class for every error raised by the ERP core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ------------------------------------------------------------------------------
# Lot allocation
# ------------------------------------------------------------------------------

class AllocationError(ErpError):
    """Validation problem inside a lot allocation run. Operator can correct it."""


class SelectionIncompleteError(AllocationError):
    """No lot has been chosen for the current item."""


class QuantityMismatchError(AllocationError):
    """Selected total differs from the quantity the combo sets require."""

    def __init__(self, message: str, required: int, selected: int):
        super().__init__(message)
        self.required = required
        self.selected = selected


class InvalidLotQuantityError(AllocationError):
    """Quantity outside [1, min(lot on-hand, required)]."""


class UnknownLotError(AllocationError):
    """Lot is not among the eligible lots of the current item."""


class AllocationClosedError(AllocationError):
    """Run was already confirmed or cancelled."""


class LotFetchError(ErpError):
    """Inventory lookup failed. Retry by fetching again."""


class InsufficientLotQuantityError(ErpError):
    """A confirmed selection no longer fits the lot's on-hand quantity."""


# ------------------------------------------------------------------------------
# Sale settlement
# ------------------------------------------------------------------------------

class SettlementError(ErpError):
    """Base class for sale settlement failures."""

    # Stable code for the HTTP response, so callers can tell the kinds apart
    code = "settlement_failed"


class SalesOrderWriteError(SettlementError):
    """Sales order (or one of its lines) could not be written. Nothing to undo."""

    code = "sale_not_recorded"


class LedgerWriteError(SettlementError):
    """Ledger entry could not be written. The sales order was deleted again."""

    code = "sale_not_recorded"

    def __init__(self, message: str, order_id: Optional[int] = None):
        super().__init__(message)
        self.order_id = order_id


class InventoryWriteError(SettlementError):
    """Inventory batch failed. The ledger entry and the sales order were deleted again."""

    code = "sale_rolled_back"

    def __init__(self, message: str, transaction_id: Optional[int] = None, order_id: Optional[int] = None):
        super().__init__(message)
        self.transaction_id = transaction_id
        self.order_id = order_id


class CompensationError(SettlementError):
    """
    A settlement step failed AND undoing the earlier writes failed too.

    The ledger entry (transaction_id) and/or sales order (order_id) left behind
    are orphaned and need manual reconciliation.
    """

    code = "manual_reconciliation_required"

    def __init__(
        self,
        message: str,
        transaction_id: Optional[int],
        cause: Exception,
        rollback_error: Exception,
        order_id: Optional[int] = None,
    ):
        super().__init__(message)
        self.transaction_id = transaction_id
        self.order_id = order_id
        self.cause = cause
        self.rollback_error = rollback_error


class NotFoundError(ErpError):
    """Requested record does not exist."""


class DuplicateComboItemError(ErpError):
    """A combo lists each product once; its per-set quantity carries the count."""


_SETTLEMENT_MESSAGES = {
    "sale_not_recorded": "The sale was not recorded. Nothing was charged or deducted; it is safe to retry.",
    "sale_rolled_back": "Stock could not be updated, so the sale was rolled back. It is safe to retry.",
    "manual_reconciliation_required": (
        "The sale failed and could not be fully rolled back. "
        "Do not retry; the records listed here need manual reconciliation."
    ),
}


class BusinessError:
    """Business-domain HTTP errors with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation / business rule errors.

        OK to include specific details here since the operator caused the issue.
        Examples: "Quantity must be positive", "Select exactly 6 units"
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def upstream_failure(detail: str) -> HTTPException:
        """502 when a collaborator (inventory lookup, LLM) did not answer usefully."""
        logger.warning(f"Upstream failure: {detail}")
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides it from the caller.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error,
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )

    @staticmethod
    def settlement_failure(error: SettlementError) -> HTTPException:
        """
        500 with a structured detail: {"code", "message"} plus the ids of any
        records left behind. The cause itself is logged, never returned.
        """
        logger.error(
            f"Settlement failed ({error.code}): {type(error).__name__}: {error.message}",
            exc_info=error,
        )
        detail = {
            "code": error.code,
            "message": _SETTLEMENT_MESSAGES.get(error.code, "The sale could not be completed."),
        }
        if isinstance(error, CompensationError):
            logger.critical(
                f"Orphaned records need manual reconciliation: "
                f"transaction={error.transaction_id} order={error.order_id}"
            )
            detail["transaction_id"] = error.transaction_id
            detail["order_id"] = error.order_id
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
        )

    @classmethod
    def from_domain(cls, error: ErpError) -> HTTPException:
        """Map a domain error to the matching HTTP response."""
        if isinstance(error, AllocationClosedError):
            return cls.conflict(error.message)
        if isinstance(error, AllocationError):
            return cls.bad_request(error.message)
        if isinstance(error, NotFoundError):
            return cls.not_found(error.message)
        if isinstance(error, (InsufficientLotQuantityError, DuplicateComboItemError)):
            return cls.conflict(error.message)
        if isinstance(error, LotFetchError):
            return cls.upstream_failure(error.message)
        if isinstance(error, SettlementError):
            return cls.settlement_failure(error)
        return cls.server_error(error)
