"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Token ledger
  3xxx: Listing
  4xxx: Bid / proposal
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class ServiceAccountRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Payment service account required", 403)


class AgentAccountRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Agent account required", 403)


# --- 2xxx: Token ledger ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2001,
            f"Insufficient tokens: required {required}, available {available}",
            422,
        )


class InvalidTokenAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2002, f"Token amount must be positive, got {amount}", 422)


class PurchaseRefConflictError(AppError):
    def __init__(self, purchase_ref: str) -> None:
        super().__init__(
            2003, f"Purchase reference {purchase_ref} already credited to another agent", 409
        )


# --- 3xxx: Listing ---

class ListingNotFoundError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing not found: {listing_id}", 404)


# --- 4xxx: Bid / proposal ---

class AlreadyBidError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(4001, f"Already bid on listing {listing_id}", 409)


class InvalidBoostError(AppError):
    def __init__(self, boost: int) -> None:
        super().__init__(4002, f"Boost must be zero or positive, got {boost}", 422)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ConcurrentConflictError(AppError):
    """Transient store failure before any debit; the whole call may be retried."""

    def __init__(self, detail: str = "Concurrent update conflict, retry the request") -> None:
        super().__init__(9003, detail, 409)


class PersistenceFailureError(AppError):
    """Persisting the proposal failed after the debit; tokens were refunded."""

    def __init__(self, listing_id: str) -> None:
        super().__init__(
            9004,
            f"Could not record bid on listing {listing_id}; tokens refunded, retry the request",
            503,
        )


class RefundFailedError(AppError):
    """Debited tokens could not be returned. Needs manual reconciliation."""

    def __init__(self, agent_id: str, amount: int, reference_id: str) -> None:
        self.agent_id = agent_id
        self.amount = amount
        self.reference_id = reference_id
        super().__init__(
            9005,
            f"Refund of {amount} tokens failed for bid {reference_id}; escalated for reconciliation",
            500,
        )
