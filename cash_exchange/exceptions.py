"""
Typed errors raised by the exchange core.

Every error carries a machine-readable ``code`` and belongs to one of four
kinds, which the HTTP layer maps onto status codes:

    VALIDATION  malformed or out-of-range input, rejected before touching state
    CONFLICT    a precondition on current state failed
    NOT_FOUND   a request, user or transaction id did not resolve
    INTERNAL    storage or transaction failure; the unit of work was rolled back
"""

VALIDATION = "VALIDATION"
CONFLICT = "CONFLICT"
NOT_FOUND = "NOT_FOUND"
INTERNAL = "INTERNAL"


class ExchangeError(Exception):
    kind = INTERNAL
    code = "EXCHANGE_ERROR"

    def __init__(self, message=None, **details):
        self.message = message or self.__class__.__doc__ or self.code
        self.details = details
        super().__init__(self.message)


class ValidationError(ExchangeError):
    """Invalid input."""

    kind = VALIDATION
    code = "VALIDATION_FAILED"


class ConflictError(ExchangeError):
    kind = CONFLICT
    code = "CONFLICT"


class NotFoundError(ExchangeError):
    kind = NOT_FOUND
    code = "NOT_FOUND"


class InternalError(ExchangeError):
    """The operation failed and was rolled back."""

    kind = INTERNAL
    code = "INTERNAL_ERROR"


class UserNotFoundError(NotFoundError):
    """User not found."""

    code = "USER_NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Exchange request not found."""

    code = "REQUEST_NOT_FOUND"


class TransactionNotFoundError(NotFoundError):
    """Transaction not found."""

    code = "TRANSACTION_NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Ledger account not found."""

    code = "ACCOUNT_NOT_FOUND"


class ActiveRequestExistsError(ConflictError):
    """You already have an active exchange request. Complete or cancel it first."""

    code = "ACTIVE_REQUEST_EXISTS"


class InsufficientFundsError(ConflictError):
    """Insufficient wallet balance."""

    code = "INSUFFICIENT_FUNDS"


class HelperBusyError(ConflictError):
    """You already have an exchange in progress."""

    code = "HELPER_BUSY"


class SelfAcceptError(ConflictError):
    """You cannot accept your own request."""

    code = "SELF_ACCEPT"


class RequestUnavailableError(ConflictError):
    """This request is no longer available."""

    code = "REQUEST_UNAVAILABLE"


class NoActiveRequestError(ConflictError):
    """You must have an active exchange request."""

    code = "NO_ACTIVE_REQUEST"


class DirectionMismatchError(ConflictError):
    """Exchange directions are not compatible."""

    code = "DIRECTION_MISMATCH"


class AmountMismatchError(ConflictError):
    """Your request amount does not cover this request."""

    code = "AMOUNT_MISMATCH"


class NotAssignedHelperError(ConflictError):
    """Only the assigned helper can complete this request."""

    code = "NOT_ASSIGNED_HELPER"


class RequestNotAcceptedError(ConflictError):
    """This request cannot be completed."""

    code = "REQUEST_NOT_ACCEPTED"


class InvalidCompletionCodeError(ConflictError):
    """Invalid completion code."""

    code = "INVALID_COMPLETION_CODE"


class NotRequesterError(ConflictError):
    """Only the requester can cancel this request."""

    code = "NOT_REQUESTER"


class InvalidTransitionError(ConflictError):
    """Request status does not allow this change."""

    code = "INVALID_TRANSITION"


class TransactionNotReversibleError(ConflictError):
    """Only completed transactions can be reversed."""

    code = "TRANSACTION_NOT_REVERSIBLE"
