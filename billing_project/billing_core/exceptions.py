"""
Typed failures of the billing engine.

Input problems are reported with Django's ValidationError (a field ->
messages dict where possible). Everything here is a BillingError so views
and the remote client can tell the families apart.
"""


class BillingError(Exception):
    """Base class for non-validation billing failures."""

    code = "BILLING_ERROR"

    def __init__(self, message, *, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


# ---------- State conflicts ----------
class StateConflictError(BillingError):
    """Raised when a document is no longer in a state that allows the action.
    The caller should refresh the document rather than re-show a form."""

    code = "STATE_CONFLICT"


class AlreadyConvertedError(StateConflictError):
    """Raised when a quotation has already produced an invoice."""

    code = "ALREADY_CONVERTED"


class PaymentExceedsBalanceError(StateConflictError):
    """Raised when a payment would take the balance below zero."""

    code = "PAYMENT_EXCEEDS_BALANCE"


# ---------- Authentication ----------
class AuthError(BillingError):
    code = "UNAUTHORIZED"


class ShareLinkPasswordError(AuthError):
    """Wrong share-link password (recoverable, re-prompt)."""

    code = "INVALID_PASSWORD"


class SessionExpiredError(AuthError):
    """Session token rejected and the single refresh attempt failed."""

    code = "SESSION_EXPIRED"


# Missing, deactivated and expired links all look the same to a guest
class ShareLinkNotFoundError(BillingError):
    code = "NOT_FOUND"


# ---------- Transport ----------
class TransportError(BillingError):
    """Network-level failure. The only family that is safe to retry."""

    code = "TRANSPORT_ERROR"


class ApiError(BillingError):
    """Business error reported by the backend-of-record."""

    code = "API_ERROR"

    def __init__(self, message, *, status_code=None, details=None):
        super().__init__(message, details=details)
        self.status_code = status_code


class SubmitInProgressError(StateConflictError):
    """A save for the same document is still in flight."""

    code = "SUBMIT_IN_PROGRESS"
