"""
Billing exceptions.

Every error raised on the checkout, webhook and reconciliation paths is a
``BillingError``. The API renders them as ``{"error": message}`` with the
exception's HTTP status.
"""

from typing import Optional


class BillingError(Exception):
    """Base class for billing errors."""

    status_code = 400
    default_code = "BILLING_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict] = None):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class AuthenticationError(BillingError):
    """Missing, malformed or rejected caller credential."""

    status_code = 401
    default_code = "AUTHENTICATION_ERROR"


class ValidationError(BillingError):
    """Malformed request, e.g. a required field is missing."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class ProviderError(BillingError):
    """
    The payment provider rejected or failed a request.

    Carries the provider's own message so the caller can show it.
    """

    status_code = 400
    default_code = "PROVIDER_ERROR"

    def __init__(self, message: str, provider_code: Optional[str] = None):
        super().__init__(
            message,
            details={"provider_code": provider_code} if provider_code else {},
        )
        self.provider_code = provider_code


class SignatureVerificationError(BillingError):
    """Webhook payload failed the authenticity check. The event is dropped."""

    status_code = 400
    default_code = "SIGNATURE_VERIFICATION_ERROR"


class TransitionError(BillingError):
    """
    Applying a webhook transition failed.

    Answered with 500 so the provider redelivers the whole event.
    """

    status_code = 500
    default_code = "TRANSITION_ERROR"

    def __init__(self, message: str, event_id: Optional[str] = None, event_type: Optional[str] = None):
        super().__init__(
            message,
            details={"event_id": event_id, "event_type": event_type},
        )
        self.event_id = event_id
        self.event_type = event_type
