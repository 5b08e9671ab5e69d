"""Failure taxonomy for the order / verification flow.

Each exception carries the HTTP status the payment endpoint answers with and
a generic ``public_message`` that is safe to show to the browser. The ``str()``
of an exception is diagnostic detail for the server log only.
"""

from django.core.exceptions import ImproperlyConfigured


class PaymentError(Exception):
    status_code = 400
    public_message = "Payment failed"


class ConfigurationError(PaymentError, ImproperlyConfigured):
    status_code = 500
    public_message = "Server misconfigured"


class InvalidTeamError(PaymentError):
    public_message = "Invalid team"


class InvalidPricingError(PaymentError):
    public_message = "Invalid pricing data"


class GatewayError(PaymentError):
    status_code = 502
    public_message = "Payment gateway error"


class InvalidSignatureError(PaymentError):
    public_message = "Invalid payment signature"


class PaymentNotCapturedError(PaymentError):

    def __init__(self, status):
        self.status = status or "unknown"
        super().__init__(f"Gateway reports payment status {self.status!r}")

    @property
    def public_message(self):
        return f"Payment not captured (status: {self.status})"


class PaymentRecordNotFoundError(PaymentError):
    public_message = "Payment record not found"


class PersistenceError(PaymentError):
    status_code = 500
    public_message = "Failed to record payment"


class TeamAlreadyPaidError(PaymentError):
    status_code = 409
    public_message = "Team has already paid"
