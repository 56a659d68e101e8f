class CheckoutError(Exception):
    """Base class for every error raised by the checkout package."""


class ConfigurationError(CheckoutError):
    """Deployment configuration is missing or invalid. Raised before any network call."""


class GatewayError(CheckoutError):
    """The payment provider could not be reached or answered with something unusable."""


class InvalidStateError(CheckoutError):
    """A confirmation was requested while another one is still active."""
