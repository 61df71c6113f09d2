"""
Store exceptions. Every error carries the HTTP status it should be rendered with;
the handlers in glowstore.main turn them into {"error": message} responses.
"""


class StoreError(Exception):
    """Base exception for all store errors"""
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(StoreError):
    status_code = 400


class NotFoundError(StoreError):
    status_code = 404

    def __init__(self, what: str, ident=None):
        message = f"{what} not found" if ident is None else f"{what} {ident} not found"
        super().__init__(message)


class ConflictError(StoreError):
    status_code = 409


class PaymentProviderError(StoreError):
    """Raised when Paystack/Flutterwave reject a call or cannot be reached"""
    status_code = 502

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class NotConfiguredError(StoreError):
    status_code = 503
