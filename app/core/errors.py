"""Error taxonomy shared by the order services and the HTTP layer."""


class ExchangeError(Exception):
    """Base class; `code` is the machine readable classification sent to clients."""

    code = "exchange_error"
    status_code = 400

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ExchangeError):
    code = "validation_error"


class OrderNotFound(ExchangeError):
    code = "not_found"
    status_code = 404

    def __init__(self, order_id: str | None = None):
        super().__init__("Order not found")
        self.order_id = order_id


class OrderStateError(ExchangeError):
    """Guard failure: the order already left `pending`."""

    code = "already_completed"


PAYMENT_ERROR_CODES = ("invalid_instrument", "expired_instrument", "declined", "gateway_unavailable")


class PaymentError(ExchangeError):
    """Classified authorization failure. Messages never contain the instrument itself."""

    code = "declined"

    def __init__(self, code: str, message: str):
        if code not in PAYMENT_ERROR_CODES:
            raise ValueError(f"unknown payment error code: {code}")
        super().__init__(message, code)
        self.status_code = 502 if code == "gateway_unavailable" else 400


class ProviderError(ExchangeError):
    """Redirect wallet provider could not start a checkout."""

    code = "provider_error"
    status_code = 500


PAYOUT_ERROR_CODES = ("unsupported_asset_network", "invalid_amount", "payout_unavailable", "transfer_error")


class PayoutError(ExchangeError):
    """Payout failure. Handled by the lifecycle controller, never rendered as an HTTP error."""

    code = "transfer_error"
    status_code = 502

    def __init__(self, code: str, message: str):
        if code not in PAYOUT_ERROR_CODES:
            raise ValueError(f"unknown payout error code: {code}")
        super().__init__(message, code)
