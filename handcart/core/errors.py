"""Error taxonomy shared by the API, the ledger and the outbound clients.

Every error maps to a stable ``{code, msg}`` envelope; ``http_status`` is what
the API answers with when the error escapes a route.
"""


class HandcartError(Exception):
    code = "LOCAL_ERROR"
    http_status = 500

    def __init__(self, msg: str = "", *, code: str | None = None, extra: dict | None = None):
        super().__init__(msg or self.__class__.__name__)
        if code:
            self.code = code
        self.extra = extra or {}

    def envelope(self) -> dict:
        return {"code": self.code, "msg": str(self), **self.extra}


class ValidationError(HandcartError):
    """Missing or malformed caller input, rejected before any external call."""
    code = "MISSING_PARAM"
    http_status = 400


class PaymentInvalid(HandcartError):
    """Gateway status/currency/amount mismatch. No order is created."""
    code = "PAY_INVALID"
    http_status = 402


class TransportError(HandcartError):
    """Network failure or timeout talking to the vendor or the gateway."""
    code = "TRANSPORT_ERROR"
    http_status = 504


class GatewayError(HandcartError):
    code = "GATEWAY_ERROR"
    http_status = 502


class VendorRejected(HandcartError):
    """Vendor answered with a non-success business code; the order is kept as unlock_failed."""
    http_status = 502


class SignatureInvalid(HandcartError):
    code = "SIGN_INVALID"
    http_status = 401


class OrderNotFound(HandcartError):
    code = "ORDER_NOT_FOUND"
    http_status = 404


class InvalidTransition(HandcartError):
    code = "INVALID_TRANSITION"
    http_status = 409


class NotConfigured(HandcartError):
    code = "NOT_CONFIGURED"
    http_status = 500


class VendorHTTPError(HandcartError):
    """Vendor answered non-2xx. ``body`` is the vendor's response, untouched."""
    code = "VENDOR_HTTP_ERROR"
    http_status = 502

    def __init__(self, status_code: int, body):
        super().__init__(f"Vendor {status_code}: {body}")
        self.status_code = status_code
        self.body = body

    def envelope(self) -> dict:
        if isinstance(self.body, dict):
            return self.body
        return {"code": self.code, "msg": str(self)}
