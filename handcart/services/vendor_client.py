import logging
import secrets
import string
import time
from dataclasses import dataclass
import requests

from handcart.core.errors import TransportError, VendorHTTPError
from handcart.services.canonical import canonical_bytes, canonicalize
from handcart.services.signing import RequestSigner

logger = logging.getLogger(__name__)

_NONCE_ALPHABET = string.digits + string.ascii_lowercase

@dataclass
class VendorConfig:
    base_url: str           # e.g. https://iot.vendor.example (paths are appended verbatim)
    merchant_no: str        # merchant account every call is scoped to
    private_key_b64: str    # merchant RSA private key (bare base64 PKCS8 or PEM)
    timeout: float = 20.0

def make_nonce(length: int = 10) -> str:
    # Only used for vendor-side logging, not for replay defense
    return "".join(secrets.choice(_NONCE_ALPHABET) for _ in range(length))

def now_ms() -> int:
    return int(time.time() * 1000)

class VendorClient:
    def __init__(self, cfg: VendorConfig, signer: RequestSigner | None = None):
        self.cfg = cfg
        self.signer = signer or RequestSigner(cfg.private_key_b64)

    def envelope(self, value: dict) -> dict:
        return canonicalize({"nonce": make_nonce(), "timestamp": now_ms(), "value": value})

    def sign_and_send(self, path: str, value: dict) -> dict:
        """POST ``{nonce, timestamp, value}`` signed over its canonical form.

        No retries here. Non-2xx answers raise VendorHTTPError carrying the vendor body untouched.
        """
        body_bytes = canonical_bytes(self.envelope(value))
        headers = {
            "Content-Type": "application/json",
            "Authorization": self.signer.sign(body_bytes),
        }
        url = f"{self.cfg.base_url.rstrip('/')}{path}"
        try:
            r = requests.post(url, data=body_bytes, headers=headers, timeout=self.cfg.timeout)
        except requests.RequestException as e:
            logger.warning("vendor_transport_error", extra={"path": path, "error": str(e)})
            raise TransportError(f"vendor call {path} failed: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 300:
            logger.warning("vendor_http_error", extra={"path": path, "status_code": r.status_code})
            raise VendorHTTPError(r.status_code, data)
        logger.info("vendor_call_ok", extra={"path": path, "vendor_code": data.get("code") if isinstance(data, dict) else None})
        return data

    def unlock_cart(self, *, device_no: str, cart_no: str, cart_index: int) -> dict:
        value = {
            "merchantNo": self.cfg.merchant_no,
            "deviceNo": device_no,
            "cartNo": str(cart_no).strip(),
            "cartIndex": int(cart_index),
        }
        return self.sign_and_send("/trx/interface/handCart/unlock", value)

    def get_cart_list(self, *, device_no: str) -> dict:
        return self.sign_and_send("/trx/interface/handCart/getCartList", {"merchantNo": self.cfg.merchant_no, "deviceNo": device_no})

    def bind_carts(self, *, cart_nos: list[str]) -> dict:
        return self.sign_and_send("/trx/interface/handCart/bind", {"merchantNo": self.cfg.merchant_no, "cartNo": list(cart_nos)})

    def unbind_carts(self, *, cart_nos: list[str]) -> dict:
        return self.sign_and_send("/trx/interface/handCart/unbind", {"merchantNo": self.cfg.merchant_no, "cartNo": list(cart_nos)})
