"""RSA-SHA256 signing of outbound vendor requests and verification of vendor callbacks."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Callable, NamedTuple

from jose import jwk
from jose.constants import ALGORITHMS
from jose.exceptions import JWKError

from handcart.core.errors import NotConfigured
from handcart.services.canonical import canonical_bytes

logger = logging.getLogger(__name__)


def pem_from_b64(key_b64: str, kind: str) -> str:
    """Wrap a bare base64 DER key (as the vendor portal hands it out) into PEM.

    ``kind`` is ``"PRIVATE KEY"`` or ``"PUBLIC KEY"``. A value that is already PEM is returned as-is.
    """
    raw = (key_b64 or "").strip()
    if raw.startswith("-----BEGIN"):
        return raw
    b64 = raw.replace("\r", "").replace("\n", "").replace(" ", "")
    if not b64:
        raise NotConfigured(f"{kind.lower()} is empty")
    lines = [b64[i:i + 64] for i in range(0, len(b64), 64)]
    return f"-----BEGIN {kind}-----\n" + "\n".join(lines) + f"\n-----END {kind}-----"


def _construct(pem: str, kind: str):
    try:
        return jwk.construct(pem, algorithm=ALGORITHMS.RS256)
    except JWKError as e:
        raise NotConfigured(f"invalid {kind.lower()}: {e}") from e


class RequestSigner:
    def __init__(self, private_key_b64: str):
        self._key = _construct(pem_from_b64(private_key_b64, "PRIVATE KEY"), "PRIVATE KEY")

    def sign(self, message: bytes) -> str:
        return base64.b64encode(self._key.sign(message)).decode("ascii")

    def sign_value(self, value) -> str:
        return self.sign(canonical_bytes(value))


class Framing(NamedTuple):
    """One candidate shape the vendor may have signed a callback over."""
    name: str
    build: Callable[[str, dict], object]


# Tried in order; the first one whose signature checks out wins.
CALLBACK_FRAMINGS: tuple[Framing, ...] = (
    Framing("original_data", lambda merchant_no, payload: payload),
    Framing("merchant_envelope", lambda merchant_no, payload: {"merchantNo": merchant_no, "originalData": payload}),
)


class CallbackVerifier:
    def __init__(self, public_key_b64: str, framings: tuple[Framing, ...] = CALLBACK_FRAMINGS):
        self._key = _construct(pem_from_b64(public_key_b64, "PUBLIC KEY"), "PUBLIC KEY")
        self.framings = framings

    def verify_bytes(self, message: bytes, signature_b64: str) -> bool:
        try:
            signature = base64.b64decode(signature_b64 or "", validate=True)
        except (binascii.Error, ValueError):
            return False
        if not signature:
            return False
        return bool(self._key.verify(message, signature))

    def matching_framing(self, merchant_no: str, signature_b64: str, payload: dict) -> str | None:
        for framing in self.framings:
            if self.verify_bytes(canonical_bytes(framing.build(merchant_no, payload)), signature_b64):
                return framing.name
        return None

    def verify(self, merchant_no: str, signature_b64: str, payload: dict) -> bool:
        name = self.matching_framing(merchant_no, signature_b64, payload)
        if name is None:
            logger.warning("callback_signature_rejected", extra={"merchant_no": merchant_no})
            return False
        logger.info("callback_signature_accepted", extra={"merchant_no": merchant_no, "framing": name})
        return True
