import logging
from dataclasses import dataclass, field
import requests

from handcart.core.errors import GatewayError, PaymentInvalid, TransportError

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = frozenset({"paid", "authorized"})

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)

@dataclass
class MoyasarConfig:
    base_url: str           # https://api.moyasar.com/v1
    secret_key: str         # sk_live_... / sk_test_... (HTTP basic username, empty password)
    timeout: float = 15.0

@dataclass
class PaymentCheck:
    ok: bool
    reason: str
    payment: dict = field(default_factory=dict)

class PaymentGatewayClient:
    """Read-only view of the gateway. No caching: every confirmation re-queries it."""

    def __init__(self, cfg: MoyasarConfig, accepted_statuses=ACCEPTED_STATUSES):
        self.cfg = cfg
        self.accepted_statuses = frozenset(accepted_statuses)

    def fetch_payment(self, payment_id: str) -> dict:
        url = f"{self.cfg.base_url.rstrip('/')}/payments/{payment_id}"
        try:
            r = requests.get(url, auth=(self.cfg.secret_key, ""), headers={"Accept": "application/json"}, timeout=self.cfg.timeout)
        except requests.RequestException as e:
            logger.warning("gateway_transport_error", extra={"payment_id": payment_id, "error": str(e)})
            raise TransportError(f"payment gateway unreachable: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code == 404:
            raise PaymentInvalid(f"payment {payment_id} not found at gateway", extra={"paymentId": payment_id})
        if r.status_code >= 400:
            raise GatewayError(f"Moyasar {r.status_code}: {data}")
        if not isinstance(data, dict) or not data.get("id"):
            raise GatewayError(f"Moyasar returned no payment for {payment_id}: {data}")
        return data

    def confirm(self, payment_id: str, expected_amount: int, expected_currency: str) -> PaymentCheck:
        pay = self.fetch_payment(payment_id)
        status = str(pay.get("status") or "").lower()
        currency = str(pay.get("currency") or "").upper()
        amount = pay.get("amount")

        problems = []
        if status not in self.accepted_statuses:
            problems.append(f"status {status or '<none>'} not in {sorted(self.accepted_statuses)}")
        if currency != expected_currency.upper():
            problems.append(f"currency {currency or '<none>'} != {expected_currency.upper()}")
        # Minor units, compared as integers only: 1500.9 or "1500" never match 1500.
        if not _is_int(amount):
            problems.append(f"amount {amount!r} is not an integer")
        elif not _is_int(expected_amount):
            problems.append(f"expected amount {expected_amount!r} is not an integer")
        elif amount != expected_amount:
            problems.append(f"amount {amount} != {expected_amount}")

        if problems:
            reason = "; ".join(problems)
            logger.info("payment_rejected", extra={"payment_id": payment_id, "reason": reason})
            return PaymentCheck(ok=False, reason=reason, payment=pay)
        return PaymentCheck(ok=True, reason="", payment=pay)
