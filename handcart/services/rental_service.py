import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from handcart.core.errors import PaymentInvalid, ValidationError, VendorRejected, TransportError, VendorHTTPError
from handcart.models.rental_order import IN_USE, UNLOCKING, UNLOCK_FAILED
from handcart.schemas.rentals import PaymentConfirmRequest, order_out, payment_out
from handcart.services.ledger_service import OrderLedger, as_int
from handcart.services.moyasar_client import PaymentGatewayClient
from handcart.services.vendor_client import VendorClient

logger = logging.getLogger(__name__)

@dataclass
class UnlockPolicy:
    merchant_no: str
    expected_currency: str = "SAR"
    success_code: str = "00000"
    default_site_no: str | None = None

def _require(body: PaymentConfirmRequest) -> int:
    missing = [name for name in ("paymentId", "deviceNo", "cartNo") if not (getattr(body, name) or "").strip()]
    cart_index = as_int(body.cartIndex)
    if cart_index is None:
        missing.append("cartIndex")
    if body.amountHalalas is None or body.amountHalalas <= 0:
        missing.append("amountHalalas")
    if missing:
        raise ValidationError(f"missing or invalid: {', '.join(missing)}", extra={"fields": missing})
    return cart_index

def confirm_and_unlock(db: Session, body: PaymentConfirmRequest, gateway: PaymentGatewayClient,
                       vendor: VendorClient, policy: UnlockPolicy) -> dict:
    """Payment confirmation entrypoint: gateway check -> order (idempotent per payment) -> vendor unlock."""
    cart_index = _require(body)
    payment_id = body.paymentId.strip()
    ledger = OrderLedger(db)

    check = gateway.confirm(payment_id, body.amountHalalas, policy.expected_currency)
    payment = ledger.upsert_payment(check.payment)
    if not check.ok:
        raise PaymentInvalid(check.reason, extra={"paymentId": payment_id})

    order = ledger.open_order_for_payment(
        payment_id=payment_id,
        device_no=body.deviceNo.strip(),
        cart_no=body.cartNo.strip(),
        cart_index=cart_index,
        amount_halalas=body.amountHalalas,
        site_no=body.siteNo or policy.default_site_no,
        merchant_no=policy.merchant_no,
    )

    if order.status != UNLOCKING:
        # Replayed confirmation: the unlock already went out for this payment.
        return {"orderId": order.id, "order": order_out(order), "payment": payment_out(payment),
                "vendorResponse": None, "replayed": True}

    try:
        vendor_resp = vendor.unlock_cart(device_no=order.device_no, cart_no=order.cart_no, cart_index=order.cart_index)
    except (TransportError, VendorHTTPError):
        # Cart state unknown: the order stays in unlocking for manual reconciliation.
        logger.exception("unlock_call_failed", extra={"order_id": order.id, "payment_id": payment_id})
        raise

    code = vendor_resp.get("code") if isinstance(vendor_resp, dict) else None
    msg = vendor_resp.get("msg") if isinstance(vendor_resp, dict) else None
    order = ledger.record_unlock_outcome(order.id, code, msg, success_code=policy.success_code)
    applied = IN_USE if str(code) == policy.success_code else UNLOCK_FAILED
    if order.status != applied:
        # A concurrent confirmation of the same payment settled the order first; report its state.
        logger.info("unlock_outcome_superseded", extra={"order_id": order.id, "payment_id": payment_id,
                                                        "vendor_code": code})
        return {"orderId": order.id, "order": order_out(order), "payment": payment_out(payment),
                "vendorResponse": vendor_resp, "replayed": True}
    if order.status == UNLOCK_FAILED:
        raise VendorRejected(msg or "vendor refused to unlock", code=str(code or "VENDOR_REJECTED"),
                             extra={"orderId": order.id, "vendorResponse": vendor_resp})
    return {"orderId": order.id, "order": order_out(order), "payment": payment_out(payment),
            "vendorResponse": vendor_resp, "replayed": False}
