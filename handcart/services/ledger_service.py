"""OrderLedger: the only writer of Payment and RentalOrder rows.

Concurrency relies on one primitive only: the unique constraint on
``rental_orders.payment_id`` (and the payments primary key). Creation races
are resolved by catching the IntegrityError and re-reading the winner's row.
Status transitions are last-writer-wins, except unlock outcomes, which only
apply to an order still in ``unlocking``.
"""
import json
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from handcart.core.errors import GatewayError, InvalidTransition, OrderNotFound
from handcart.models.payment import Payment
from handcart.models.rental_order import (
    RentalOrder, PENDING_PAYMENT, UNLOCKING, IN_USE, UNLOCK_FAILED, RETURNED, CANCELED,
)
from handcart.services.audit_service import log_audit

logger = logging.getLogger(__name__)

TRANSITIONS = {
    PENDING_PAYMENT: {UNLOCKING, CANCELED},
    UNLOCKING: {IN_USE, UNLOCK_FAILED, RETURNED},
    IN_USE: {RETURNED},
    UNLOCK_FAILED: set(),
    RETURNED: set(),
    CANCELED: set(),
}

NO_ACTIVE_ORDER = "no_active_order"

def _now() -> datetime:
    return datetime.now(timezone.utc)

def as_int(value) -> int | None:
    """Coerce a cart index the way the vendor sends it (int, "3", 3.0). None when not an integer."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        f = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(f) or not f.is_integer():
        return None
    return int(f)

def as_finite_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None

def as_identifier(value) -> str | None:
    """Vendor ids (cartNo, deviceNo) may arrive as numbers or padded strings; compare them as trimmed text."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None

def normalize_gateway_payment(pay: dict) -> dict:
    source = pay.get("source") or {}
    try:
        amount = int(pay.get("amount") or 0)
    except (TypeError, ValueError):
        amount = 0
    return {
        "id": str(pay["id"]),
        "status": str(pay.get("status") or "").lower(),
        "mode": source.get("type") or source.get("company") or pay.get("method") or None,
        "scheme": source.get("scheme") or None,
        "amount_halalas": amount,
        "currency": str(pay.get("currency") or "SAR").upper(),
    }

@dataclass
class ReturnOutcome:
    updated: int
    order: RentalOrder | None = None
    note: str = ""


class OrderLedger:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def get_payment(self, payment_id: str) -> Payment | None:
        return self.db.get(Payment, payment_id)

    def upsert_payment(self, pay: dict) -> Payment:
        """Insert or refresh the local mirror of a gateway payment, keyed by its id."""
        if not pay.get("id"):
            raise GatewayError("gateway payment has no id")
        fields = normalize_gateway_payment(pay)
        row = self.get_payment(fields["id"])
        if row is None:
            row = Payment(**fields, metadata_json=json.dumps(pay, ensure_ascii=False, default=str))
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError:
                # Concurrent insert won; refresh that row instead.
                self.db.rollback()
                row = self.get_payment(fields["id"])
                if row is None:
                    raise
                self._refresh_payment(row, fields)
        else:
            self._refresh_payment(row, fields)
        logger.info("payment_upserted", extra={"payment_id": row.id})
        return row

    def _refresh_payment(self, row: Payment, fields: dict) -> None:
        for k in ("status", "mode", "scheme", "amount_halalas", "currency"):
            setattr(row, k, fields[k])
        row.updated_at = _now()
        log_audit(self.db, actor="moyasar", action="payment.refreshed", entity_type="payment", entity_id=row.id,
                  details={"status": row.status, "amount": row.amount_halalas, "currency": row.currency})
        self.db.commit()

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> RentalOrder:
        order = self.db.get(RentalOrder, order_id)
        if order is None:
            raise OrderNotFound(f"order {order_id} not found")
        return order

    def order_for_payment(self, payment_id: str) -> RentalOrder | None:
        return self.db.execute(
            select(RentalOrder).where(RentalOrder.payment_id == payment_id)
        ).scalar_one_or_none()

    def open_order_for_payment(self, *, payment_id: str, device_no: str, cart_no: str | None, cart_index: int | None,
                               amount_halalas: int, site_no: str | None, merchant_no: str) -> RentalOrder:
        """Return the order bound to ``payment_id``, creating it in ``unlocking`` if there is none."""
        existing = self.order_for_payment(payment_id)
        if existing is not None:
            logger.info("order_reused", extra={"order_id": existing.id, "payment_id": payment_id})
            return existing

        order = RentalOrder(
            id=str(uuid.uuid4()),
            status=UNLOCKING,
            merchant_no=merchant_no,
            site_no=site_no or None,
            device_no=device_no,
            cart_no=cart_no,
            cart_index=cart_index,
            amount_halalas=int(amount_halalas),
            payment_id=payment_id,
            unlock_requested_at=_now(),
        )
        self.db.add(order)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            winner = self.order_for_payment(payment_id)
            if winner is None:
                raise
            logger.info("order_create_race_lost", extra={"order_id": winner.id, "payment_id": payment_id})
            return winner
        log_audit(self.db, actor="system", action="order.unlocking", entity_type="rental_order", entity_id=order.id,
                  details={"paymentId": payment_id, "deviceNo": device_no, "cartNo": cart_no, "cartIndex": cart_index})
        self.db.commit()
        logger.info("order_opened", extra={"order_id": order.id, "payment_id": payment_id, "device_no": device_no,
                                           "cart_no": cart_no, "cart_index": cart_index})
        return order

    def create_pending_order(self, *, device_no: str, cart_no: str | None, cart_index: int | None,
                             amount_halalas: int, site_no: str | None, merchant_no: str, actor: str = "system") -> RentalOrder:
        """Minimal creation path: an order held in ``pending_payment`` with no payment attached yet."""
        order = RentalOrder(
            id=str(uuid.uuid4()),
            status=PENDING_PAYMENT,
            merchant_no=merchant_no,
            site_no=site_no or None,
            device_no=device_no,
            cart_no=cart_no,
            cart_index=cart_index,
            amount_halalas=int(amount_halalas),
        )
        self.db.add(order)
        log_audit(self.db, actor=actor, action="order.pending_payment", entity_type="rental_order", entity_id=order.id)
        self.db.commit()
        return order

    def update_status(self, order_id: str, status: str, *, actor: str = "system", details: dict | None = None,
                      **fields) -> RentalOrder:
        order = self.get_order(order_id)
        if status not in TRANSITIONS.get(order.status, set()):
            raise InvalidTransition(f"order {order.id} cannot go from {order.status} to {status}",
                                    extra={"orderId": order.id, "status": order.status})
        previous = order.status
        order.status = status
        for k, v in fields.items():
            setattr(order, k, v)
        log_audit(self.db, actor=actor, action=f"order.{status}", entity_type="rental_order", entity_id=order.id,
                  details={"from": previous, **(details or {})})
        self.db.commit()
        logger.info("order_status_changed", extra={"order_id": order.id, "reason": f"{previous}->{status}"})
        return order

    def record_unlock_outcome(self, order_id: str, vendor_code: str | None, vendor_msg: str | None = None,
                              *, success_code: str = "00000", actor: str = "vendor") -> RentalOrder:
        """in_use on the vendor success code, unlock_failed otherwise. A vendor failure is a business state, not an error.

        Only an order still in ``unlocking`` moves; a late outcome for any other state is audited and ignored.
        """
        code = "" if vendor_code is None else str(vendor_code)
        order = self.get_order(order_id)
        # Another request for the same payment may have recorded its outcome meanwhile.
        self.db.refresh(order)
        if order.status != UNLOCKING:
            logger.warning("unlock_outcome_late", extra={"order_id": order.id, "vendor_code": code,
                                                        "reason": f"order already {order.status}"})
            log_audit(self.db, actor=actor, action="order.unlock_outcome_ignored", entity_type="rental_order",
                      entity_id=order.id, details={"status": order.status, "vendorCode": code, "vendorMsg": vendor_msg})
            self.db.commit()
            return order
        if code == success_code:
            return self.update_status(order_id, IN_USE, actor=actor, details={"vendorCode": code},
                                      unlock_confirmed_at=_now())
        logger.warning("unlock_failed", extra={"order_id": order_id, "vendor_code": code, "reason": vendor_msg})
        return self.update_status(order_id, UNLOCK_FAILED, actor=actor,
                                  details={"vendorCode": code, "vendorMsg": vendor_msg},
                                  notes=_append_note(order.notes, f"unlock failed: code={code or '<none>'} msg={vendor_msg or ''}"))

    def find_active_order_for_return(self, *, merchant_no: str, device_no: str | None, cart_no: str | None,
                                     cart_index) -> RentalOrder | None:
        """Most recent in_use order by cart number, falling back to device + cart index."""
        cart_no = as_identifier(cart_no)
        device_no = as_identifier(device_no)
        order = None
        if cart_no:
            order = self.db.execute(
                select(RentalOrder)
                .where(RentalOrder.merchant_no == merchant_no,
                       RentalOrder.cart_no == cart_no,
                       RentalOrder.status == IN_USE)
                .order_by(RentalOrder.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()

        index = as_int(cart_index)
        if order is None and device_no and index is not None:
            order = self.db.execute(
                select(RentalOrder)
                .where(RentalOrder.merchant_no == merchant_no,
                       RentalOrder.device_no == device_no,
                       RentalOrder.cart_index == index,
                       RentalOrder.status == IN_USE)
                .order_by(RentalOrder.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
        return order

    def close_order_on_return(self, *, merchant_no: str, device_no: str | None, cart_no: str | None,
                              cart_index=None, electricity=None) -> ReturnOutcome:
        cart_no = as_identifier(cart_no)
        device_no = as_identifier(device_no)
        order = self.find_active_order_for_return(merchant_no=merchant_no, device_no=device_no,
                                                  cart_no=cart_no, cart_index=cart_index)
        if order is None:
            # Stale, duplicate or unsolicited callback: acknowledge, leave a trace, touch nothing.
            logger.warning("return_unmatched", extra={"merchant_no": merchant_no, "device_no": device_no,
                                                      "cart_no": cart_no, "cart_index": cart_index})
            log_audit(self.db, actor="vendor", action="return.unmatched", entity_type="handcart",
                      entity_id=str(cart_no or f"{device_no}#{cart_index}"),
                      details={"merchantNo": merchant_no, "deviceNo": device_no, "cartNo": cart_no,
                               "cartIndex": cart_index, "electricity": electricity})
            self.db.commit()
            return ReturnOutcome(updated=0, note=NO_ACTIVE_ORDER)

        reading = as_finite_number(electricity)
        order = self.update_status(
            order.id, RETURNED, actor="vendor",
            details={"cartNo": cart_no, "cartIndex": cart_index, "electricity": electricity},
            returned_at=_now(),
            electricity=reading if reading is not None else order.electricity,
            return_device_no=device_no or order.return_device_no,
        )
        logger.info("order_returned", extra={"order_id": order.id, "device_no": order.device_no,
                                             "cart_no": order.cart_no, "cart_index": order.cart_index})
        return ReturnOutcome(updated=1, order=order)

    def mark_returned_manually(self, order_id: str, note: str = "", *, actor: str = "operator") -> RentalOrder:
        order = self.get_order(order_id)
        if order.status == RETURNED:
            return order
        return self.update_status(order_id, RETURNED, actor=actor, details={"manual": True, "note": note},
                                  returned_at=_now(),
                                  notes=_append_note(order.notes, f"returned manually by {actor}: {note}".rstrip(": ")))

    def cancel(self, order_id: str, *, actor: str = "operator") -> RentalOrder:
        order = self.get_order(order_id)
        if order.status != PENDING_PAYMENT:
            raise InvalidTransition(f"only pending_payment orders can be canceled (order is {order.status})",
                                    extra={"orderId": order.id, "status": order.status})
        return self.update_status(order_id, CANCELED, actor=actor)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_open_orders(self, limit: int = 100) -> list[RentalOrder]:
        return list(self.db.execute(
            select(RentalOrder)
            .where(RentalOrder.status == IN_USE)
            .order_by(RentalOrder.created_at.desc())
            .limit(min(limit, 200))
        ).scalars())

    def list_recent_orders(self, limit: int = 50) -> list[RentalOrder]:
        return list(self.db.execute(
            select(RentalOrder).order_by(RentalOrder.created_at.desc()).limit(min(limit, 200))
        ).scalars())

    def find_stuck_unlocking(self, older_than_minutes: int) -> list[RentalOrder]:
        cutoff = _now() - timedelta(minutes=older_than_minutes)
        return list(self.db.execute(
            select(RentalOrder)
            .where(RentalOrder.status == UNLOCKING, RentalOrder.unlock_requested_at < cutoff)
            .order_by(RentalOrder.unlock_requested_at.asc())
        ).scalars())


def _append_note(notes: str | None, line: str) -> str:
    return f"{notes}\n{line}" if notes else line
