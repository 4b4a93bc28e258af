import logging

from sqlalchemy.orm import Session

from handcart.core.config import settings
from handcart.db.session import SessionLocal
from handcart.services.ledger_service import OrderLedger

logger = logging.getLogger(__name__)

def process_cart_return(merchant_no: str, original_data: dict) -> dict:
    """Reconcile a vendor "cart returned" callback. Safe to run more than once for the same callback."""
    data = original_data or {}
    db: Session = SessionLocal()
    try:
        outcome = OrderLedger(db).close_order_on_return(
            merchant_no=merchant_no,
            device_no=data.get("deviceNo"),
            cart_no=data.get("cartNo"),
            cart_index=data.get("cartIndex"),
            electricity=data.get("electricity"),
        )
        return {
            "updated": outcome.updated,
            "orderId": outcome.order.id if outcome.order else None,
            "note": outcome.note,
        }
    except Exception:
        # The vendor already got its acknowledgement; this log line is what manual reconciliation works from.
        db.rollback()
        logger.exception("return_reconciliation_failed", extra={
            "merchant_no": merchant_no,
            "device_no": data.get("deviceNo"),
            "cart_no": data.get("cartNo"),
            "cart_index": data.get("cartIndex"),
        })
        raise
    finally:
        db.close()

def report_stuck_unlocking(older_than_minutes: int | None = None) -> dict:
    """Orders left in unlocking (vendor outcome never recorded) need an operator."""
    minutes = older_than_minutes or settings.STUCK_UNLOCK_MINUTES
    db: Session = SessionLocal()
    try:
        stuck = OrderLedger(db).find_stuck_unlocking(minutes)
        for o in stuck:
            logger.warning("order_stuck_unlocking", extra={
                "order_id": o.id, "payment_id": o.payment_id, "device_no": o.device_no,
                "cart_no": o.cart_no, "cart_index": o.cart_index,
            })
        return {"stuck": len(stuck), "orderIds": [o.id for o in stuck]}
    finally:
        db.close()
