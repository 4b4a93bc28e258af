from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from handcart.api.deps import require_roles
from handcart.core.config import settings
from handcart.db.session import get_db
from handcart.schemas.rentals import ManualReturnRequest, PendingOrderCreate, UnlockOutcomeRequest, order_out
from handcart.services.ledger_service import OrderLedger

router = APIRouter(tags=["orders"])


@router.get("/orders/open")
def open_orders(limit: int = Query(100, ge=1, le=200), db: Session = Depends(get_db)):
    return [order_out(o) for o in OrderLedger(db).list_open_orders(limit)]


@router.get("/orders/recent")
def recent_orders(limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    return [order_out(o) for o in OrderLedger(db).list_recent_orders(limit)]


@router.get("/orders/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db)):
    return order_out(OrderLedger(db).get_order(order_id))


@router.post("/ops/orders")
def create_pending_order(body: PendingOrderCreate, db: Session = Depends(get_db),
                         operator: dict = Depends(require_roles("ops", "admin"))):
    order = OrderLedger(db).create_pending_order(
        device_no=body.deviceNo,
        cart_no=body.cartNo,
        cart_index=body.cartIndex,
        amount_halalas=body.amountHalalas,
        site_no=body.siteNo or settings.DEFAULT_SITE_NO or None,
        merchant_no=settings.MERCHANT_NO,
        actor=operator["sub"],
    )
    return order_out(order)


@router.post("/ops/orders/{order_id}/return")
def mark_returned(order_id: str, body: ManualReturnRequest, db: Session = Depends(get_db),
                  operator: dict = Depends(require_roles("ops", "admin"))):
    return order_out(OrderLedger(db).mark_returned_manually(order_id, body.note, actor=operator["sub"]))


@router.post("/ops/orders/{order_id}/cancel")
def cancel_order(order_id: str, db: Session = Depends(get_db),
                 operator: dict = Depends(require_roles("ops", "admin"))):
    return order_out(OrderLedger(db).cancel(order_id, actor=operator["sub"]))


@router.post("/ops/orders/{order_id}/unlock-outcome")
def record_unlock_outcome(order_id: str, body: UnlockOutcomeRequest, db: Session = Depends(get_db),
                          operator: dict = Depends(require_roles("admin"))):
    """Manual reconciliation for orders stuck in unlocking (vendor result seen out of band)."""
    order = OrderLedger(db).record_unlock_outcome(order_id, body.code, body.msg,
                                                 success_code=settings.VENDOR_SUCCESS_CODE, actor=operator["sub"])
    return order_out(order)
