import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from kombu.exceptions import OperationalError as BrokerError
from sqlalchemy.orm import Session

from handcart.api.deps import require_roles
from handcart.core.config import settings
from handcart.core.errors import SignatureInvalid
from handcart.db.session import get_db
from handcart.schemas.rentals import CartBindRequest, CartListRequest, CartUnlockRequest, VendorCallback
from handcart.services.audit_service import log_audit
from handcart.services.clients import get_callback_verifier, get_vendor_client
from handcart.services.ledger_service import as_int
from handcart.services.vendor_client import VendorClient
from handcart.tasks.jobs import process_cart_return

logger = logging.getLogger(__name__)

router = APIRouter(tags=["handcart"])

CALLBACK_ACK = {"code": "00000", "msg": "success"}


@router.post("/handcart/callback")
def handcart_return_callback(body: VendorCallback):
    """Vendor "cart returned" callback.

    The vendor times out fast and retries anything that is not the exact ack, so
    the ledger write is handed to the worker queue and the ack goes out right away.
    Pollers must read order state; this response says nothing about it.
    """
    if not body.merchantNo or not body.sign or not body.originalData:
        return JSONResponse(status_code=400, content={"code": "BAD_REQUEST", "msg": "bad request"})

    if settings.CALLBACK_VERIFY:
        verifier = get_callback_verifier()
        if not verifier.verify(body.merchantNo, body.sign, body.originalData):
            raise SignatureInvalid("invalid sign")

    try:
        process_cart_return.delay(body.merchantNo, body.originalData)
    except (BrokerError, OSError):
        # Not acknowledged, so the vendor will deliver it again.
        logger.exception("return_enqueue_failed", extra={"merchant_no": body.merchantNo})
        return JSONResponse(status_code=500, content={"code": "ENQUEUE_FAILED", "msg": "error"})

    logger.info("return_callback_accepted", extra={
        "merchant_no": body.merchantNo,
        "cart_no": body.originalData.get("cartNo"),
        "device_no": body.originalData.get("deviceNo"),
    })
    return CALLBACK_ACK


@router.post("/handcart/unlock")
def operator_unlock(body: CartUnlockRequest, db: Session = Depends(get_db),
                    vendor: VendorClient = Depends(get_vendor_client),
                    operator: dict = Depends(require_roles("ops", "admin"))):
    """Direct unlock for operators (maintenance). Audited; does not touch the ledger."""
    cart_index = as_int(body.cartIndex)
    if not body.deviceNo:
        return {"code": "20001", "msg": "deviceNo is required", "data": None}
    if not body.cartNo:
        return {"code": "20001", "msg": "value.cartNo is required", "data": None}
    if cart_index is None:
        return {"code": "20001", "msg": "value.cartIndex is required", "data": None}

    data = vendor.unlock_cart(device_no=body.deviceNo, cart_no=body.cartNo, cart_index=cart_index)
    log_audit(db, actor=operator["sub"], action="handcart.operator_unlock", entity_type="handcart", entity_id=body.cartNo,
              details={"deviceNo": body.deviceNo, "cartIndex": cart_index, "vendor": data})
    db.commit()
    return data


@router.post("/handcart/list")
def cart_list(body: CartListRequest, vendor: VendorClient = Depends(get_vendor_client),
              operator: dict = Depends(require_roles("ops", "admin"))):
    return vendor.get_cart_list(device_no=body.deviceNo)


@router.post("/handcart/bind")
def cart_bind(body: CartBindRequest, vendor: VendorClient = Depends(get_vendor_client),
              operator: dict = Depends(require_roles("ops", "admin"))):
    return vendor.bind_carts(cart_nos=body.cart_nos())


@router.post("/handcart/unbind")
def cart_unbind(body: CartBindRequest, vendor: VendorClient = Depends(get_vendor_client),
                operator: dict = Depends(require_roles("ops", "admin"))):
    return vendor.unbind_carts(cart_nos=body.cart_nos())
