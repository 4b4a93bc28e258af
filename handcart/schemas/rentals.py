from pydantic import BaseModel, Field
from typing import List, Optional, Union


class PaymentConfirmRequest(BaseModel):
    # All optional so missing fields surface as MISSING_PARAM instead of a generic 422.
    paymentId: Optional[str] = None
    deviceNo: Optional[str] = None
    cartNo: Optional[str] = None
    cartIndex: Optional[Union[int, str]] = None
    siteNo: Optional[str] = None
    amountHalalas: Optional[int] = None


class VendorCallback(BaseModel):
    merchantNo: Optional[str] = None
    sign: Optional[str] = None
    originalData: Optional[dict] = None


class CartUnlockRequest(BaseModel):
    deviceNo: Optional[str] = None
    cartNo: Optional[str] = None
    cartIndex: Optional[Union[int, str]] = None


class CartListRequest(BaseModel):
    deviceNo: str


class CartBindRequest(BaseModel):
    # IC card numbers; a single string is accepted too
    cartNo: Union[List[str], str, None] = None

    def cart_nos(self) -> list[str]:
        if isinstance(self.cartNo, list):
            return [c for c in self.cartNo if c]
        return [self.cartNo] if self.cartNo else []


class PendingOrderCreate(BaseModel):
    deviceNo: str
    cartNo: Optional[str] = None
    cartIndex: Optional[int] = None
    siteNo: Optional[str] = None
    amountHalalas: int = Field(default=0, ge=0)


class ManualReturnRequest(BaseModel):
    note: str = ""


class UnlockOutcomeRequest(BaseModel):
    code: str
    msg: Optional[str] = None


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def payment_out(p) -> Optional[dict]:
    if p is None:
        return None
    return {
        "id": p.id,
        "status": p.status,
        "mode": p.mode,
        "scheme": p.scheme,
        "amountHalalas": p.amount_halalas,
        "currency": p.currency,
    }


def order_out(o) -> dict:
    return {
        "orderId": o.id,
        "status": o.status,
        "merchantNo": o.merchant_no,
        "siteNo": o.site_no,
        "deviceNo": o.device_no,
        "cartNo": o.cart_no,
        "cartIndex": o.cart_index,
        "returnDeviceNo": o.return_device_no,
        "amountHalalas": o.amount_halalas,
        "electricity": o.electricity,
        "paymentId": o.payment_id,
        "unlockRequestedAt": _iso(o.unlock_requested_at),
        "unlockConfirmedAt": _iso(o.unlock_confirmed_at),
        "returnedAt": _iso(o.returned_at),
        "notes": o.notes or "",
        "createdAt": _iso(o.created_at),
    }
