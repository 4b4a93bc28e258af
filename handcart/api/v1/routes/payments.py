from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from handcart.core.config import settings
from handcart.db.session import get_db
from handcart.schemas.rentals import PaymentConfirmRequest
from handcart.services.clients import get_gateway_client, get_vendor_client
from handcart.services.moyasar_client import PaymentGatewayClient
from handcart.services.rental_service import UnlockPolicy, confirm_and_unlock
from handcart.services.vendor_client import VendorClient

router = APIRouter(tags=["payments"])


def _policy() -> UnlockPolicy:
    return UnlockPolicy(
        merchant_no=settings.MERCHANT_NO,
        expected_currency=settings.EXPECTED_CURRENCY,
        success_code=settings.VENDOR_SUCCESS_CODE,
        default_site_no=settings.DEFAULT_SITE_NO or None,
    )


@router.post("/payments/confirm")
def confirm_payment_and_unlock(
    body: PaymentConfirmRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway_client),
    vendor: VendorClient = Depends(get_vendor_client),
):
    """Confirm a Moyasar payment, open (or reuse) its rental order and unlock the cart.

    Re-submitting the same paymentId returns the same order; the vendor is only
    called again while the order is still in ``unlocking``.
    """
    return confirm_and_unlock(db, body, gateway, vendor, _policy())
