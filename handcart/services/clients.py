"""Factories for the outbound collaborators, used as FastAPI dependencies and by workers."""
from functools import lru_cache

from handcart.core.config import settings
from handcart.core.errors import NotConfigured
from handcart.services.moyasar_client import MoyasarConfig, PaymentGatewayClient
from handcart.services.signing import CallbackVerifier
from handcart.services.vendor_client import VendorClient, VendorConfig


@lru_cache(maxsize=1)
def get_vendor_client() -> VendorClient:
    if not (settings.VENDOR_BASE_URL and settings.MERCHANT_NO and settings.MERCHANT_PRIVATE_KEY_B64):
        raise NotConfigured("Vendor API is not configured (VENDOR_BASE_URL, MERCHANT_NO, MERCHANT_PRIVATE_KEY_B64)")
    return VendorClient(VendorConfig(
        base_url=settings.VENDOR_BASE_URL,
        merchant_no=settings.MERCHANT_NO,
        private_key_b64=settings.MERCHANT_PRIVATE_KEY_B64,
        timeout=settings.VENDOR_TIMEOUT,
    ))


@lru_cache(maxsize=1)
def get_gateway_client() -> PaymentGatewayClient:
    if not settings.MOYASAR_SECRET_KEY:
        raise NotConfigured("Payment gateway is not configured (MOYASAR_SECRET_KEY)")
    return PaymentGatewayClient(
        MoyasarConfig(
            base_url=settings.MOYASAR_BASE_URL,
            secret_key=settings.MOYASAR_SECRET_KEY,
            timeout=settings.GATEWAY_TIMEOUT,
        ),
        accepted_statuses=settings.accepted_payment_statuses,
    )


@lru_cache(maxsize=1)
def get_callback_verifier() -> CallbackVerifier:
    if not settings.VENDOR_PUBLIC_KEY_B64:
        raise NotConfigured("CALLBACK_VERIFY is on but VENDOR_PUBLIC_KEY_B64 is empty")
    return CallbackVerifier(settings.VENDOR_PUBLIC_KEY_B64)
