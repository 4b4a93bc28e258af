import json

import pytest
import requests

from handcart.core.errors import TransportError, VendorHTTPError
from handcart.services.vendor_client import VendorClient, VendorConfig, make_nonce


def _response(mocker, status_code=200, body=None):
    r = mocker.Mock()
    r.status_code = status_code
    r.text = json.dumps(body) if body is not None else ""
    r.json.return_value = body
    return r


@pytest.fixture
def vendor(merchant_keys):
    return VendorClient(VendorConfig(
        base_url="https://iot.vendor.test/",
        merchant_no="M001",
        private_key_b64=merchant_keys.private_b64,
    ))


def test_nonce_is_short_base36():
    nonce = make_nonce()
    assert len(nonce) == 10
    assert nonce.isalnum() and nonce == nonce.lower()


def test_sign_and_send_posts_signed_canonical_envelope(vendor, merchant_keys, mocker):
    post = mocker.patch("handcart.services.vendor_client.requests.post",
                        return_value=_response(mocker, body={"code": "00000", "msg": "success", "data": None}))

    data = vendor.sign_and_send("/trx/interface/handCart/getCartList", {"merchantNo": "M001", "deviceNo": "D1", "siteNo": None})

    assert data["code"] == "00000"
    args, kwargs = post.call_args
    assert args[0] == "https://iot.vendor.test/trx/interface/handCart/getCartList"
    assert kwargs["timeout"] == 20.0
    assert kwargs["headers"]["Content-Type"] == "application/json"

    body = kwargs["data"]
    sent = json.loads(body)
    assert list(sent) == ["nonce", "timestamp", "value"]
    assert sent["value"] == {"deviceNo": "D1", "merchantNo": "M001"}
    assert isinstance(sent["timestamp"], int) and sent["timestamp"] > 1_600_000_000_000
    assert b" " not in body
    assert merchant_keys.verify(body, kwargs["headers"]["Authorization"])


def test_unlock_cart_value(vendor, mocker):
    post = mocker.patch("handcart.services.vendor_client.requests.post",
                        return_value=_response(mocker, body={"code": "00000", "msg": "success"}))

    vendor.unlock_cart(device_no="D1", cart_no=" C42 ", cart_index="3")

    sent = json.loads(post.call_args.kwargs["data"])
    assert post.call_args.args[0].endswith("/trx/interface/handCart/unlock")
    assert sent["value"] == {"cartIndex": 3, "cartNo": "C42", "deviceNo": "D1", "merchantNo": "M001"}


def test_bind_sends_list_of_cards(vendor, mocker):
    post = mocker.patch("handcart.services.vendor_client.requests.post",
                        return_value=_response(mocker, body={"code": "00000"}))
    vendor.bind_carts(cart_nos=["IC1", "IC2"])
    assert json.loads(post.call_args.kwargs["data"])["value"]["cartNo"] == ["IC1", "IC2"]


def test_timeout_becomes_transport_error(vendor, mocker):
    mocker.patch("handcart.services.vendor_client.requests.post", side_effect=requests.Timeout("read timed out"))
    with pytest.raises(TransportError):
        vendor.unlock_cart(device_no="D1", cart_no="C42", cart_index=3)


def test_non_2xx_propagates_vendor_body_verbatim(vendor, mocker):
    vendor_body = {"code": "40003", "msg": "sign error", "data": None}
    mocker.patch("handcart.services.vendor_client.requests.post",
                 return_value=_response(mocker, status_code=400, body=vendor_body))

    with pytest.raises(VendorHTTPError) as exc:
        vendor.get_cart_list(device_no="D1")

    assert exc.value.status_code == 400
    assert exc.value.body == vendor_body
    assert exc.value.envelope() == vendor_body


def test_no_retry_inside_the_client(vendor, mocker):
    post = mocker.patch("handcart.services.vendor_client.requests.post", side_effect=requests.ConnectionError("refused"))
    with pytest.raises(TransportError):
        vendor.get_cart_list(device_no="D1")
    assert post.call_count == 1
