import base64

import pytest

from handcart.core.errors import NotConfigured
from handcart.services.canonical import canonical_bytes
from handcart.services.signing import CALLBACK_FRAMINGS, CallbackVerifier, RequestSigner, pem_from_b64


ORIGINAL_DATA = {"cartNo": "C42", "cartIndex": 3, "electricity": 87, "deviceNo": "D100"}


def test_pem_from_b64_wraps_at_64_columns():
    b64 = "A" * 130
    pem = pem_from_b64(b64, "PUBLIC KEY")
    lines = pem.splitlines()
    assert lines[0] == "-----BEGIN PUBLIC KEY-----"
    assert lines[-1] == "-----END PUBLIC KEY-----"
    assert [len(line) for line in lines[1:-1]] == [64, 64, 2]


def test_pem_from_b64_passes_pem_through():
    pem = "-----BEGIN PUBLIC KEY-----\nAAAA\n-----END PUBLIC KEY-----"
    assert pem_from_b64(pem, "PUBLIC KEY") == pem


def test_empty_key_is_a_configuration_error():
    with pytest.raises(NotConfigured):
        RequestSigner("")


def test_signer_output_verifies_with_the_public_key(merchant_keys):
    signer = RequestSigner(merchant_keys.private_b64)
    payload = {"nonce": "n1", "timestamp": 1700000000000, "value": {"merchantNo": "M001", "deviceNo": "D1"}}
    signature = signer.sign_value(payload)
    assert merchant_keys.verify(canonical_bytes(payload), signature)


def test_round_trip_and_single_byte_tamper(merchant_keys):
    signer = RequestSigner(merchant_keys.private_b64)
    verifier = CallbackVerifier(merchant_keys.public_b64)
    message = canonical_bytes({"value": {"cartNo": "C42"}, "nonce": "x", "timestamp": 5})
    signature = signer.sign(message)

    assert verifier.verify_bytes(message, signature)
    tampered = bytearray(message)
    tampered[10] ^= 0x01
    assert not verifier.verify_bytes(bytes(tampered), signature)


def test_framings_are_ordered_bare_payload_first():
    assert [f.name for f in CALLBACK_FRAMINGS] == ["original_data", "merchant_envelope"]
    assert CALLBACK_FRAMINGS[0].build("M001", ORIGINAL_DATA) == ORIGINAL_DATA
    assert CALLBACK_FRAMINGS[1].build("M001", ORIGINAL_DATA) == {"merchantNo": "M001", "originalData": ORIGINAL_DATA}


def test_verifier_accepts_signature_over_bare_payload(vendor_keys):
    verifier = CallbackVerifier(vendor_keys.public_b64)
    sign = vendor_keys.sign(canonical_bytes(ORIGINAL_DATA))
    assert verifier.matching_framing("M001", sign, ORIGINAL_DATA) == "original_data"
    assert verifier.verify("M001", sign, ORIGINAL_DATA)


def test_verifier_accepts_signature_over_merchant_envelope(vendor_keys):
    verifier = CallbackVerifier(vendor_keys.public_b64)
    sign = vendor_keys.sign(canonical_bytes({"merchantNo": "M001", "originalData": ORIGINAL_DATA}))
    assert verifier.matching_framing("M001", sign, ORIGINAL_DATA) == "merchant_envelope"
    assert verifier.verify("M001", sign, ORIGINAL_DATA)


def test_verifier_uses_the_null_dropping_canonical_form(vendor_keys):
    verifier = CallbackVerifier(vendor_keys.public_b64)
    sign = vendor_keys.sign(canonical_bytes({"cartIndex": 3, "deviceNo": "D100"}))
    assert verifier.verify("M001", sign, {"cartNo": None, "cartIndex": 3, "deviceNo": "D100"})


def test_verifier_rejects_altered_payload(vendor_keys):
    verifier = CallbackVerifier(vendor_keys.public_b64)
    sign = vendor_keys.sign(canonical_bytes(ORIGINAL_DATA))
    assert not verifier.verify("M001", sign, {**ORIGINAL_DATA, "cartNo": "C43"})


def test_verifier_rejects_other_key_and_garbage(vendor_keys, merchant_keys):
    verifier = CallbackVerifier(vendor_keys.public_b64)
    foreign = merchant_keys.sign(canonical_bytes(ORIGINAL_DATA))
    assert not verifier.verify("M001", foreign, ORIGINAL_DATA)
    assert not verifier.verify("M001", "not base64 at all!", ORIGINAL_DATA)
    assert not verifier.verify("M001", "", ORIGINAL_DATA)
    assert not verifier.verify("M001", base64.b64encode(b"short").decode(), ORIGINAL_DATA)
