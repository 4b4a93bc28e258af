import pytest

from handcart.services.canonical import canonical_bytes, canonical_json, canonicalize


def test_key_order_does_not_change_output():
    a = {"value": {"deviceNo": "D1", "cartIndex": 2, "merchantNo": "M001"}, "nonce": "abc", "timestamp": 1}
    b = {"timestamp": 1, "nonce": "abc", "value": {"merchantNo": "M001", "cartIndex": 2, "deviceNo": "D1"}}
    assert canonical_bytes(a) == canonical_bytes(b)
    assert canonical_json(a) == '{"nonce":"abc","timestamp":1,"value":{"cartIndex":2,"deviceNo":"D1","merchantNo":"M001"}}'


def test_none_values_are_dropped_at_every_depth():
    value = {"a": None, "b": {"c": None, "d": 1}, "e": [{"f": None, "g": "x"}]}
    assert canonical_json(value) == '{"b":{"d":1},"e":[{"g":"x"}]}'


def test_dropped_key_matches_absent_key():
    assert canonical_bytes({"cartNo": None, "deviceNo": "D1"}) == canonical_bytes({"deviceNo": "D1"})


def test_sequence_order_is_kept_and_null_elements_survive():
    assert canonical_json({"cartNo": ["IC9", "IC1", None]}) == '{"cartNo":["IC9","IC1",null]}'


def test_compact_and_unescaped():
    assert canonical_json({"amountUnit": "元", "ok": True, "n": 0}) == '{"amountUnit":"元","n":0,"ok":true}'
    assert canonical_bytes({"amountUnit": "元"}) == '{"amountUnit":"元"}'.encode("utf-8")


def test_integral_floats_are_written_as_integers():
    assert canonical_json({"electricity": 85.0, "ratio": 0.5}) == '{"electricity":85,"ratio":0.5}'


def test_non_finite_numbers_are_rejected():
    with pytest.raises(ValueError):
        canonical_json({"electricity": float("nan")})


def test_canonicalize_does_not_mutate_input():
    original = {"b": 1, "a": None}
    assert canonicalize(original) == {"b": 1}
    assert original == {"b": 1, "a": None}
