import math

import pytest

from courier.crypto_utils import canonical_string
from courier.messaging import SignedRequest


def test_key_order_does_not_matter():
    a = {"b": 1, "a": {"d": [3, 2], "c": None}}
    b = {"a": {"c": None, "d": [3, 2]}, "b": 1}
    assert canonical_string(a) == canonical_string(b) == '{"a":{"c":null,"d":[3,2]},"b":1}'


def test_list_order_is_preserved():
    assert canonical_string([2, 1]) != canonical_string([1, 2])


def test_no_incidental_whitespace():
    assert canonical_string({"k": [1, {"x": "y"}]}) == '{"k":[1,{"x":"y"}]}'


def test_non_ascii_is_not_escaped():
    assert canonical_string({"text": "héllo ✓"}) == '{"text":"héllo ✓"}'


def test_plain_string_is_json_quoted():
    assert canonical_string("hello") == '"hello"'


def test_nan_is_rejected():
    with pytest.raises(ValueError):
        canonical_string({"x": math.nan})


def test_unserializable_value_is_rejected():
    with pytest.raises(TypeError):
        canonical_string({"x": object()})


def test_models_serialize_by_wire_alias():
    req = SignedRequest(payload={"alias": "bob"}, public_sign_key="pk", nonce="n", auth_token="t")
    assert canonical_string(req) == (
        '{"authToken":"t","nonce":"n","payload":{"alias":"bob"},"publicSignKey":"pk"}'
    )
