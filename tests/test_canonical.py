from agentrpc.capability.canonical import canonical_bytes, canonicalize
from agentrpc.capability.keys import PeerIdentity, verify


def test_key_order_does_not_matter():
    assert canonicalize({"b": 2, "a": 1}) == canonicalize({"a": 1, "b": 2})
    assert canonicalize({"b": 2, "a": 1}) == '{"a":1,"b":2}'


def test_nested_objects_sorted_and_arrays_keep_order():
    value = {"z": [3, 1, {"y": True, "x": None}], "a": {"d": "x", "c": False}}
    assert canonicalize(value) == '{"a":{"c":false,"d":"x"},"z":[3,1,{"x":null,"y":true}]}'


def test_scalars_and_numbers():
    assert canonicalize(None) == "null"
    assert canonicalize("hi \"there\"") == '"hi \\"there\\""'
    assert canonicalize(5.0) == "5"
    assert canonicalize(1.5) == "1.5"
    assert canonicalize(float("nan")) == "null"
    assert canonicalize((1, 2)) == "[1,2]"


def test_non_ascii_text_is_kept_verbatim():
    assert canonicalize({"text": "héllo"}) == '{"text":"héllo"}'
    assert canonical_bytes({"text": "héllo"}) == '{"text":"héllo"}'.encode("utf-8")


def test_sign_one_order_verify_the_other():
    identity = PeerIdentity.generate()
    sig = identity.sign(canonical_bytes({"b": 2, "a": 1}))
    assert verify(canonical_bytes({"a": 1, "b": 2}), sig, identity.public_key)
    assert not verify(canonical_bytes({"a": 1, "b": 3}), sig, identity.public_key)
