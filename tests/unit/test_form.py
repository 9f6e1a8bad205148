"""Tests for the form-urlencoded codec and digest helpers."""

import hashlib
import hmac

import pytest

from stash_gateway.codec.form import (
    build_form_encoded,
    decode_form_component,
    encode_form_value,
    pairs_to_dict,
    parse_form_body,
    parse_form_encoded,
    to_form_string,
)
from stash_gateway.codec.hashing import hmac_sha512_hex, md5_hex, sha512_hex


class TestEncodeFormValue:
    def test_url_with_space(self):
        assert encode_form_value("http://example.com/a b") == "http%3A%2F%2Fexample.com%2Fa+b"

    def test_unreserved_characters_untouched(self):
        assert encode_form_value("AZaz09-_.~!*'()") == "AZaz09-_.~!*'()"

    def test_uppercase_hex(self):
        assert encode_form_value("a&b=c/d") == "a%26b%3Dc%2Fd"

    def test_utf8(self):
        assert encode_form_value("café") == "caf%C3%A9"

    def test_literal_plus_is_escaped(self):
        assert encode_form_value("1+1") == "1%2B1"


class TestDecode:
    def test_plus_is_space(self):
        assert decode_form_component("a+b") == "a b"

    def test_escaped_plus(self):
        assert decode_form_component("1%2B1") == "1+1"


class TestParseFormEncoded:
    def test_preserves_order_and_duplicates(self):
        pairs = parse_form_encoded("b=2&a=1&b=3")
        assert pairs == [("b", "2"), ("a", "1"), ("b", "3")]

    def test_skips_empty_segments(self):
        assert parse_form_encoded("a=1&&b=2&") == [("a", "1"), ("b", "2")]

    def test_missing_value(self):
        assert parse_form_encoded("flag&x=") == [("flag", ""), ("x", "")]

    def test_value_containing_equals(self):
        assert parse_form_encoded("k=a=b") == [("k", "a=b")]

    def test_empty(self):
        assert parse_form_encoded("") == []

    def test_body_bytes(self):
        assert parse_form_body(b"item_name=Test+Item") == [("item_name", "Test Item")]

    def test_body_none(self):
        assert parse_form_body(None) == []

    def test_pairs_to_dict_last_wins(self):
        assert pairs_to_dict([("a", "1"), ("a", "2")]) == {"a": "2"}


class TestFormRoundTrip:
    @pytest.mark.parametrize(
        "pairs",
        [
            [("item_name", "Test Item"), ("empty", "")],
            [("q", "a&b=c"), ("url", "https://shop.test/ok?x=1&y=2")],
            [("pct", "100% off"), ("plus", "1+1=2")],
            [("path", "a/b/c"), ("mark", "why?")],
            [("a b", "c d"), ("k=v", "&")],
            [("name", "café"), ("dup", "1"), ("dup", "2")],
        ],
    )
    def test_build_then_parse_preserves_pairs(self, pairs):
        assert parse_form_encoded(build_form_encoded(pairs)) == pairs


class TestBuildFormEncoded:
    def test_mapping(self):
        assert build_form_encoded({"name": "Jo Soap", "ok": True}) == "name=Jo+Soap&ok=true"

    def test_skips_none(self):
        assert build_form_encoded([("a", "1"), ("b", None), ("c", 3)]) == "a=1&c=3"

    def test_to_form_string(self):
        assert to_form_string(False) == "false"
        assert to_form_string(10) == "10"


class TestHashing:
    def test_sha512(self):
        assert sha512_hex("abc") == hashlib.sha512(b"abc").hexdigest()

    def test_md5(self):
        assert md5_hex(b"abc") == "900150983cd24fb0d6963f7d28e17f72"

    def test_hmac_sha512(self):
        expected = hmac.new(b"key", b"body", hashlib.sha512).hexdigest()
        assert hmac_sha512_hex("key", b"body") == expected
