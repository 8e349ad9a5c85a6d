"""Unit tests for opaque page cursors."""

import base64
import json

import pytest

from botanical.middleware.error_handler import ValidationError
from botanical.providers.pagination import decode_cursor, encode_cursor


def _raw_cursor(document: object) -> str:
    raw = json.dumps(document).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class TestEncodeCursor:
    def test_cursor_is_url_safe(self):
        cursor = encode_cursor("perenual", 123456)
        assert "=" not in cursor
        assert "+" not in cursor
        assert "/" not in cursor

    def test_decode_returns_encoded_page(self):
        assert decode_cursor(encode_cursor("trefle", 7), "trefle") == 7

    def test_cursors_differ_per_provider(self):
        assert encode_cursor("trefle", 2) != encode_cursor("perenual", 2)


class TestDecodeCursor:
    def test_none_is_first_page(self):
        assert decode_cursor(None, "trefle") == 1

    def test_foreign_provider_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            decode_cursor(encode_cursor("perenual", 2), "trefle")
        assert "trefle" in exc_info.value.message

    @pytest.mark.parametrize(
        "cursor",
        [
            "not base64 at all!",
            base64.urlsafe_b64encode(b"not json").decode("ascii"),
            _raw_cursor([1, 2, 3]),
            _raw_cursor({"p": "trefle"}),
            _raw_cursor({"p": "trefle", "page": 0}),
            _raw_cursor({"p": "trefle", "page": "2"}),
            _raw_cursor({"p": "trefle", "page": True}),
        ],
    )
    def test_malformed_cursors_rejected(self, cursor):
        with pytest.raises(ValidationError) as exc_info:
            decode_cursor(cursor, "trefle")
        assert exc_info.value.details["cursor"] == cursor
