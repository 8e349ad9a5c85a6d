"""Opaque page cursors for provider listings.

A cursor is URL-safe base64 of a small JSON document naming the provider
and the page it points at. Callers store and hand back cursors without
interpreting them; a cursor minted for one provider is rejected by another.
"""

from __future__ import annotations

import base64
import json

from botanical.middleware.error_handler import ValidationError


def encode_cursor(provider: str, page: int) -> str:
    raw = json.dumps({"p": provider, "page": page}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str | None, provider: str) -> int:
    """Return the page number a cursor points at; page 1 for ``None``.

    Raises
    ------
    ValidationError
        If the cursor is malformed or belongs to another provider.
    """
    if cursor is None:
        return 1

    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except ValueError:
        raise ValidationError("Malformed page cursor", cursor=cursor) from None

    if not isinstance(data, dict):
        raise ValidationError("Malformed page cursor", cursor=cursor)

    page = data.get("page")
    if (
        data.get("p") != provider
        or not isinstance(page, int)
        or isinstance(page, bool)
        or page < 1
    ):
        raise ValidationError(f"Page cursor is not valid for provider '{provider}'", cursor=cursor)
    return page
