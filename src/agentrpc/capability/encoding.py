"""Transport encoding for invites and welcomes.

Capabilities are handed between peers out of band, so the accepted
forms are deliberately loose:

    '{"payload": {...}, "sig": "..."}'     plain JSON
    'b64:eyJwYXlsb2FkIjp7Li4ufX0='          base64 JSON (prefix optional)
    '@./invite.json'                        file holding either of the above
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any


def parse_capability_arg(raw: Any) -> dict | None:
    """Decode a capability argument; ``None`` when it cannot be read."""
    if not raw:
        return None
    if isinstance(raw, dict):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    if text.startswith("@"):
        try:
            with open(text[1:], "r", encoding="utf-8") as f:
                text = f.read().strip()
        except OSError:
            return None
    if text.startswith("b64:"):
        text = text[4:]
    if text.startswith("{"):
        try:
            return _as_object(json.loads(text))
        except ValueError:
            pass
    try:
        decoded = base64.b64decode(text, validate=True).decode("utf-8")
        return _as_object(json.loads(decoded))
    except (binascii.Error, ValueError):
        return None


def _as_object(value: Any) -> dict | None:
    return value if isinstance(value, dict) else None


def encode_capability(obj: Any) -> tuple[str, str]:
    """Return ``(json_text, base64_text)`` for an invite or welcome."""
    if hasattr(obj, "to_wire"):
        obj = obj.to_wire()
    text = json.dumps(obj, separators=(",", ":"))
    return text, base64.b64encode(text.encode("utf-8")).decode("ascii")
