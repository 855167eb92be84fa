"""Example tools a provider can expose.

Every handler takes the request's params list and returns a JSON value;
raising produces a ``-32000`` error envelope.

    dispatcher = ToolDispatcher()
    register_all_example_tools(dispatcher, price_in_tnk="0.1")
    dispatcher.list_tools()   # calc.add, calc.subtract, ..., echo, timestamp, hash
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import math
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from agentrpc.core.logging import get_logger
from agentrpc.core.types import ToolMetadata

logger = get_logger(__name__)


def _first(params: Any) -> Any:
    if isinstance(params, (list, tuple)) and params:
        return params[0]
    return None


def _number(value: Any) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise ValueError("Parameters must be numbers") from None
    if math.isnan(n):
        raise ValueError("Parameters must be numbers")
    return int(n) if n.is_integer() and not isinstance(value, float) else n


def _pair(params: Any, op: str) -> tuple[float, float]:
    if not isinstance(params, (list, tuple)) or len(params) != 2:
        raise ValueError(f"{op} requires exactly 2 numeric parameters")
    return _number(params[0]), _number(params[1])


def _result(value: float) -> float:
    return int(value) if isinstance(value, float) and value.is_integer() else value


def _required_text(params: Any, op: str) -> str:
    value = _first(params)
    if value is None or value == "":
        raise ValueError(f"{op} requires text parameter")
    return str(value)


# ── Calculator ───────────────────────────────────────────────────────────────

async def add(params):
    a, b = _pair(params, "add")
    return _result(a + b)


async def subtract(params):
    a, b = _pair(params, "subtract")
    return _result(a - b)


async def multiply(params):
    a, b = _pair(params, "multiply")
    return _result(a * b)


async def divide(params):
    a, b = _pair(params, "divide")
    if b == 0:
        raise ValueError("Division by zero")
    return _result(a / b)


calculator = {"add": add, "subtract": subtract, "multiply": multiply, "divide": divide}


# ── Simple tools ─────────────────────────────────────────────────────────────

async def echo(params):
    """Echo back the input parameters."""
    return params


async def timestamp(params):
    """Current time as ``ms`` (default), ``s``/``sec`` or ``iso``."""
    fmt = _first(params) or "ms"
    now_ms = int(time.time() * 1000)
    if fmt in ("s", "sec"):
        return now_ms // 1000
    if fmt == "iso":
        return datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return now_ms


async def sha256(params):
    """SHA-256 hex digest of the first parameter."""
    text = _required_text(params, "hash")
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ── Random ───────────────────────────────────────────────────────────────────

async def random_number(params):
    params = params if isinstance(params, (list, tuple)) else []
    try:
        low = int(float(params[0])) if len(params) > 0 and params[0] else 0
        high = int(float(params[1])) if len(params) > 1 and params[1] else 100
    except (TypeError, ValueError):
        raise ValueError("random.number bounds must be numbers") from None
    if high < low:
        raise ValueError("random.number upper bound is below lower bound")
    return low + secrets.randbelow(high - low + 1)


async def random_string(params):
    raw = _first(params)
    try:
        length = int(float(raw)) if raw else 16
    except (TypeError, ValueError):
        raise ValueError("random.string length must be a number") from None
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(max(length, 0)))


async def random_uuid(params):
    return str(uuid.uuid4())


random_tools = {"number": random_number, "string": random_string, "uuid": random_uuid}


# ── Text ─────────────────────────────────────────────────────────────────────

async def uppercase(params):
    return _required_text(params, "uppercase").upper()


async def lowercase(params):
    return _required_text(params, "lowercase").lower()


async def reverse(params):
    return _required_text(params, "reverse")[::-1]


async def length(params):
    return len(_required_text(params, "length"))


async def words(params):
    return len(_required_text(params, "words").split())


text_tools = {
    "uppercase": uppercase,
    "lowercase": lowercase,
    "reverse": reverse,
    "length": length,
    "words": words,
}


# ── Encode / decode ──────────────────────────────────────────────────────────

async def encode_base64(params):
    return base64.b64encode(_required_text(params, "base64").encode("utf-8")).decode("ascii")


async def encode_hex(params):
    return _required_text(params, "hex").encode("utf-8").hex()


async def decode_base64(params):
    try:
        return base64.b64decode(_required_text(params, "base64")).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise ValueError("base64 input is not valid UTF-8 base64") from None


async def decode_hex(params):
    try:
        return bytes.fromhex(_required_text(params, "hex")).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        raise ValueError("hex input is not valid UTF-8 hex") from None


encode_tools = {"base64": encode_base64, "hex": encode_hex}
decode_tools = {"base64": decode_base64, "hex": decode_hex}


# ── Registration helpers ─────────────────────────────────────────────────────

def register_namespace(
    dispatcher,
    namespace: str,
    tools: dict[str, Callable],
    prefix: str = "",
    price_in_tnk: str = "0",
    category: str = "general",
) -> list[str]:
    """Register every handler in *tools* as ``<prefix>.<name>``."""
    methods = []
    for name, handler in tools.items():
        method = f"{prefix}.{name}" if prefix else name
        dispatcher.register_tool(
            method,
            handler,
            ToolMetadata(
                description=f"{namespace} - {name}",
                price_in_tnk=price_in_tnk,
                category=category,
                service_id=method.replace(".", "_"),
            ),
        )
        methods.append(method)
    return methods


def register_all_example_tools(dispatcher, price_in_tnk: str = "0.1") -> int:
    register_namespace(dispatcher, "Calculator", calculator, "calc", price_in_tnk, "math")
    register_namespace(dispatcher, "Random", random_tools, "random", price_in_tnk, "utilities")
    register_namespace(dispatcher, "Text", text_tools, "text", price_in_tnk, "utilities")
    register_namespace(dispatcher, "Encode", encode_tools, "encode", price_in_tnk, "utilities")
    register_namespace(dispatcher, "Decode", decode_tools, "decode", price_in_tnk, "utilities")

    dispatcher.register_tool("echo", echo, ToolMetadata(
        description="Echo back the input parameters", price_in_tnk="0", category="utilities", service_id="echo",
    ))
    dispatcher.register_tool("timestamp", timestamp, ToolMetadata(
        description="Get current timestamp in various formats", price_in_tnk="0", category="utilities",
        service_id="timestamp",
    ))
    dispatcher.register_tool("hash", sha256, ToolMetadata(
        description="Generate SHA256 hash of input", price_in_tnk=price_in_tnk, category="crypto", service_id="hash",
    ))

    count = len(dispatcher.list_tools())
    logger.debug("example_tools_registered", count=count)
    return count
