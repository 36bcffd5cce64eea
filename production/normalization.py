# production/normalization.py
"""
Canonical codes and unit counts for incoming snapshot lines.

Everything here is pure: the same raw input always gives the same code and
the same number of units, and nothing touches the database.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from .constants import (
    PRODUCT_PACK_SIZE, CLIENT_MAPPING, ZONE_LABEL,
    DEFAULT_AGENT_CODE, DEFAULT_AGENT_NAME, MAX_UNITS,
)

# spreadsheet exports prefix codes with a quote (text cell) or a hash
CODE_MARKERS = ("'", "#")

_WHITESPACE = re.compile(r"\s+")
# zero-width space/joiners, LRM/RLM, word joiner, invisible operators, BOM, soft hyphen
_INVISIBLE = re.compile("[\u00ad\u200b-\u200f\u2060-\u2064\ufeff]")


def normalize_code(raw: Any) -> str:
    if raw is None:
        return ""
    code = str(raw).upper().lstrip()
    if code[:1] in CODE_MARKERS:
        code = code[1:]
    code = _WHITESPACE.sub("", code)
    return _INVISIBLE.sub("", code)


def normalize_agent_code(raw: Any) -> str:
    return normalize_code(raw) or DEFAULT_AGENT_CODE


def normalize_name(raw: Any, fallback: str = "") -> str:
    name = _INVISIBLE.sub("", str(raw if raw is not None else "")).strip().upper()
    return name or fallback


def parse_number(raw: Any) -> float:
    """Number from a loose field ("2,5", " 3 ", 4, None, "abc"). Bad input is 0."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float, Decimal)):
        try:
            value = float(raw)
        except OverflowError:
            return 0.0
    else:
        text = str(raw).strip().replace(",", ".")
        try:
            value = float(text)
        except ValueError:
            return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def whole_units(raw: Any) -> int:
    """Floor a loose count. Partial boxes are dropped, negatives become 0."""
    return max(0, math.floor(parse_number(raw)))


def pack_size(code: str) -> int:
    return PRODUCT_PACK_SIZE.get(code, 1)


def to_units(code: str, raw_qty: Any) -> int:
    return whole_units(raw_qty) * pack_size(code)


def client_name(agent_code: Any) -> str:
    code = str(agent_code if agent_code is not None else "").strip()
    return CLIENT_MAPPING.get(code) or ZONE_LABEL.format(code=code or DEFAULT_AGENT_CODE)


def make_record_key(agent_code: str, product_code: str, day) -> str:
    return f"{agent_code}-{product_code}-{day.isoformat()}"


@dataclass
class NormalizedLine:
    agent_code: str
    agent_name: str
    product_code: str
    product_name: str
    units_per_pack: int
    units: int
    stock_level: Optional[int] = None


def normalize_line(zone: dict, line: dict) -> NormalizedLine:
    """
    zone = {"agent_code", "agent_name", ...}
    line = {"code", "name", "quantity", "stock_level"}  (validated snapshot dicts)
    """
    product_code = normalize_code(line.get("code"))
    stock_raw = line.get("stock_level")
    return NormalizedLine(
        agent_code=normalize_agent_code(zone.get("agent_code")),
        agent_name=normalize_name(zone.get("agent_name"), DEFAULT_AGENT_NAME),
        product_code=product_code,
        product_name=normalize_name(line.get("name"), product_code),
        units_per_pack=pack_size(product_code),
        units=min(MAX_UNITS, to_units(product_code, line.get("quantity"))),
        stock_level=None if stock_raw is None else min(MAX_UNITS, whole_units(stock_raw)),
    )
