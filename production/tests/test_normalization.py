from datetime import date

import pytest

from production.constants import MAX_UNITS
from production.normalization import (
    client_name, make_record_key, normalize_code, normalize_agent_code,
    normalize_line, pack_size, parse_number, to_units, whole_units,
)


@pytest.mark.parametrize("raw, expected", [
    ("bur4", "BUR4"),
    ("'bur4", "BUR4"),
    ("#MOZ 28", "MOZ28"),
    ("  moz\t28 ", "MOZ28"),
    ("BUR\u200b4\ufeff", "BUR4"),
    (None, ""),
    (10, "10"),
])
def test_normalize_code(raw, expected):
    assert normalize_code(raw) == expected


def test_only_one_leading_marker_is_stripped():
    assert normalize_code("''X1") == "'X1"


def test_empty_agent_code_defaults_to_zero():
    assert normalize_agent_code("") == "0"
    assert normalize_agent_code(None) == "0"
    assert normalize_agent_code(" 05 ") == "05"


@pytest.mark.parametrize("raw, expected", [
    (3, 3.0),
    ("2,5", 2.5),
    (" 7.9 ", 7.9),
    ("abc", 0.0),
    (None, 0.0),
    (True, 0.0),
    (float("nan"), 0.0),
    (10**400, 0.0),
])
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


def test_whole_units_floors_and_never_goes_negative():
    assert whole_units("2,9") == 2
    assert whole_units(0.99) == 0
    assert whole_units(-3) == 0


def test_pack_size_lookup():
    assert pack_size("PACK9") == 9
    assert pack_size("BUR13") == 40
    assert pack_size("NOPE") == 1


def test_to_units_multiplies_floored_boxes():
    assert to_units("PACK9", 2) == 18
    assert to_units("PACK9", "2,7") == 18
    assert to_units("UNKNOWN", "5") == 5
    assert to_units("BUR4", "x") == 0


def test_client_name_mapping_and_fallback():
    assert client_name("10") == "GRAN CANARIA"
    assert client_name("08") == "GRAN CANARIA"
    assert client_name("27") == "PINGÜINO"
    assert client_name("99") == "ZONA 99"
    assert client_name("") == "ZONA 0"


def test_record_key():
    assert make_record_key("10", "PACK9", date(2026, 10, 19)) == "10-PACK9-2026-10-19"


def test_normalize_line_is_deterministic():
    zone = {"agent_code": " 10", "agent_name": "gc norte"}
    line = {"code": "'pack9", "name": "", "quantity": "2,5", "stock_level": "40,2"}

    first = normalize_line(zone, line)
    second = normalize_line(zone, line)

    assert first == second
    assert first.agent_code == "10"
    assert first.agent_name == "GC NORTE"
    assert first.product_code == "PACK9"
    assert first.product_name == "PACK9"
    assert first.units_per_pack == 9
    assert first.units == 18
    assert first.stock_level == 40


def test_normalize_line_without_stock_level():
    line = normalize_line({"agent_code": "15"}, {"code": "RIC3", "name": "ricotta", "quantity": 1})
    assert line.stock_level is None
    assert line.agent_name == "UNKNOWN"
    assert line.units == 6


def test_normalize_line_caps_units_at_the_column_range():
    line = normalize_line({"agent_code": "10"}, {"code": "BUR13", "quantity": "1e18", "stock_level": 1e15})
    assert line.units == MAX_UNITS
    assert line.stock_level == MAX_UNITS
