# Overview: Pytest coverage for slug, phone, deep-link and ISO week helpers.

from datetime import date, datetime
from urllib.parse import parse_qs, urlparse

import pytest

from marketplace.text_utils import (
    build_share_url, first_free_slug, normalize_phone_number, slugify, suffixed_slug,
    validate_phone_number, whatsapp_link,
)
from marketplace.time_utils import end_of_week, parse_iso_datetime, start_of_week, to_utc_z, week_label


@pytest.mark.parametrize("value, expected", [
    ("Zapatos Niño", "zapatos-nino"),
    ("  Café & Té  ", "cafe-te"),
    ("Red--Shoes!!", "red-shoes"),
    ("¡¡¡", ""),
    (None, ""),
])
def test_slugify(value, expected):
    assert slugify(value) == expected


def test_suffixed_slug():
    assert suffixed_slug("red-shoes", 0) == "red-shoes"
    assert suffixed_slug("red-shoes", 1) == "red-shoes-2"
    assert suffixed_slug("red-shoes", 4) == "red-shoes-5"


@pytest.mark.parametrize("taken, expected", [
    (set(), "ana"),
    ({"ana-maria"}, "ana"),
    ({"ana", "ana-2"}, "ana-3"),
    ({"ana", "ana-3"}, "ana-4"),
    ({"ana", "ana-3", "ana-4"}, "ana-5"),
])
def test_first_free_slug(taken, expected):
    assert first_free_slug("ana", taken) == expected


def test_phone_helpers():
    assert normalize_phone_number("+52 (55) 1234-5678") == "525512345678"
    assert validate_phone_number("55 1234 5678")
    assert not validate_phone_number("555-1234")
    assert not validate_phone_number(None)


def test_whatsapp_link_encodes_text():
    link = urlparse(whatsapp_link("+52 55 1234 5678", "Hola, ¿disponible?"))

    assert link.netloc == "wa.me"
    assert link.path == "/525512345678"
    assert parse_qs(link.query)["text"] == ["Hola, ¿disponible?"]


def test_build_share_url():
    assert build_share_url("https://market.test/", "v/ana/share/x") == "https://market.test/v/ana/share/x"


@pytest.mark.parametrize("day, expected", [
    (date(2026, 10, 19), "2026-W43"),  # Monday
    (date(2026, 10, 25), "2026-W43"),  # Sunday, same week
    (date(2026, 1, 1), "2026-W01"),
    (date(2027, 1, 1), "2026-W53"),  # ISO year differs from calendar year
])
def test_week_label(day, expected):
    assert week_label(day) == expected


def test_week_bounds():
    wednesday = datetime(2026, 10, 21, 9, 0)

    assert start_of_week(wednesday) == datetime(2026, 10, 19)
    assert end_of_week(wednesday) == datetime(2026, 10, 25, 23, 59, 59, 999999)


def test_iso_datetime_round_trip_to_utc():
    parsed = parse_iso_datetime("2026-10-19T10:00:00-06:00")

    assert parsed == datetime(2026, 10, 19, 16, 0)
    assert to_utc_z(parsed) == "2026-10-19T16:00:00Z"
    assert parse_iso_datetime("") is None
