# Overview: Slug, phone number and deep-link helpers shared by services.

from __future__ import annotations

import re
import secrets
import string
import unicodedata
from urllib.parse import urlencode

_NON_SLUG = re.compile(r"[^a-z0-9]+")
_NON_DIGIT = re.compile(r"\D")

MIN_PHONE_DIGITS = 10


def slugify(value: str | None) -> str:
    """Lowercase ASCII slug: accents stripped, runs of other characters collapsed to '-'."""
    if not value:
        return ""
    normalized = unicodedata.normalize("NFD", value)
    ascii_only = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return _NON_SLUG.sub("-", ascii_only.lower()).strip("-")


def random_suffix(length: int = 5) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def suffixed_slug(base: str, existing_count: int) -> str:
    """Count-based collision suffix: 'red-shoes' then 'red-shoes-2', 'red-shoes-3'..."""
    if existing_count > 0:
        return f"{base}-{existing_count + 1}"
    return base


def first_free_slug(base: str, taken: set[str]) -> str:
    """Count-based suffix as the starting point, advanced past any suffix already in taken."""
    if base not in taken:
        return base
    count = len(taken)
    candidate = suffixed_slug(base, count)
    while candidate in taken:
        count += 1
        candidate = suffixed_slug(base, count)
    return candidate


def normalize_phone_number(phone: str | None) -> str:
    return _NON_DIGIT.sub("", phone or "")


def validate_phone_number(phone: str | None) -> bool:
    return len(normalize_phone_number(phone)) >= MIN_PHONE_DIGITS


def whatsapp_link(phone: str, text: str) -> str:
    return f"https://wa.me/{normalize_phone_number(phone)}?{urlencode({'text': text})}"


def build_share_url(base_url: str, path: str) -> str:
    base = base_url.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path
    return f"{base}{path}"
