"""
Referral code generation.

A base code is built deterministically from the account's details:

    <3 name letters><2 phone digits><role tag><2 year digits>    e.g. "raj45s24"

Candidates after the base code are tried in a fixed order, so a test can
walk the whole sequence:

1. the base code
2. MAX_DETERMINISTIC_VARIATIONS codes with the phone digits shifted by 1..N
3. MAX_FALLBACK_ATTEMPTS timestamp codes ``usr<4 digits><role tag><yy>``
"""

import re
from collections.abc import Iterator
from enum import Enum

ROLE_TAGS = {
    "student": "s",
    "agent": "a",
    "staff": "o",
    "super_admin": "t",
}
DEFAULT_ROLE_TAG = "u"

NAME_FILLER = "x"
FALLBACK_PREFIX = "usr"

MAX_DETERMINISTIC_VARIATIONS = 10
MAX_FALLBACK_ATTEMPTS = 5

CODE_PATTERN = re.compile(r"^[a-z]{3}\d{2}[aostu]\d{2}$")
FALLBACK_CODE_PATTERN = re.compile(r"^usr\d{4}[aostu]\d{2}$")


def role_tag(role: str | Enum) -> str:
    value = role.value if isinstance(role, Enum) else role
    return ROLE_TAGS.get(value, DEFAULT_ROLE_TAG)


def name_prefix(display_name: str | None) -> str:
    """First three ASCII letters of the name, lowercased, padded with x."""
    letters = [c for c in (display_name or "").lower() if c.isascii() and c.isalpha()]
    return "".join(letters[:3]).ljust(3, NAME_FILLER)


def phone_suffix(phone_number: str | None) -> str:
    """Last two digits of the phone number, "00" if it has none."""
    digits = re.sub(r"\D", "", phone_number or "")
    if not digits:
        return "00"
    return digits[-2:].rjust(2, "0")


def year_suffix(year: int) -> str:
    return f"{year % 100:02d}"


def generate_code(
    display_name: str | None,
    phone_number: str | None,
    role: str | Enum,
    year: int,
) -> str:
    """The deterministic base code for an account."""
    return (
        f"{name_prefix(display_name)}{phone_suffix(phone_number)}"
        f"{role_tag(role)}{year_suffix(year)}"
    )


def candidate_codes(
    display_name: str | None,
    phone_number: str | None,
    role: str | Enum,
    year: int,
    timestamp_ms: int,
) -> Iterator[str]:
    """
    Every code to try for an account, in order.

    Args:
        display_name: Account display name
        phone_number: Account phone number
        role: Account role
        year: Registration year
        timestamp_ms: Milliseconds since the epoch, seeds the fallback codes

    Yields:
        1 + MAX_DETERMINISTIC_VARIATIONS + MAX_FALLBACK_ATTEMPTS distinct codes
    """
    prefix = name_prefix(display_name)
    phone = phone_suffix(phone_number)
    tag = role_tag(role)
    yy = year_suffix(year)

    yield f"{prefix}{phone}{tag}{yy}"

    for shift in range(1, MAX_DETERMINISTIC_VARIATIONS + 1):
        yield f"{prefix}{(int(phone) + shift) % 100:02d}{tag}{yy}"

    for attempt in range(MAX_FALLBACK_ATTEMPTS):
        yield f"{FALLBACK_PREFIX}{(timestamp_ms + attempt) % 10_000:04d}{tag}{yy}"


def normalize_code(code: str) -> str:
    return code.strip().lower()


def is_well_formed(code: str) -> bool:
    return bool(CODE_PATTERN.match(code) or FALLBACK_CODE_PATTERN.match(code))
