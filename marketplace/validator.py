"""
Marketplace Backend — Field Validator
======================================

What:  Collects field-keyed validation messages for a single request.
Why:   Every write endpoint reports all invalid fields at once, but only the
       first problem per field ("first error wins").
How:   A Validator is created per request, entity rules call check() on it,
       and the caller raises FailedValidationError(v.errors) when not valid().
       No I/O and no exceptions inside the validator itself.
"""

import re
from datetime import timedelta
from typing import Dict, Hashable, Iterable, Pattern, TypeVar

from marketplace.exceptions import FailedValidationError

T = TypeVar("T", bound=Hashable)

EMAIL_RX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+\/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
PHONE_RX = re.compile(r"^[0-9]{10}$")
CATEGORY_RX = re.compile(r"^[a-zA-Z0-9 ]+$")

# Largest value an INTEGER primary key column can hold.
MAX_ID = 2**31 - 1


class Validator:
    """Accumulates the first error message for each field key."""

    def __init__(self) -> None:
        self.errors: Dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        if key not in self.errors:
            self.errors[key] = message

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def raise_if_invalid(self) -> None:
        if not self.valid():
            raise FailedValidationError(self.errors)


def permitted_value(value: T, *permitted: T) -> bool:
    return value in permitted


def matches(value: str, rx: Pattern[str]) -> bool:
    return rx.match(value) is not None


def has_duplicates(values: Iterable[T]) -> bool:
    seen = set()
    for value in values:
        if value in seen:
            return True
        seen.add(value)
    return False


def byte_length(value: str) -> int:
    # Length limits are expressed in bytes, not characters
    return len(value.encode("utf-8"))


# ── Durations ─────────────────────────────────────────────────────────────
# Service durations are stored as text in the compact form clients send
# ("30m", "1h30m", "1.5h") and parsed here to confirm they are meaningful.

_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "μs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART_RX = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """
    Parses a duration such as "45m", "1h30m" or "-1.5h".

    Raises:
        ValueError if the string is empty, malformed or out of range.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    total = timedelta(0)
    pos = 0
    while pos < len(text):
        part = _DURATION_PART_RX.match(text, pos)
        if part is None:
            raise ValueError(f"invalid duration {value!r}")
        try:
            total += float(part.group(1)) * _DURATION_UNITS[part.group(2)]
        except OverflowError:
            raise ValueError(f"duration out of range {value!r}") from None
        pos = part.end()

    if pos == 0:
        raise ValueError(f"invalid duration {value!r}")
    return sign * total
