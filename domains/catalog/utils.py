"""Identifier helpers: URL slugs, SKUs and order numbers."""

import re
import secrets
import string
import time

_BASE36 = string.digits + string.ascii_uppercase


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def _timestamp36() -> str:
    return _base36(int(time.time() * 1000))


def slugify(text: str) -> str:
    """Lower-case, hyphen-separated slug.

    >>> slugify("  Hello,  World! ")
    'hello-world'
    """
    slug = str(text).lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug)
    slug = re.sub(r"\-\-+", "-", slug)
    return slug.strip("-")


def generate_sku(prefix: str = "SKU") -> str:
    """``PREFIX-<base36 millis><3 random>``, e.g. ``PRD-LZ1K3QX4A7F``."""
    return f"{prefix}-{_timestamp36()}{_random_suffix(3)}"


def generate_order_number() -> str:
    """``ORD-<base36 millis>-<4 random>``."""
    return f"ORD-{_timestamp36()}-{_random_suffix(4)}"
