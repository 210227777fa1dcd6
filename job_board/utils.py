"""Utility helpers shared across the package."""

from __future__ import annotations

import re
import uuid
from typing import Callable, Hashable, Iterable, List, Optional, TypeVar


T = TypeVar("T")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_RE = re.compile(r"^https?://[\w.-]+(?:/\S*)?$", re.IGNORECASE)
HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def to_trimmed(value: Optional[str]) -> str:
    return (value or "").strip()


def to_nullable(value: Optional[str]) -> Optional[str]:
    """Trimmed value, or None when nothing is left."""
    trimmed = to_trimmed(value)
    return trimmed or None


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def is_valid_url(value: str) -> bool:
    return bool(URL_RE.match(value or ""))


def is_valid_hex_color(value: str) -> bool:
    return bool(HEX_COLOR_RE.match(value or ""))


def slugify(value: str, max_length: int = 50) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower().strip())
    return slug.strip("-")[:max_length]


def build_slug(title: str, company_name: str) -> str:
    """Public URL slug: `<title>-<company>-<8 random hex chars>`.

    The random suffix keeps slugs unique when the same company reposts a role.
    """
    prefix = f"{slugify(title)}-{slugify(company_name)}"
    prefix = re.sub(r"-+", "-", prefix).strip("-")
    return f"{prefix or 'job'}-{uuid.uuid4().hex[:8]}"


def uniq_preserve_order(items: Iterable[T], key: Optional[Callable[[T], Hashable]] = None) -> List[T]:
    """Deduplicate while preserving first-seen order.

    Without `key`, strings are compared case-insensitively after trimming and
    empty items are dropped.
    """
    seen = set()
    out: List[T] = []
    for it in items:
        if not it:
            continue
        k = key(it) if key is not None else str(it).strip().lower()
        if k in seen:
            continue
        seen.add(k)
        out.append(it)
    return out
