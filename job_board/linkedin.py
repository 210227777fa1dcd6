"""LinkedIn post identifiers.

Admins paste LinkedIn posts in whatever form their browser gives them: share
URLs, feed URLs, percent-encoded embed URLs or bare URNs. Everything is reduced
to the canonical `urn:li:<kind>:<id>` form used by the embed endpoint.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Union
from urllib.parse import unquote, urlsplit

from .models import LinkedInEmbedPost
from .utils import uniq_preserve_order


URN_RE = re.compile(r"(urn:li:(?:activity|share|ugcPost):[A-Za-z0-9-]+)", re.IGNORECASE)
ACTIVITY_PATH_RE = re.compile(r"activity-(\d+)", re.IGNORECASE)
INPUT_SPLIT_RE = re.compile(r"[,\n]")

FEED_URL = "https://www.linkedin.com/feed/update/{urn}/"
EMBED_URL = "https://www.linkedin.com/embed/feed/update/{urn}"

RawInputs = Union[str, Iterable[str], None]


def parse_linkedin_post_inputs(raw: RawInputs) -> List[str]:
    """Split a comma/newline separated string (or a list) into trimmed entries."""
    if not raw:
        return []
    parts = INPUT_SPLIT_RE.split(raw) if isinstance(raw, str) else [str(p or "") for p in raw]
    return [p.strip() for p in parts if p and p.strip()]


def _decode(raw: str) -> str:
    try:
        return unquote(raw, errors="strict")
    except UnicodeDecodeError:
        return raw


def extract_linkedin_urn(raw: str) -> Optional[str]:
    """Canonical URN for a pasted post, or None if the input isn't one."""
    decoded = _decode(raw or "")

    match = URN_RE.search(decoded)
    if match:
        return match.group(1)

    activity = ACTIVITY_PATH_RE.search(decoded)
    if activity:
        return f"urn:li:activity:{activity.group(1)}"

    return None


def to_embed_post(raw: str) -> Optional[LinkedInEmbedPost]:
    urn = extract_linkedin_urn(raw)
    if urn is None:
        return None

    source_url = FEED_URL.format(urn=urn) if raw.startswith("urn:li:") else raw
    return LinkedInEmbedPost(
        id=urn.rsplit(":", 1)[-1],
        source_url=source_url,
        embed_url=EMBED_URL.format(urn=urn),
    )


def get_linkedin_embed_posts(raw_inputs: RawInputs, max_posts: int = 3) -> List[LinkedInEmbedPost]:
    """Embeddable posts for a batch of inputs.

    Unrecognised inputs are dropped, duplicates (same post id) keep the first
    occurrence, and at most `max_posts` are returned.
    """
    posts = [p for p in (to_embed_post(r) for r in parse_linkedin_post_inputs(raw_inputs)) if p is not None]
    return uniq_preserve_order(posts, key=lambda p: p.id)[: max(max_posts, 0)]


def is_linkedin_input(value: str) -> bool:
    """True for bare URNs and anything hosted on linkedin.com."""
    if value.startswith("urn:li:"):
        return True
    candidate = value if value.startswith(("http://", "https://")) else f"https://{value}"
    try:
        host = urlsplit(candidate).hostname or ""
    except ValueError:
        return False
    return "linkedin.com" in host.lower()


def normalize_linkedin_urls(raw: RawInputs, limit: int = 6) -> List[str]:
    """LinkedIn entries from raw input: exact duplicates removed, capped at `limit`."""
    candidates = [c for c in parse_linkedin_post_inputs(raw) if is_linkedin_input(c)]
    return uniq_preserve_order(candidates, key=lambda c: c)[: max(limit, 0)]
