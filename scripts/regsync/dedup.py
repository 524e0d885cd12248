"""
Deduplication keys for synced records.

Re-syncing a source returns the same upstream documents again, often with
different tracking parameters or cosmetic title changes. Stores key each
record on ``record_key`` and ignore keys they have already seen.
"""

import re
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_content",
        "utm_term",
        "ref",
        "source",
        "fbclid",
        "gclid",
    }
)

_NON_WORD = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Lowercase a URL and drop tracking parameters, fragment and trailing slash.

    Returns None for empty or blank input.
    """
    if not url or not url.strip():
        return None

    try:
        parts = urlsplit(url.strip().lower())
    except ValueError:
        return url.strip().lower()

    kept = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path.rstrip("/"), urlencode(kept), ""))


def normalize_title(title: Optional[str]) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    if not title:
        return ""
    text = _NON_WORD.sub(" ", title.lower())
    return _SPACES.sub(" ", text).strip()


def record_key(external_id: Optional[str], url: Optional[str], title: Optional[str]) -> str:
    """Identity of a record within its source: upstream id, else URL, else title."""
    if external_id:
        return f"id:{external_id}"
    normalized = normalize_url(url)
    if normalized:
        return f"url:{normalized}"
    return f"title:{normalize_title(title)}"
