from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

PRIMARY_SHOP_SUFFIX = ".myshopify.com"
SHOP_DOMAIN_SUFFIXES: tuple[str, ...] = (
    PRIMARY_SHOP_SUFFIX,
    ".shopifypreview.com",
    ".myshopify.io",
)

# Checked in order; the first non-empty value wins.
SHOP_QUERY_PARAM = "shop"
SHOP_HEADER_SOURCES: tuple[str, ...] = (
    "x-shopify-shop-domain",
    "x-shopify-shop",
    "x-forwarded-host",
)

_SCHEME_RE = re.compile(r"^https?://")
_SUFFIX_RE = re.compile(r"[/?#].*$", re.DOTALL)


def _first_value(value: str | Sequence[str] | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    for item in value:
        if item and item.strip():
            return item
    return None


def resolve_shop_candidate(
    query: Mapping[str, str | Sequence[str]],
    headers: Mapping[str, str],
) -> str | None:
    candidates = [_first_value(query.get(SHOP_QUERY_PARAM))]
    candidates.extend(headers.get(name) for name in SHOP_HEADER_SOURCES)
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate
    return None


def has_recognized_suffix(domain: str) -> bool:
    return domain.endswith(SHOP_DOMAIN_SUFFIXES)


def normalize_shop(candidate: str) -> str:
    """Reduce a shop candidate to a bare, lower-cased shop domain.

    Bare store names get the primary suffix appended. Dotted domains outside the
    recognized suffixes pass through unchanged; the request signature decides
    whether they are trusted. A comma-separated host list (as proxies append to
    X-Forwarded-Host) is cut down to its first entry. Returns an empty string
    when nothing usable is left.
    """
    normalized = str(candidate).split(",", 1)[0].strip().lower()
    normalized = _SCHEME_RE.sub("", normalized)
    normalized = _SUFFIX_RE.sub("", normalized).strip()
    if not normalized:
        return ""
    if not has_recognized_suffix(normalized) and "." not in normalized:
        normalized = f"{normalized}{PRIMARY_SHOP_SUFFIX}"
    return normalized
