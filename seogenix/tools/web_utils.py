from __future__ import annotations

import re
from urllib.parse import quote_plus, urlparse


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.hostname])
    except ValueError:
        return False


def extract_domain(url: str) -> str:
    """Lowercased hostname without a leading ``www.``."""
    hostname = (urlparse(url).hostname or "").lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def brand_name_from_domain(domain: str) -> str:
    """``acme.co.uk`` -> ``Acme``."""
    first_label = domain.split(".")[0]
    return first_label[:1].upper() + first_label[1:]


def truncate(text: str, max_length: int) -> str:
    """Collapse whitespace and hard-cut to ``max_length`` characters."""
    text = re.sub(r"\s+", " ", text or "").strip()
    return text[:max_length]


def search_url(domain: str, base: str = "https://www.google.com/search") -> str:
    return f"{base}?q={quote_plus(domain)}"
