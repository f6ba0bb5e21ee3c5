from __future__ import annotations

import re
from datetime import date
from urllib.parse import urlparse


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def extract_domain(url: str) -> str:
    """Extract the publisher domain (no ``www.``) from a URL for display."""
    try:
        netloc = urlparse(url).netloc
    except ValueError:
        return url
    if not netloc:
        return url
    return netloc[4:] if netloc.startswith("www.") else netloc


def retrieved_on(day: date) -> str:
    """Citation date stamp, e.g. ``2025, March 4``."""
    return f"{day.year}, {day.strftime('%B')} {day.day}"


def truncate(text: str, max_length: int) -> str:
    """Cut text to ``max_length`` characters."""
    if max_length <= 0 or len(text) <= max_length:
        return text
    return text[:max_length]


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()
