"""
Utility functions for Gemini Browser.

Provides helpers for text processing, URLs and JSON extraction.
"""

import re
from typing import Optional
from urllib.parse import quote_plus


NAVIGATION_TOOL = "navigate_page"

# Search engine homepages where the generic "fill" interaction is unreliable.
SEARCH_HOMEPAGE_HOSTS = {
    "google.com",
    "www.google.com",
}

GOOGLE_SEARCH_URL = "https://www.google.com/search?q={query}"


def truncate_text(text: str, max_chars: int, suffix: str = "...") -> str:
    """Truncate text to a maximum number of characters.

    Args:
        text: Text to truncate
        max_chars: Maximum number of characters
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars - len(suffix)] + suffix


def clean_text(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends."""
    return re.sub(r'\s+', ' ', text).strip()


def extract_json_from_response(response: str) -> Optional[str]:
    """Extract JSON from a response that might contain markdown or extra text.

    Args:
        response: Raw response string

    Returns:
        Extracted JSON string, or None if not found
    """
    # Code blocks first
    code_block_pattern = r'```(?:json)?\s*([\[{][\s\S]*?[\]}])\s*```'
    match = re.search(code_block_pattern, response)
    if match:
        return match.group(1)

    # Whichever of an object or an array opens first
    patterns = [r'\{[\s\S]*\}', r'\[[\s\S]*\]']
    starts = [response.find(c) for c in "{["]
    if starts[1] != -1 and (starts[0] == -1 or starts[1] < starts[0]):
        patterns.reverse()

    for json_pattern in patterns:
        match = re.search(json_pattern, response)
        if match:
            return match.group(0)

    return None


def is_bare_search_homepage(url: str) -> bool:
    """Check whether a URL is a search engine homepage with no query.

    Args:
        url: URL to check

    Returns:
        True for e.g. "google.com" or "https://www.google.com/",
        False once a query or a path is present
    """
    if "?" in url:
        return False

    rest = re.sub(r'^https?://', '', url.strip(), flags=re.IGNORECASE)
    host, _, path = rest.partition('/')
    if path:
        return False
    return host.lower() in SEARCH_HOMEPAGE_HOSTS


def build_search_url(query: str) -> str:
    """Build a Google results URL with whitespace collapsed to '+'."""
    return GOOGLE_SEARCH_URL.format(query=quote_plus(clean_text(query)))


def rewrite_search_url(url: str, query: str) -> str:
    """Rewrite a bare search homepage into a results URL for the query.

    Any other URL, including one that already has a query string, is
    returned unchanged.
    """
    if not query.strip() or not is_bare_search_homepage(url):
        return url
    return build_search_url(query)
