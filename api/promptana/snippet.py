"""
Snippet Generator - Highlighted excerpts of prompt content for search results
"""

import re
from typing import List

from promptana.config.search_config import (
    HIGHLIGHT_CLOSE,
    HIGHLIGHT_OPEN,
    MAX_QUERY_TERMS,
    MIN_TERM_LENGTH,
    SNIPPET_BACK_BOUNDARY,
    SNIPPET_ELLIPSIS,
    SNIPPET_FRONT_BOUNDARY,
    SNIPPET_LEADING_CONTEXT,
    SNIPPET_MAX_LENGTH,
)


def extract_query_terms(query: str) -> List[str]:
    """
    Lower-cased query terms used both to place the snippet window and to
    highlight matches. Terms shorter than MIN_TERM_LENGTH are dropped and
    at most MAX_QUERY_TERMS are kept.
    """
    terms = [term for term in query.lower().split() if len(term) >= MIN_TERM_LENGTH]
    return terms[:MAX_QUERY_TERMS]


def generate_snippet(content: str, query: str, max_length: int = SNIPPET_MAX_LENGTH) -> str:
    """
    Extract up to max_length characters of content around the first query
    term found, trim to word boundaries, add ellipses where text was cut and
    wrap every term occurrence in <b></b>.

    Args:
        content: Full prompt content
        query: Raw search query
        max_length: Characters taken from the content before trimming

    Returns:
        The snippet, or "" for empty content
    """
    if not content:
        return ""

    lower_content = content.lower()
    terms = extract_query_terms(query)

    start = 0
    for term in terms:
        idx = lower_content.find(term)
        if idx != -1:
            start = max(0, idx - SNIPPET_LEADING_CONTEXT)
            break

    snippet = content[start:start + max_length]

    if start > 0:
        first_space = snippet.find(" ")
        if 0 < first_space < SNIPPET_FRONT_BOUNDARY:
            snippet = snippet[first_space + 1:]
        snippet = SNIPPET_ELLIPSIS + snippet

    if start + max_length < len(content):
        last_space = snippet.rfind(" ")
        if last_space != -1 and last_space > len(snippet) - SNIPPET_BACK_BOUNDARY:
            snippet = snippet[:last_space]
        snippet = snippet + SNIPPET_ELLIPSIS

    # Overlapping terms may nest markers; that is left as is
    for term in terms:
        snippet = re.sub(
            f"({re.escape(term)})",
            rf"{HIGHLIGHT_OPEN}\1{HIGHLIGHT_CLOSE}",
            snippet,
            flags=re.IGNORECASE,
        )

    return snippet
