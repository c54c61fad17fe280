"""
Search Configuration
Full-text search, snippet and pagination settings for prompt search
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ===== FULL-TEXT SEARCH =====

# Must match the configuration used by the search vector trigger in schema.sql
SEARCH_TEXT_CONFIG = os.getenv("SEARCH_TEXT_CONFIG", "english")

SORT_RELEVANCE = "relevance"
SORT_UPDATED_AT_DESC = "updatedAtDesc"
SORT_OPTIONS = (SORT_RELEVANCE, SORT_UPDATED_AT_DESC)

# ===== REQUEST BOUNDS =====

MAX_QUERY_LENGTH = 500
MAX_TAG_IDS = 50
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50

# ===== SNIPPETS =====

SNIPPET_MAX_LENGTH = 200
SNIPPET_LEADING_CONTEXT = 50   # characters kept before the first match
SNIPPET_FRONT_BOUNDARY = 20    # a space this close to the front starts the snippet
SNIPPET_BACK_BOUNDARY = 30     # a space this close to the end ends the snippet
SNIPPET_ELLIPSIS = "..."
MIN_TERM_LENGTH = 3
MAX_QUERY_TERMS = 10
HIGHLIGHT_OPEN = "<b>"
HIGHLIGHT_CLOSE = "</b>"

# ===== SCORING =====

# Scores are a display-only decay over result position, not a database rank
SCORE_DECAY_PER_RESULT = 0.05

SEARCH_FAILED_MESSAGE = "Failed to search prompts."
