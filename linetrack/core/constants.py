"""Shared constants for linetrack.

Values used across the analysis, failure ledger and API layers.
"""

# =============================================================================
# Failure Ledger operation types
# =============================================================================

# Counting lines + diff stats for a single commit
OPERATION_COMMIT_ANALYSIS = "commit-analysis"

# =============================================================================
# Line counting
# =============================================================================

# Registry key for the fallback counter
WILDCARD_EXTENSION = "*"

# Extensions routed through the comment-aware counter by default
COMMENT_AWARE_EXTENSIONS = frozenset({".cs"})

SINGLE_LINE_COMMENT_TOKEN = "//"

# =============================================================================
# Retry defaults
# =============================================================================

DEFAULT_MAX_RETRY_COUNT = 3
DEFAULT_BASE_BACKOFF_MINUTES = 5
DEFAULT_MAX_BACKOFF_MINUTES = 60
DEFAULT_POLL_INTERVAL_SECONDS = 300

# =============================================================================
# Queries
# =============================================================================

DEFAULT_HISTORY_DAYS = 30
DEFAULT_TOP_FILES_COUNT = 5
