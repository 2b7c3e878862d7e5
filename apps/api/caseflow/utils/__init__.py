"""Utility modules."""

from caseflow.utils.normalization import normalize_tags, normalize_token
from caseflow.utils.timestamps import ensure_utc, utcnow

__all__ = [
    # Normalization
    "normalize_tags",
    "normalize_token",
    # Timestamps
    "ensure_utc",
    "utcnow",
]
