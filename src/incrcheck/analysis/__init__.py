"""Dirty/clean annotation checks for incremental fingerprints."""

from .dirty_clean import CheckOutcome, check_dirty_clean_annotations
from .metadata_hash import check_dirty_clean_metadata

__all__ = [
    "CheckOutcome",
    "check_dirty_clean_annotations",
    "check_dirty_clean_metadata",
]
