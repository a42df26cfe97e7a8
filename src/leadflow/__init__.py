"""Campaign lead pipeline: acquisition, deduplication, scoring and persistence."""

__version__ = "0.1.0"
