"""
Layoffs Cleaning Package

Modules:
    config.py       - Paths, S3 target and the canonical value tables.
    staging.py      - Loads the raw CSV into SQLite and manages the staging copy.
    cleaning.py     - Deduplicates, standardizes and reconciles nulls.
    run_pipeline.py - Orchestrates the full run and exports the cleaned table.

Version: 1.0.0
"""
from layoffs_pipeline.cleaning import (
    ParseError,
    clean_layoffs,
    deduplicate,
    reconcile_nulls,
    standardize,
)

__version__ = "1.0.0"

__all__ = [
    "ParseError",
    "clean_layoffs",
    "deduplicate",
    "reconcile_nulls",
    "standardize",
]
