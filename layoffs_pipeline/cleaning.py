"""
Record cleaning for the layoffs dataset.

Three stages run in order over a pandas DataFrame: deduplicate, standardize,
reconcile nulls. Every function returns a new frame and leaves its input
untouched.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

import pandas as pd

from layoffs_pipeline.config import (
    DATE_FORMAT,
    DUPLICATE_KEY_COLUMNS,
    NULL_TOKENS,
    PipelineConfig,
)

logger = logging.getLogger("layoffs_pipeline.cleaning")

INTEGER_COLUMNS = ['total_laid_off', 'funds_raised_millions']


class ParseError(ValueError):
    """A date or numeric value does not match its expected format."""

    def __init__(self, column: str, row, value, expected: Optional[str] = None):
        self.column = column
        self.row = row
        self.value = value
        message = f"Cannot parse {column} value {value!r} at row {row}"
        if expected:
            message += f" (expected {expected})"
        super().__init__(message)


def is_missing(value) -> bool:
    """True for None/NaN/NA and for strings that only spell out 'nothing'."""
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, str):
        return value.strip() in NULL_TOKENS
    if isinstance(value, (date, datetime)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _missing_mask(series: pd.Series) -> pd.Series:
    return series.map(is_missing).astype(bool)


def _require_columns(df: pd.DataFrame, columns: List[str]) -> None:
    missing_columns = [col for col in columns if col not in df.columns]
    if missing_columns:
        raise KeyError(f"DataFrame is missing required columns: {missing_columns}")


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------

def rank_duplicates(df: pd.DataFrame, keys: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Number each row within its group of identical records.

    Nulls compare equal to each other, so two rows that are both missing
    industry still land in the same group.

    Args:
        df: Layoff records
        keys: Columns that identify a record (default: DUPLICATE_KEY_COLUMNS)

    Returns:
        Copy of df with a 1-based row_num column
    """
    keys = keys or DUPLICATE_KEY_COLUMNS
    _require_columns(df, keys)

    ranked = df.copy()
    if ranked.empty:
        ranked['row_num'] = pd.Series(dtype='int64')
        return ranked

    ranked['row_num'] = ranked.groupby(keys, dropna=False, sort=False).cumcount() + 1
    return ranked


def find_duplicates(df: pd.DataFrame, keys: Optional[List[str]] = None) -> pd.DataFrame:
    """Rows that repeat an earlier record; empty when there are none."""
    ranked = rank_duplicates(df, keys)
    return ranked.loc[ranked['row_num'] > 1]


def deduplicate(df: pd.DataFrame, keys: Optional[List[str]] = None) -> pd.DataFrame:
    """Keep the first occurrence of every record, preserving input order."""
    ranked = rank_duplicates(df, keys)
    deduped = ranked.loc[ranked['row_num'] == 1].drop(columns=['row_num'])

    removed = len(df) - len(deduped)
    if removed > 0:
        logger.info(f"Removed {removed} duplicate records, {len(deduped)} records remaining")
    return deduped


# ---------------------------------------------------------------------------
# Standardization
# ---------------------------------------------------------------------------

def trim_company(series: pd.Series) -> pd.Series:
    return series.map(lambda value: value.strip() if isinstance(value, str) else value).astype(object)


def canonicalize_prefix(series: pd.Series, mapping: Dict[str, str]) -> pd.Series:
    """
    Collapse every value starting with a known prefix onto its canonical form.

    Args:
        series: Text column
        mapping: Prefix -> canonical value; the first matching prefix wins

    Returns:
        Rewritten series; non-matching and null values are left alone
    """
    def canonical(value):
        if isinstance(value, str):
            for prefix, canonical_value in mapping.items():
                if value.startswith(prefix):
                    return canonical_value
        return value

    return series.map(canonical).astype(object)


def parse_dates(series: pd.Series, date_format: str = DATE_FORMAT) -> pd.Series:
    """
    Parse a text column of dates into datetime.date values.

    Values that are already dates pass through, nulls become None.

    Raises:
        ParseError: a value does not match date_format
    """
    parsed = []
    for label, value in series.items():
        if is_missing(value):
            parsed.append(None)
        elif isinstance(value, datetime):
            parsed.append(value.date())
        elif isinstance(value, date):
            parsed.append(value)
        else:
            try:
                parsed.append(datetime.strptime(str(value).strip(), date_format).date())
            except ValueError:
                raise ParseError(series.name or 'date', label, value, expected=date_format) from None
    return pd.Series(parsed, index=series.index, name=series.name, dtype=object)


def _to_integer(series: pd.Series) -> pd.Series:
    if pd.api.types.is_integer_dtype(series):
        return series.astype('Int64')

    values = []
    for label, value in series.items():
        if is_missing(value):
            values.append(pd.NA)
            continue
        try:
            number = Decimal(str(value).strip().replace(',', ''))
        except InvalidOperation:
            raise ParseError(series.name, label, value, expected="an integer") from None
        if not number.is_finite() or number != number.to_integral_value():
            raise ParseError(series.name, label, value, expected="an integer")
        values.append(int(number))
    return pd.Series(values, index=series.index, name=series.name, dtype='Int64')


def _to_fraction(series: pd.Series) -> pd.Series:
    # "25%" means 0.25; bare numbers are taken as fractions already
    values = []
    for label, value in series.items():
        if is_missing(value):
            values.append(None)
            continue
        text = str(value).strip()
        try:
            if text.endswith('%'):
                values.append(float(text[:-1].strip()) / 100)
            else:
                values.append(float(text))
        except ValueError:
            raise ParseError(series.name, label, value, expected="a number or percentage") from None
    return pd.Series(values, index=series.index, name=series.name, dtype='float64')


def coerce_numeric(df: pd.DataFrame) -> pd.DataFrame:
    """
    Give the layoff figures real numeric types.

    total_laid_off and funds_raised_millions become nullable Int64,
    percentage_laid_off becomes float64.

    Raises:
        ParseError: a value is not a number
    """
    coerced = df.copy()
    for column in INTEGER_COLUMNS:
        if column in coerced.columns:
            coerced[column] = _to_integer(coerced[column])
    if 'percentage_laid_off' in coerced.columns:
        coerced['percentage_laid_off'] = _to_fraction(coerced['percentage_laid_off'])
    return coerced


def standardize(df: pd.DataFrame, config: Optional[PipelineConfig] = None) -> pd.DataFrame:
    """
    Normalize text fields, dates and numbers.

    Applying this to already standardized data changes nothing.

    Args:
        df: Layoff records
        config: Supplies the canonical tables and the date format

    Returns:
        Standardized copy of df

    Raises:
        ParseError: a date or numeric value cannot be parsed
    """
    config = config or PipelineConfig()
    _require_columns(df, ['company', 'industry', 'country', 'date'])

    standardized = coerce_numeric(df)
    standardized['company'] = trim_company(standardized['company'])
    standardized['industry'] = canonicalize_prefix(standardized['industry'], config.industry_canonical)
    standardized['country'] = canonicalize_prefix(standardized['country'], config.country_canonical)
    standardized['date'] = parse_dates(standardized['date'], config.date_format)
    return standardized


# ---------------------------------------------------------------------------
# Null reconciliation
# ---------------------------------------------------------------------------

def find_blank_industries(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[_missing_mask(df['industry']).to_numpy()]


def _unrecoverable_mask(df: pd.DataFrame):
    return _missing_mask(df['total_laid_off']).to_numpy() & _missing_mask(df['percentage_laid_off']).to_numpy()


def find_unrecoverable(df: pd.DataFrame) -> pd.DataFrame:
    """Rows with neither a headcount nor a percentage of layoffs."""
    return df.loc[_unrecoverable_mask(df)]


def backfill_industry(df: pd.DataFrame) -> pd.DataFrame:
    """
    Fill blank industries from another record of the same company.

    When a company has several donors the first one in row order is used.
    Blanks that find no donor are set to None.
    """
    filled = df.copy()
    blank = _missing_mask(filled['industry'])

    if blank.any():
        donor_rows = filled.loc[~blank.to_numpy() & filled['company'].notna().to_numpy()]
        donors = donor_rows.drop_duplicates(subset='company', keep='first').set_index('company')['industry']
        recovered = filled.loc[blank.to_numpy(), 'company'].map(donors)

        filled['industry'] = filled['industry'].astype(object)
        filled.loc[blank.to_numpy(), 'industry'] = recovered.to_numpy()
        logger.info(
            f"Backfilled industry for {int(recovered.notna().sum())} of {int(blank.sum())} records with blank industry"
        )

    industry = filled['industry'].astype(object)
    industry[_missing_mask(industry).to_numpy()] = None
    filled['industry'] = industry
    return filled


def prune_unrecoverable(df: pd.DataFrame) -> pd.DataFrame:
    unrecoverable = _unrecoverable_mask(df)
    if unrecoverable.any():
        logger.info(f"Dropping {int(unrecoverable.sum())} records with no layoff figures")
    return df.loc[~unrecoverable]


def reconcile_nulls(df: pd.DataFrame) -> pd.DataFrame:
    """Backfill industries first, then drop what cannot be recovered."""
    _require_columns(df, ['company', 'industry', 'total_laid_off', 'percentage_laid_off'])
    return prune_unrecoverable(backfill_industry(df))


# ---------------------------------------------------------------------------
# Full pass
# ---------------------------------------------------------------------------

def clean_layoffs(df: pd.DataFrame, config: Optional[PipelineConfig] = None) -> pd.DataFrame:
    """
    Run the full cleaning pass: deduplicate, standardize, reconcile nulls.

    Trimming, canonicalization and backfill can make two records identical
    that were not before, so a closing deduplication keeps the output free
    of duplicates and makes a second run a no-op.

    Args:
        df: Raw layoff records (the staging copy)
        config: Pipeline settings (default: PipelineConfig())

    Returns:
        Cleaned copy with a fresh RangeIndex

    Raises:
        ParseError: a date or numeric value cannot be parsed
    """
    config = config or PipelineConfig()
    logger.info(f"Cleaning {len(df)} layoff records")

    # Row order, not index labels, identifies a record from here on
    deduped = deduplicate(df.reset_index(drop=True), config.duplicate_keys)
    standardized = standardize(deduped, config)
    reconciled = reconcile_nulls(standardized)
    cleaned = deduplicate(reconciled, config.duplicate_keys).reset_index(drop=True)

    logger.info(f"Cleaning finished: {len(df)} records in, {len(cleaned)} records out")
    return cleaned
