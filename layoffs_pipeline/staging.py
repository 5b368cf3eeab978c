"""
SQLite staging for the layoffs dataset.

The raw CSV lands in the `layoffs` table and is never modified afterwards.
Cleaning reads from a full copy, `layoffs_staging`, and its result is written
to `layoffs_cleaned`.
"""
import sqlite3
import csv
import os
import logging
from datetime import date
from typing import List, Optional

import pandas as pd

from layoffs_pipeline.config import (
    CLEANED_TABLE,
    LAYOFF_COLUMNS,
    NULL_TOKENS,
    RAW_TABLE,
    STAGING_TABLE,
)

logger = logging.getLogger("layoffs_pipeline.staging")

KNOWN_TABLES = (RAW_TABLE, STAGING_TABLE, CLEANED_TABLE)


def create_layoff_table(cursor, table: str, date_type: str = "TEXT", percentage_type: str = "TEXT") -> None:
    """
    Create a table with the layoffs layout if it doesn't already exist.
    """
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {table} (
            company TEXT,
            location TEXT,
            industry TEXT,
            total_laid_off INTEGER DEFAULT NULL,
            percentage_laid_off {percentage_type},
            `date` {date_type},
            stage TEXT,
            country TEXT,
            funds_raised_millions INTEGER DEFAULT NULL
        )
    """)


def _ensure_db_directory(db_file: str) -> None:
    db_dir = os.path.dirname(db_file)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)


def _check_table(table: str) -> None:
    if table not in KNOWN_TABLES:
        raise ValueError(f"Unknown table: {table}")


def _clean_cell(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() in NULL_TOKENS:
        return None
    return value


def read_raw_csv(csv_file: str) -> List[tuple]:
    """
    Read the layoffs CSV into insert-ready rows, in LAYOFF_COLUMNS order.

    Cells spelling a null ('', 'NULL', ...) become None; every other value
    is kept exactly as read.

    Raises:
        ValueError: the header is empty or lacks a layoff column
    """
    with open(csv_file, newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        header = reader.fieldnames or []
        missing_columns = [col for col in LAYOFF_COLUMNS if col not in header]
        if missing_columns:
            raise ValueError(f"{csv_file} is missing layoff columns: {missing_columns}")
        return [tuple(_clean_cell(row[col]) for col in LAYOFF_COLUMNS) for row in reader]


def ingest_raw(csv_file: str, db_file: str) -> bool:
    """
    Load the layoffs CSV into the raw table, replacing what was there.

    The whole file is read before the database is touched, so a rejected
    file leaves the previous raw table in place.

    Args:
        csv_file: Path to the CSV file
        db_file: Path to the SQLite database file

    Returns:
        True if ingestion is successful, False otherwise
    """
    try:
        rows = read_raw_csv(csv_file)
    except (OSError, ValueError) as e:
        logger.error(f"Aborting ingestion: {e}")
        return False

    conn = None
    try:
        _ensure_db_directory(db_file)
        conn = sqlite3.connect(db_file)
        cursor = conn.cursor()

        cursor.execute(f"DROP TABLE IF EXISTS {RAW_TABLE}")
        create_layoff_table(cursor, RAW_TABLE)

        placeholders = ", ".join("?" for _ in LAYOFF_COLUMNS)
        columns = ", ".join(f"`{col}`" for col in LAYOFF_COLUMNS)
        cursor.executemany(f"INSERT INTO {RAW_TABLE} ({columns}) VALUES ({placeholders})", rows)

        conn.commit()
        logger.info(f"Successfully ingested {len(rows)} records into {RAW_TABLE}.")
        return True

    except sqlite3.Error as e:
        logger.error(f"Error during raw data ingestion: {e}")
        if conn:
            conn.rollback()
        return False

    finally:
        if conn:
            conn.close()


def create_staging_table(db_file: str) -> int:
    """
    Recreate the staging table as a full copy of the raw table.

    Args:
        db_file: Path to the SQLite database file

    Returns:
        Number of records copied
    """
    conn = sqlite3.connect(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute(f"DROP TABLE IF EXISTS {STAGING_TABLE}")
        create_layoff_table(cursor, STAGING_TABLE)
        cursor.execute(f"INSERT INTO {STAGING_TABLE} SELECT * FROM {RAW_TABLE}")
        conn.commit()

        cursor.execute(f"SELECT COUNT(*) FROM {STAGING_TABLE}")
        record_count = cursor.fetchone()[0]
        logger.info(f"Copied {record_count} records from {RAW_TABLE} into {STAGING_TABLE}.")
        return record_count
    finally:
        conn.close()


def read_table(db_file: str, table: str = STAGING_TABLE) -> pd.DataFrame:
    """
    Read one of the pipeline tables into a DataFrame.

    Rows from the cleaned table come back with the types the cleaner
    produced: date values and nullable integers.
    """
    _check_table(table)
    conn = sqlite3.connect(db_file)
    try:
        df = pd.read_sql(f"SELECT * FROM {table}", conn)
    finally:
        conn.close()

    if table == CLEANED_TABLE:
        df['date'] = df['date'].map(lambda value: date.fromisoformat(value) if isinstance(value, str) else None)
        for column in ('total_laid_off', 'funds_raised_millions'):
            df[column] = df[column].astype('Int64')
        df['percentage_laid_off'] = df['percentage_laid_off'].astype('float64')
    return df


def write_cleaned(df: pd.DataFrame, db_file: str) -> int:
    """
    Replace the cleaned table with df.

    Dates are stored as ISO 'YYYY-MM-DD' text in a DATE column.

    Returns:
        Number of records written
    """
    missing_columns = [col for col in LAYOFF_COLUMNS if col not in df.columns]
    if missing_columns:
        raise KeyError(f"Cleaned data is missing columns: {missing_columns}")

    output = df[LAYOFF_COLUMNS].copy()
    output['date'] = output['date'].map(lambda value: value.isoformat() if isinstance(value, date) else None)

    _ensure_db_directory(db_file)
    conn = sqlite3.connect(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute(f"DROP TABLE IF EXISTS {CLEANED_TABLE}")
        create_layoff_table(cursor, CLEANED_TABLE, date_type="DATE", percentage_type="REAL")
        conn.commit()

        output.to_sql(CLEANED_TABLE, conn, if_exists='append', index=False)
        conn.commit()
        logger.info(f"Wrote {len(output)} records into {CLEANED_TABLE}.")
        return len(output)
    finally:
        conn.close()


def count_rows(db_file: str, tables: Optional[List[str]] = None) -> dict:
    """Row counts per table; -1 marks a table that does not exist yet."""
    tables = tables or list(KNOWN_TABLES)
    stats = {}
    conn = sqlite3.connect(db_file)
    try:
        cursor = conn.cursor()
        for table in tables:
            _check_table(table)
            try:
                cursor.execute(f"SELECT COUNT(*) FROM {table}")
                stats[table] = cursor.fetchone()[0]
            except sqlite3.OperationalError:
                stats[table] = -1
    finally:
        conn.close()
    return stats
