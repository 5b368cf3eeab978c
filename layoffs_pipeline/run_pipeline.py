#!/usr/bin/env python3
"""
Layoffs cleaning pipeline.

Loads the raw layoffs CSV into SQLite, copies it to a staging table, cleans
the staging copy (deduplicate, standardize, reconcile nulls) and writes the
result to the cleaned table. The cleaned table is exported to Parquet and,
when an S3 bucket is configured, uploaded.
"""
import os
import sys
import sqlite3
import logging
import argparse
from datetime import datetime
from typing import Dict, Optional, Any

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from layoffs_pipeline import staging
from layoffs_pipeline.cleaning import (
    ParseError,
    clean_layoffs,
    find_blank_industries,
    find_duplicates,
    find_unrecoverable,
)
from layoffs_pipeline.config import CLEANED_TABLE, PipelineConfig, load_config
from utils.logger import setup_logger

logger = logging.getLogger("layoffs_pipeline.run_pipeline")


class IngestionError(RuntimeError):
    """The raw CSV could not be loaded."""


def upload_file_to_s3(local_file: str, bucket: str, s3_key: str, region: Optional[str] = None) -> bool:
    """
    Upload a local file to S3.

    Credentials are resolved by boto3 from the environment.

    Returns:
        True if the upload succeeded, False otherwise
    """
    try:
        s3_client = boto3.client('s3', region_name=region)
        s3_client.upload_file(local_file, bucket, s3_key)
        logger.info(f"Uploaded {local_file} to s3://{bucket}/{s3_key}")
        return True
    except (S3UploadFailedError, ClientError, BotoCoreError) as e:
        logger.error(f"Failed to upload {local_file} to s3://{bucket}/{s3_key}: {e}")
        return False


class LayoffsPipeline:
    """Stages, cleans and exports the layoffs dataset in one SQLite file."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        self.db_path = self.config.db_path

    def log_diagnostics(self, df) -> Dict[str, int]:
        """
        Log what the cleaner is about to fix.

        Returns:
            Counts of duplicate, blank-industry and unrecoverable records
        """
        diagnostics = {
            'duplicates': len(find_duplicates(df, self.config.duplicate_keys)),
            'blank_industry': len(find_blank_industries(df)),
            'unrecoverable': len(find_unrecoverable(df)),
        }
        logger.info(
            f"Staging diagnostics: {diagnostics['duplicates']} duplicates, "
            f"{diagnostics['blank_industry']} blank industries, "
            f"{diagnostics['unrecoverable']} records without layoff figures"
        )
        return diagnostics

    def export_cleaned(self, output_dir: Optional[str] = None) -> Optional[str]:
        """
        Export the cleaned table to a timestamped Parquet file.

        Args:
            output_dir: Directory to save the exported file (default: config.export_dir)

        Returns:
            Path to the exported file, or None if there was nothing to export
        """
        output_dir = output_dir or self.config.export_dir
        os.makedirs(output_dir, exist_ok=True)

        df = staging.read_table(self.db_path, CLEANED_TABLE)
        if df.empty:
            logger.warning(f"Table '{CLEANED_TABLE}' is empty. No data to export.")
            return None

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        output_file = os.path.join(output_dir, f"{CLEANED_TABLE}_{timestamp}.parquet")
        df.to_parquet(output_file, index=False)
        logger.info(f"Exported {len(df)} records from '{CLEANED_TABLE}' to {output_file}")
        return output_file

    def get_table_stats(self) -> Dict[str, int]:
        return staging.count_rows(self.db_path)

    def run(self, csv_file: Optional[str] = None, upload: bool = True) -> Dict[str, Any]:
        """
        Run the full pipeline.

        Args:
            csv_file: Raw CSV to (re)load; None reuses the raw table already in the database
            upload: Upload the export when an S3 bucket is configured

        Returns:
            Row counts, diagnostics and the export path

        Raises:
            IngestionError: the CSV could not be loaded
            ParseError: a date or numeric value in the data is malformed
        """
        logger.info("Starting layoffs cleaning pipeline...")

        if csv_file:
            if not staging.ingest_raw(csv_file, self.db_path):
                raise IngestionError(f"Could not ingest {csv_file}")

        staged_count = staging.create_staging_table(self.db_path)
        staged = staging.read_table(self.db_path)
        diagnostics = self.log_diagnostics(staged)

        try:
            cleaned = clean_layoffs(staged, self.config)
        except ParseError as e:
            logger.error(f"Cleaning failed: {e}")
            raise

        cleaned_count = staging.write_cleaned(cleaned, self.db_path)
        export_file = self.export_cleaned()

        uploaded = False
        if upload and export_file and self.config.s3_bucket:
            uploaded = upload_file_to_s3(
                export_file, self.config.s3_bucket, os.path.basename(export_file), self.config.aws_region
            )

        logger.info(f"Pipeline completed: {staged_count} records staged, {cleaned_count} records cleaned")
        return {
            'staged_count': staged_count,
            'cleaned_count': cleaned_count,
            'diagnostics': diagnostics,
            'export_file': export_file,
            'uploaded': uploaded,
        }


def main(argv=None) -> int:
    """Command-line entry point for the pipeline."""
    parser = argparse.ArgumentParser(description='Clean the layoffs dataset')
    parser.add_argument('--csv', type=str, help='Path to the raw layoffs CSV')
    parser.add_argument('--db', type=str, help='Path to SQLite database')
    parser.add_argument('--export-dir', type=str, help='Directory for exported files')
    parser.add_argument('--no-upload', action='store_true', help='Skip the S3 upload')
    parser.add_argument('--log-level', type=str, default='INFO', help='Logging level')

    args = parser.parse_args(argv)

    config = load_config(db_path=args.db, export_dir=args.export_dir)
    setup_logger("layoffs_pipeline", log_file="layoffs_pipeline.log", level=args.log_level, log_dir=config.log_dir)

    pipeline = LayoffsPipeline(config)
    try:
        result = pipeline.run(csv_file=args.csv, upload=not args.no_upload)
    except (IngestionError, ParseError, sqlite3.Error) as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    print("Pipeline execution completed:")
    print(f"Staged records: {result['staged_count']}")
    print(f"Cleaned records: {result['cleaned_count']}")
    print(f"Cleaned export: {result['export_file']}")

    stats = pipeline.get_table_stats()
    print("\nTable statistics:")
    for table, count in stats.items():
        print(f"{table}: {count} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
