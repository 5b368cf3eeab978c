"""
Pipeline settings.

Paths and the S3 target come from the environment (a local .env file is
honoured through python-dotenv); the cleaning policy tables live here as
constants.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

# Define constants
DEFAULT_DB_PATH = "database/layoffs.db"
DEFAULT_EXPORT_DIR = "data/exports"
DEFAULT_LOG_DIR = "logs"
DEFAULT_AWS_REGION = "us-east-1"
DATE_FORMAT = "%m/%d/%Y"

RAW_TABLE = "layoffs"
STAGING_TABLE = "layoffs_staging"
CLEANED_TABLE = "layoffs_cleaned"

LAYOFF_COLUMNS = [
    'company', 'location', 'industry', 'total_laid_off', 'percentage_laid_off',
    'date', 'stage', 'country', 'funds_raised_millions'
]

# Columns that identify a layoff event; stage is deliberately not among them
DUPLICATE_KEY_COLUMNS = [
    'company', 'location', 'industry', 'total_laid_off', 'percentage_laid_off',
    'date', 'country', 'funds_raised_millions'
]

# Prefix -> canonical value
INDUSTRY_CANONICAL = {
    'Crypto': 'Crypto',
}
COUNTRY_CANONICAL = {
    'United States': 'United States',
}

# Spellings of "missing" found in raw exports of the dataset
NULL_TOKENS = {'', 'NULL', 'null', 'None', 'NaN', 'nan'}


@dataclass
class PipelineConfig:
    """Runtime settings for one pipeline run."""
    db_path: str = DEFAULT_DB_PATH
    export_dir: str = DEFAULT_EXPORT_DIR
    log_dir: Optional[str] = DEFAULT_LOG_DIR
    s3_bucket: Optional[str] = None
    aws_region: str = DEFAULT_AWS_REGION
    date_format: str = DATE_FORMAT
    industry_canonical: Dict[str, str] = field(default_factory=lambda: dict(INDUSTRY_CANONICAL))
    country_canonical: Dict[str, str] = field(default_factory=lambda: dict(COUNTRY_CANONICAL))
    duplicate_keys: List[str] = field(default_factory=lambda: list(DUPLICATE_KEY_COLUMNS))


def load_config(env_file: Optional[str] = None, **overrides) -> PipelineConfig:
    """
    Build a PipelineConfig from environment variables.

    Args:
        env_file: Optional path to a .env file (default: search from the cwd)
        **overrides: Explicit values that win over the environment; None is ignored

    Returns:
        PipelineConfig instance
    """
    load_dotenv(env_file)

    values = {
        'db_path': os.environ.get("LAYOFFS_DB_PATH", DEFAULT_DB_PATH),
        'export_dir': os.environ.get("LAYOFFS_EXPORT_DIR", DEFAULT_EXPORT_DIR),
        'log_dir': os.environ.get("LAYOFFS_LOG_DIR", DEFAULT_LOG_DIR) or None,
        's3_bucket': os.environ.get("LAYOFFS_S3_BUCKET") or None,
        'aws_region': os.environ.get("AWS_REGION", DEFAULT_AWS_REGION),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return PipelineConfig(**values)
