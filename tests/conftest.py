"""Pytest configuration and fixtures for the layoffs cleaning tests."""

import csv

import pandas as pd
import pytest

from layoffs_pipeline.config import LAYOFF_COLUMNS, PipelineConfig


def make_record(**overrides) -> dict:
    """A raw layoff row as read back from the staging table."""
    record = {
        'company': 'Foo',
        'location': 'SF Bay Area',
        'industry': 'Retail',
        'total_laid_off': 100,
        'percentage_laid_off': '0.1',
        'date': '3/15/2023',
        'stage': 'Series B',
        'country': 'United States',
        'funds_raised_millions': 250,
    }
    record.update(overrides)
    return record


def make_frame(records) -> pd.DataFrame:
    return pd.DataFrame(records, columns=LAYOFF_COLUMNS)


@pytest.fixture
def raw_layoffs() -> pd.DataFrame:
    """A small staging frame with one instance of every defect."""
    return make_frame([
        make_record(),
        make_record(),
        make_record(company='  Bar Corp ', industry='CryptoCurrency', country='United States.',
                    total_laid_off=None, percentage_laid_off='0.5', date='1/9/2023'),
        make_record(company='Baz', industry=None, total_laid_off=40, date='12/1/2022'),
        make_record(company='Baz', industry='Finance', total_laid_off=60, date='11/2/2022'),
        make_record(company='Qux', industry=' ', total_laid_off=None, percentage_laid_off=None),
        make_record(company='Zed', industry='Travel', country='Canada', funds_raised_millions=None,
                    date=None),
    ])


@pytest.fixture
def test_config(tmp_path) -> PipelineConfig:
    return PipelineConfig(
        db_path=str(tmp_path / "database" / "layoffs.db"),
        export_dir=str(tmp_path / "exports"),
        log_dir=None,
    )


@pytest.fixture
def write_csv(tmp_path):
    """Write rows to a CSV in tmp_path the way the raw export spells them."""
    def _write(rows, name="layoffs.csv", columns=None):
        path = tmp_path / name
        columns = columns or LAYOFF_COLUMNS
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            for row in rows:
                writer.writerow({col: 'NULL' if row.get(col) is None else row.get(col) for col in columns})
        return str(path)
    return _write
