import os

import pandas as pd
import pytest
import boto3
from botocore.exceptions import NoRegionError
from moto import mock_aws

from conftest import make_record
from layoffs_pipeline import staging
from layoffs_pipeline.cleaning import ParseError
from layoffs_pipeline.config import CLEANED_TABLE, RAW_TABLE, STAGING_TABLE
from layoffs_pipeline.run_pipeline import (
    IngestionError,
    LayoffsPipeline,
    main,
    upload_file_to_s3,
)

RAW_ROWS = [
    make_record(),
    make_record(),
    make_record(company='  Bar Corp ', industry='CryptoCurrency', country='United States.',
                total_laid_off=None, percentage_laid_off='0.5', date='1/9/2023'),
    make_record(company='Baz', industry='', total_laid_off=40, date='12/1/2022'),
    make_record(company='Baz', industry='Finance', total_laid_off=60, date='11/2/2022'),
    make_record(company='Qux', industry=' ', total_laid_off=None, percentage_laid_off=None),
    make_record(company='Zed', industry='Travel', country='Canada', funds_raised_millions=None, date=None),
]


@pytest.fixture
def raw_csv(write_csv):
    return write_csv(RAW_ROWS)


@pytest.fixture
def isolated_env(monkeypatch):
    monkeypatch.setenv("LAYOFFS_LOG_DIR", "")
    monkeypatch.delenv("LAYOFFS_S3_BUCKET", raising=False)


def test_run_end_to_end(test_config, raw_csv):
    pipeline = LayoffsPipeline(test_config)

    result = pipeline.run(csv_file=raw_csv)

    assert result['staged_count'] == 7
    assert result['cleaned_count'] == 5
    assert result['diagnostics'] == {'duplicates': 1, 'blank_industry': 2, 'unrecoverable': 1}
    assert result['uploaded'] is False

    exported = pd.read_parquet(result['export_file'])
    assert len(exported) == 5
    assert set(exported['country']) == {'United States', 'Canada'}

    cleaned = staging.read_table(test_config.db_path, CLEANED_TABLE)
    assert list(cleaned['company']) == ['Foo', 'Bar Corp', 'Baz', 'Baz', 'Zed']
    assert list(cleaned.loc[cleaned['company'] == 'Baz', 'industry']) == ['Finance', 'Finance']

    assert pipeline.get_table_stats() == {RAW_TABLE: 7, STAGING_TABLE: 7, CLEANED_TABLE: 5}


def test_rerun_without_csv_reuses_raw_table(test_config, raw_csv):
    pipeline = LayoffsPipeline(test_config)
    first = pipeline.run(csv_file=raw_csv)

    second = pipeline.run()

    assert second['cleaned_count'] == first['cleaned_count']


def test_parse_error_reaches_caller(test_config, write_csv):
    csv_file = write_csv([make_record(), make_record(company='Bad', date='15/15/2023')])
    pipeline = LayoffsPipeline(test_config)

    with pytest.raises(ParseError) as excinfo:
        pipeline.run(csv_file=csv_file)

    assert excinfo.value.value == '15/15/2023'
    assert pipeline.get_table_stats()[CLEANED_TABLE] == -1


def test_bad_csv_raises_ingestion_error(test_config, write_csv):
    csv_file = write_csv([{'company': 'Foo'}], columns=['company'])

    with pytest.raises(IngestionError):
        LayoffsPipeline(test_config).run(csv_file=csv_file)


def test_export_skipped_for_empty_table(test_config, write_csv):
    csv_file = write_csv([make_record(total_laid_off=None, percentage_laid_off=None)])

    result = LayoffsPipeline(test_config).run(csv_file=csv_file)

    assert result['cleaned_count'] == 0
    assert result['export_file'] is None


@pytest.fixture
def s3(monkeypatch):
    """In-memory S3 with fake credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    with mock_aws():
        yield boto3.client("s3", region_name="us-east-1")


def test_upload_when_bucket_configured(test_config, raw_csv, s3):
    s3.create_bucket(Bucket="layoffs-cleaned")
    test_config.s3_bucket = "layoffs-cleaned"

    result = LayoffsPipeline(test_config).run(csv_file=raw_csv)

    assert result['uploaded'] is True
    listing = s3.list_objects_v2(Bucket="layoffs-cleaned")
    assert [obj['Key'] for obj in listing['Contents']] == [os.path.basename(result['export_file'])]


def test_upload_skipped_when_disabled(test_config, raw_csv, mocker):
    client = mocker.patch("layoffs_pipeline.run_pipeline.boto3.client")
    test_config.s3_bucket = "layoffs-cleaned"

    result = LayoffsPipeline(test_config).run(csv_file=raw_csv, upload=False)

    assert result['uploaded'] is False
    client.assert_not_called()


def test_upload_to_missing_bucket_is_reported(tmp_path, s3):
    local_file = tmp_path / "export.parquet"
    local_file.write_bytes(b"data")

    assert upload_file_to_s3(str(local_file), "no-such-bucket", "export.parquet", "us-east-1") is False


def test_run_survives_failed_upload(test_config, raw_csv, s3):
    test_config.s3_bucket = "no-such-bucket"

    result = LayoffsPipeline(test_config).run(csv_file=raw_csv)

    assert result['uploaded'] is False
    assert result['cleaned_count'] == 5
    assert os.path.exists(result['export_file'])


def test_client_construction_failure_is_reported(tmp_path, mocker):
    mocker.patch("layoffs_pipeline.run_pipeline.boto3.client", side_effect=NoRegionError())
    local_file = tmp_path / "export.parquet"
    local_file.write_bytes(b"data")

    assert upload_file_to_s3(str(local_file), "bucket", "export.parquet") is False


def test_main(tmp_path, raw_csv, isolated_env, capsys):
    exit_code = main([
        '--csv', raw_csv,
        '--db', str(tmp_path / "cli.db"),
        '--export-dir', str(tmp_path / "cli_exports"),
    ])

    assert exit_code == 0
    assert "Cleaned records: 5" in capsys.readouterr().out
    assert os.listdir(tmp_path / "cli_exports")


def test_main_reports_parse_error(tmp_path, write_csv, isolated_env):
    csv_file = write_csv([make_record(total_laid_off='lots')])

    exit_code = main(['--csv', csv_file, '--db', str(tmp_path / "cli.db"), '--no-upload'])

    assert exit_code == 1
