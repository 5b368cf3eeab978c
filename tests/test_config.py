import logging

from layoffs_pipeline.config import (
    COUNTRY_CANONICAL,
    DEFAULT_DB_PATH,
    INDUSTRY_CANONICAL,
    PipelineConfig,
    load_config,
)
from utils.logger import setup_logger


def test_defaults():
    config = PipelineConfig()

    assert config.db_path == DEFAULT_DB_PATH
    assert config.s3_bucket is None
    assert config.date_format == "%m/%d/%Y"
    assert config.industry_canonical == {'Crypto': 'Crypto'}
    assert config.country_canonical == {'United States': 'United States'}


def test_policy_tables_are_per_instance():
    config = PipelineConfig()
    config.industry_canonical['Fin'] = 'Finance'

    assert 'Fin' not in INDUSTRY_CANONICAL
    assert PipelineConfig().country_canonical == COUNTRY_CANONICAL


def test_load_config_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("LAYOFFS_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("LAYOFFS_S3_BUCKET", "cleaned-bucket")
    monkeypatch.setenv("LAYOFFS_LOG_DIR", "")

    config = load_config()

    assert config.db_path == str(tmp_path / "env.db")
    assert config.s3_bucket == "cleaned-bucket"
    assert config.log_dir is None


def test_load_config_reads_env_file(monkeypatch, tmp_path):
    # registered first so teardown removes what load_dotenv sets
    monkeypatch.setenv("LAYOFFS_EXPORT_DIR", "unset")
    monkeypatch.delenv("LAYOFFS_EXPORT_DIR")
    env_file = tmp_path / ".env"
    env_file.write_text("LAYOFFS_EXPORT_DIR=/tmp/from-dotenv\n")

    config = load_config(str(env_file))

    assert config.export_dir == "/tmp/from-dotenv"


def test_overrides_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("LAYOFFS_DB_PATH", "env.db")
    monkeypatch.setenv("LAYOFFS_EXPORT_DIR", "env_exports")

    config = load_config(db_path="cli.db", export_dir=None)

    assert config.db_path == "cli.db"
    assert config.export_dir == "env_exports"


def test_setup_logger_does_not_duplicate_handlers(tmp_path):
    setup_logger("layoffs_test", log_dir=str(tmp_path))
    logger = setup_logger("layoffs_test", log_dir=str(tmp_path), level="DEBUG")

    assert len(logger.handlers) == 2
    assert logger.level == logging.DEBUG
    assert (tmp_path / "layoffs_test.log").exists()


def test_setup_logger_console_only():
    logger = setup_logger("layoffs_console_test", log_dir=None)

    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
