from pathlib import Path

import pytest
from sqlalchemy import create_engine

from shopbot.core import config as app_config
from shopbot.core import crypto
from shopbot.core.errors import ConfigurationError
from shopbot.core.startup_checks import ensure_migrations_applied, validate_environment


def test_sqlite_is_rejected_in_production(monkeypatch):
    monkeypatch.setattr(app_config, "IS_PROD", True)
    monkeypatch.setattr(app_config, "DATABASE_URL", "sqlite:///./shopbot.db")

    with pytest.raises(RuntimeError):
        validate_environment()


def test_missing_encryption_key_fails_production_startup(monkeypatch):
    monkeypatch.setattr(app_config, "IS_PROD", True)
    monkeypatch.setattr(app_config, "DATABASE_URL", "postgresql://shop:pw@db/shop")
    monkeypatch.setattr(crypto, "TENANT_ENCRYPTION_KEY", "")

    with pytest.raises(ConfigurationError):
        validate_environment()


def test_missing_encryption_key_only_warns_outside_production(monkeypatch, caplog):
    monkeypatch.setattr(app_config, "IS_PROD", False)
    monkeypatch.setattr(crypto, "TENANT_ENCRYPTION_KEY", "")

    validate_environment()

    assert "TENANT_ENCRYPTION_KEY missing or invalid" in caplog.text


def test_migration_check_is_skipped_in_tests():
    engine = create_engine("sqlite+pysqlite:///:memory:")

    ensure_migrations_applied(engine=engine, alembic_config_path=Path("does-not-exist.ini"))


def test_migration_check_requires_alembic_state(monkeypatch, tmp_path):
    monkeypatch.setattr(app_config, "IS_DEV", False)
    monkeypatch.setattr(app_config, "IS_TEST", False)
    repo_root = Path(__file__).resolve().parents[1]
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'empty.db'}")

    with pytest.raises(RuntimeError, match="no migration state"):
        ensure_migrations_applied(engine=engine, alembic_config_path=repo_root / "alembic.ini")


@pytest.mark.parametrize("setting", ["PAYMENTS_PROVIDER", "WHATSAPP_PROVIDER"])
def test_mock_providers_are_refused_in_production(monkeypatch, setting):
    monkeypatch.setattr(app_config, "IS_PROD", True)
    monkeypatch.setattr(app_config, "DATABASE_URL", "postgresql://shop:pw@db/shop")
    monkeypatch.setattr(app_config, "PAYMENTS_PROVIDER", "razorpay")
    monkeypatch.setattr(app_config, "WHATSAPP_PROVIDER", "cloud")
    monkeypatch.setattr(app_config, setting, "mock")

    with pytest.raises(ConfigurationError, match=setting):
        validate_environment()


def test_real_providers_pass_production_checks(monkeypatch):
    monkeypatch.setattr(app_config, "IS_PROD", True)
    monkeypatch.setattr(app_config, "DATABASE_URL", "postgresql://shop:pw@db/shop")
    monkeypatch.setattr(app_config, "PAYMENTS_PROVIDER", "razorpay")
    monkeypatch.setattr(app_config, "WHATSAPP_PROVIDER", "cloud")

    validate_environment()
