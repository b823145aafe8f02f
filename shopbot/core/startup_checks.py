from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from shopbot.core import config as app_config
from shopbot.core.crypto import load_encryption_key
from shopbot.core.errors import ConfigurationError

logger = logging.getLogger("shopbot.startup")


def validate_environment() -> None:
    """Refuse to boot production with settings that would lose data or secrets."""
    if app_config.IS_PROD and app_config.DATABASE_URL.startswith("sqlite"):
        logger.critical("sqlite database configured in production")
        raise RuntimeError("SQLite is forbidden in production environment")

    try:
        load_encryption_key()
    except ConfigurationError:
        if app_config.IS_PROD:
            logger.critical("TENANT_ENCRYPTION_KEY missing or invalid")
            raise
        logger.warning("TENANT_ENCRYPTION_KEY missing or invalid; stored tenant credentials are unreadable")

    providers = {"PAYMENTS_PROVIDER": app_config.PAYMENTS_PROVIDER, "WHATSAPP_PROVIDER": app_config.WHATSAPP_PROVIDER}
    mocked = sorted(name for name, value in providers.items() if value == "mock")
    if app_config.IS_PROD and mocked:
        logger.critical("mock providers configured in production: %s", mocked)
        raise ConfigurationError(" and ".join(mocked) + " cannot be mock in production")

    if not app_config.RAZORPAY_WEBHOOK_SECRET:
        logger.warning("RAZORPAY_WEBHOOK_SECRET not set; webhooks verify against tenant secrets only")


def _expected_heads(alembic_config_path: Path) -> set[str]:
    script = ScriptDirectory.from_config(Config(str(alembic_config_path)))
    return set(script.get_heads())


def _applied_revisions(engine: Engine) -> set[str] | None:
    with engine.connect() as connection:
        if not inspect(connection).has_table("alembic_version"):
            return None
        rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()
    return {row[0] for row in rows if row[0]}


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    if app_config.IS_DEV or app_config.IS_TEST:
        logger.info("migration check skipped env=%s", app_config.ENV_NORMALIZED)
        return

    if not alembic_config_path.exists():
        logger.critical("alembic config missing at %s", alembic_config_path)
        raise RuntimeError("alembic config not found")

    applied = _applied_revisions(engine)
    if applied is None:
        logger.critical("alembic_version table missing; run `alembic upgrade head`")
        raise RuntimeError("Database has no migration state")

    expected = _expected_heads(alembic_config_path)
    if applied != expected:
        logger.critical("database at %s, code expects %s", sorted(applied), sorted(expected))
        raise RuntimeError("Pending migrations detected")

    logger.info("database schema at head %s", ",".join(sorted(expected)))
