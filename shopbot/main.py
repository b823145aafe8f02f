import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI

from shopbot.core.config import DATABASE_URL, ENV
from shopbot.core.database import Base, engine
from shopbot.core.logging_setup import configure_logging
from shopbot.core.startup_checks import ensure_migrations_applied, validate_environment
from shopbot.deps import get_runtime
from shopbot.middleware.observability import ObservabilityMiddleware
from shopbot.runtime import Runtime, build_runtime
import shopbot.models  # registers models before create_all

from shopbot.routers.razorpay_webhook import router as razorpay_webhook_router
from shopbot.routers.tenants import router as tenants_router
from shopbot.routers.whatsapp_webhook import router as whatsapp_webhook_router

configure_logging()

logger = logging.getLogger(__name__)
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    try:
        validate_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("[STARTUP] failed env=%s", ENV)
        raise


@asynccontextmanager
async def lifespan(application: FastAPI):
    _startup_tasks()
    if not hasattr(application.state, "runtime"):
        application.state.runtime = build_runtime()
    yield
    application.state.runtime.resolver.clear_cache()
    application.state.runtime.services.clear()


app = FastAPI(
    title="Shopbot WhatsApp Commerce API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(ObservabilityMiddleware)

# Routers
app.include_router(whatsapp_webhook_router)
app.include_router(razorpay_webhook_router)
app.include_router(tenants_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/cache")
def cache_health(runtime: Runtime = Depends(get_runtime)):
    return {
        "tenants": runtime.resolver.cache_stats(),
        "services": runtime.services.stats(),
        "conversation_locks": runtime.locks.active_keys(),
    }
