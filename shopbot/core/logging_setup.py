from __future__ import annotations

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any

from shopbot.core.request_context import current_request_id, current_tenant_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# key_secret=..., webhook_secret: ..., Authorization: Bearer ...
_CREDENTIAL_RE = re.compile(
    r"(?P<key>authorization\s*[:=]\s*bearer\s+|(?:access_token|key_secret|webhook_secret|verify_token|"
    r"signature|secret|token)[\"']?\s*[:=]\s*[\"']?)(?P<value>[^\s\"',}]+)",
    re.IGNORECASE,
)

# record attributes copied into the JSON line when present
_CONTEXT_KEYS = (
    "endpoint",
    "method",
    "status_code",
    "duration_ms",
    "phone",
    "order_id",
    "payment_link_id",
    "event",
    "integration",
    "delay_seconds",
    "consecutive_failures",
)

_NOISY_LOGGERS = {"httpx": logging.WARNING, "httpcore": logging.WARNING, "urllib3": logging.WARNING}


def redact(text: str) -> str:
    return _CREDENTIAL_RE.sub(lambda m: m.group("key") + "***", text)


def mask_phone(phone: Any) -> str:
    digits = str(phone)
    if len(digits) <= 4:
        return "****"
    return "*" * (len(digits) - 4) + digits[-4:]


class JsonFormatter(logging.Formatter):
    """One JSON object per line with request and tenant ids filled in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "request_id": getattr(record, "request_id", None) or current_request_id(),
            "tenant_id": getattr(record, "tenant_id", None) or current_tenant_id(),
            "message": redact(record.getMessage()),
        }
        for key in _CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is None:
                continue
            entry[key] = mask_phone(value) if key == "phone" else value
        if record.exc_info:
            entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    level = (level or LOG_LEVEL).upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
