import json
import logging
import sys

from shopbot.core.logging_setup import JsonFormatter, mask_phone, redact
from shopbot.core.request_context import bind_log_context, current_request_id, current_tenant_id


def _record(message, *args, **extra):
    record = logging.LogRecord("shopbot.test", logging.INFO, __file__, 1, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redact_hides_credentials():
    text = redact("razorpay key_secret=abc123 and Authorization: Bearer tok.en.value")

    assert "abc123" not in text
    assert "tok.en.value" not in text
    assert "key_secret=***" in text


def test_redact_leaves_plain_words_alone():
    assert redact("token expired for tenant") == "token expired for tenant"


def test_mask_phone_keeps_last_four_digits():
    assert mask_phone("919812345678") == "********5678"
    assert mask_phone("123") == "****"


def test_formatter_uses_bound_context():
    with bind_log_context(request_id="req-1", tenant_id="tnt_acme00000001"):
        line = JsonFormatter().format(_record("order %s paid", "ORD-1", phone="919812345678", order_id="ORD-1"))

    entry = json.loads(line)
    assert entry["message"] == "order ORD-1 paid"
    assert entry["request_id"] == "req-1"
    assert entry["tenant_id"] == "tnt_acme00000001"
    assert entry["phone"] == "********5678"
    assert entry["order_id"] == "ORD-1"
    assert "status_code" not in entry


def test_record_tenant_overrides_bound_tenant():
    with bind_log_context(tenant_id="tnt_outer"):
        entry = json.loads(JsonFormatter().format(_record("x", tenant_id="tnt_inner")))

    assert entry["tenant_id"] == "tnt_inner"


def test_formatter_includes_redacted_exception():
    try:
        raise RuntimeError("secret=hunter2")
    except RuntimeError:
        record = _record("boom")
        record.exc_info = sys.exc_info()

    entry = json.loads(JsonFormatter().format(record))
    assert "RuntimeError" in entry["exception"]
    assert "hunter2" not in entry["exception"]


def test_nested_bindings_restore_outer_values():
    with bind_log_context(request_id="outer", tenant_id="tnt_a"):
        with bind_log_context(tenant_id="tnt_b"):
            assert current_tenant_id() == "tnt_b"
            assert current_request_id() == "outer"
        assert current_tenant_id() == "tnt_a"

    assert current_tenant_id() is None
    assert current_request_id() is None
