from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shopbot.core.config import IS_PROD, PAYMENTS_PROVIDER
from shopbot.payments.base import PaymentProvider
from shopbot.payments.mock_provider import MockPaymentProvider
from shopbot.payments.razorpay_provider import RazorpayPaymentProvider

if TYPE_CHECKING:
    from shopbot.services.tenant_resolver import TenantConfig

logger = logging.getLogger(__name__)


def build_payment_provider(config: "TenantConfig") -> PaymentProvider:
    has_keys = bool(config.razorpay_key_id and config.razorpay_key_secret)
    if not IS_PROD and (PAYMENTS_PROVIDER == "mock" or not has_keys):
        return MockPaymentProvider()
    if not has_keys:
        # link creation fails and the customer gets the retry message
        logger.error("tenant has no Razorpay credentials", extra={"tenant_id": config.tenant_id})
    return RazorpayPaymentProvider(config.razorpay_key_id, config.razorpay_key_secret)
