import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB

from shopbot.core.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(32), unique=True, index=True, nullable=False)

    business_name = Column(String(160), nullable=False)
    business_phone = Column(String(30), nullable=False)
    business_email = Column(String(255), nullable=True)

    # WhatsApp Cloud (access_token encrypted)
    phone_number_id = Column(String(64), unique=True, index=True, nullable=False)
    business_account_id = Column(String(64), nullable=True)
    access_token = Column(String, nullable=False)
    verify_token = Column(String(255), nullable=True)
    catalog_id = Column(String(64), nullable=True)
    api_version = Column(String(16), default="v18.0", nullable=False)

    # Razorpay (all encrypted)
    razorpay_key_id = Column(String, nullable=False)
    razorpay_key_secret = Column(String, nullable=False)
    razorpay_webhook_secret = Column(String, nullable=True)

    sms_config = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    settings = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=False, default=dict)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
