import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB

from shopbot.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(40), unique=True, index=True, nullable=False)

    tenant_id = Column(String(32), index=True, nullable=False)
    phone_number = Column(String(30), index=True, nullable=False)
    customer_name = Column(String(120), nullable=True)

    # immutable snapshot of cart and address
    items = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=False)
    total_minor_units = Column(Integer, nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    shipping_address = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=False)

    # payment link ids are unique across all tenants; webhooks carry no tenant
    payment_link_id = Column(String(64), unique=True, index=True, nullable=True)
    payment_link_url = Column(Text, nullable=True)
    payment_id = Column(String(64), nullable=True)
    payment_status = Column(String(20), default="PENDING", nullable=False)
    payment_method = Column(String(30), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), default="PENDING", nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
