import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB

from shopbot.core.database import Base


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("tenant_id", "phone_number", name="uq_conversations_tenant_phone"),)

    id = Column(Integer, primary_key=True)

    tenant_id = Column(String(32), index=True, nullable=False)
    phone_number = Column(String(30), index=True, nullable=False)
    customer_name = Column(String(120), nullable=True)

    state = Column(String(32), default="NEW", nullable=False)

    # {catalog_id, items: [{product_id, quantity, unit_price_minor}], total_in_minor_units}
    cart = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    address = Column(Text, nullable=True)
    # {text, source, location: {latitude, longitude}}
    pending_address = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)

    order_id = Column(String(40), nullable=True)
    payment_link_id = Column(String(64), index=True, nullable=True)
    payment_link_url = Column(Text, nullable=True)

    last_message_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
