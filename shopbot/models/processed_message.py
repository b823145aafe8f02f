from sqlalchemy import Column, DateTime, String, func

from shopbot.core.database import Base


class ProcessedMessage(Base):
    """WhatsApp message ids already handled; Meta redelivers on slow acks."""

    __tablename__ = "processed_messages"

    # wamid values are globally unique across phone numbers
    message_id = Column(String(128), primary_key=True)
    tenant_id = Column(String(32), index=True, nullable=False)
    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
