from shopbot.models.conversation import Conversation
from shopbot.models.order import Order
from shopbot.models.processed_message import ProcessedMessage
from shopbot.models.tenant import Tenant

__all__ = ["Conversation", "Order", "ProcessedMessage", "Tenant"]
