"""
Messaging clients used by the gateway.

The gateway only depends on the ``MessagingClient`` interface; the
WhatsApp Cloud API client is the production implementation.
"""

from wa_gateway.services.messaging.base import (
    MessagingClient,
    MessagingError,
    SessionEvent,
    SessionState,
)
from wa_gateway.services.messaging.whatsapp import WhatsAppCloudClient

__all__ = [
    "MessagingClient",
    "MessagingError",
    "SessionEvent",
    "SessionState",
    "WhatsAppCloudClient",
]
