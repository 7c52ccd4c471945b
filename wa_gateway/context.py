from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request

from wa_gateway.config import Settings, get_settings
from wa_gateway.logging import setup_logger
from wa_gateway.services.messaging import (
    MessagingClient,
    SessionEvent,
    WhatsAppCloudClient,
)
from wa_gateway.uploads import UploadStaging

logger = setup_logger(__name__)


@dataclass
class AppContext:
    """Process-wide collaborators, built once at startup and shared by handlers."""

    settings: Settings
    client: MessagingClient
    staging: UploadStaging
    server: Optional[Any] = None

    def chat_id(self, number: str) -> str:
        return f"{number}{self.settings.CHAT_ID_SUFFIX}"

    def listener_state(self) -> str:
        """State of the HTTP listener, or ``detached`` when not served by uvicorn."""
        if self.server is None:
            return "detached"
        if self.server.should_exit:
            return "stopping"
        if self.server.started:
            return "running"
        return "starting"


def log_session_event(event: SessionEvent, payload: Dict[str, Any]) -> None:
    if event == SessionEvent.READY:
        logger.info("WhatsApp client ready")
    elif event == SessionEvent.AUTH_FAILURE:
        logger.error(f"WhatsApp client authentication failed: {payload.get('reason')}")
    elif event == SessionEvent.DISCONNECTED:
        logger.info(f"WhatsApp client disconnected: {payload.get('reason')}")


def build_context(settings: Optional[Settings] = None) -> AppContext:
    settings = settings or get_settings()
    client = WhatsAppCloudClient(
        token=settings.WHATSAPP_TOKEN,
        phone_number_id=settings.WHATSAPP_PHONE_NUMBER_ID,
        api_base=settings.WHATSAPP_API_BASE,
        on_event=log_session_event,
        timeout=settings.SEND_TIMEOUT,
    )
    staging = UploadStaging(
        upload_dir=settings.UPLOAD_DIR,
        max_file_size=settings.MAX_FILE_SIZE,
        max_field_size=settings.MAX_FIELD_SIZE,
        field_name=settings.UPLOAD_FIELD_NAME,
    )
    return AppContext(settings=settings, client=client, staging=staging)


def get_context(request: Request) -> AppContext:
    return request.app.state.context
