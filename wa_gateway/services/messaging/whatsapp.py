"""
WhatsApp Business Cloud API client.

Implements the MessagingClient session contract over httpx: the session is a
pooled ``httpx.AsyncClient`` whose credentials are checked once on
``initialize``; media is uploaded to the ``/media`` endpoint and then sent by
id.
"""

from __future__ import annotations
import asyncio
import mimetypes
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from .base import (
    EventHandler,
    MessagingClient,
    MessagingError,
    SessionEvent,
    SessionState,
)


class WhatsAppCloudClient(MessagingClient):
    def __init__(
        self,
        token: str,
        phone_number_id: str,
        api_base: str = "https://graph.facebook.com/v20.0",
        on_event: Optional[EventHandler] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(on_event=on_event)
        self.token = token
        self.phone_number_id = phone_number_id
        self.api_base = api_base.rstrip("/")
        self.url = f"{self.api_base}/{phone_number_id}/messages"
        self.media_url = f"{self.api_base}/{phone_number_id}/media"
        self.headers = {"Authorization": f"Bearer {self.token}"}
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        self.state = SessionState.INITIALIZING
        self.logger.info("Initializing WhatsApp client")

        if not self.token or not self.phone_number_id:
            self.logger.error(
                "WHATSAPP_TOKEN and WHATSAPP_PHONE_NUMBER_ID must be set"
            )
            self.emit(SessionEvent.AUTH_FAILURE, reason="missing credentials")
            return

        if self._client is not None:
            await self._client.aclose()
        self._client = httpx.AsyncClient(
            headers=self.headers, timeout=self.timeout, transport=self._transport
        )
        try:
            response = await self._client.get(f"{self.api_base}/{self.phone_number_id}")
        except httpx.HTTPError as e:
            self.logger.error(f"Could not reach WhatsApp Cloud API: {e}")
            self.emit(SessionEvent.DISCONNECTED, reason=str(e))
            return

        if response.status_code != 200:
            self.logger.error(
                f"WhatsApp Cloud API rejected credentials: {response.text[:400]}"
            )
            self.emit(SessionEvent.AUTH_FAILURE, reason=f"HTTP {response.status_code}")
            return

        self.emit(
            SessionEvent.READY,
            phone_number=response.json().get("display_phone_number"),
        )

    async def destroy(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self.emit(SessionEvent.DISCONNECTED, reason="destroyed")

    async def send_text(self, chat_id: str, text: str) -> Dict[str, Any]:
        recipient_id = self._recipient(chat_id)
        data = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": recipient_id,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        self.logger.info(f"Sending message to {recipient_id}")
        result = await self._post(self.url, json=data)
        self.logger.info(f"Message sent to {recipient_id}")
        return result

    async def send_media(
        self, chat_id: str, file_path: Union[str, Path], caption: Optional[str] = None
    ) -> Dict[str, Any]:
        recipient_id = self._recipient(chat_id)
        path = Path(file_path)
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

        self.logger.info(f"Uploading {path.name} ({mime_type})")
        content = await asyncio.to_thread(path.read_bytes)
        uploaded = await self._post(
            self.media_url,
            data={"messaging_product": "whatsapp", "type": mime_type},
            files={"file": (path.name, content, mime_type)},
        )
        media_id = uploaded.get("id")
        if not media_id:
            raise MessagingError(f"Media upload returned no id: {uploaded}")

        media_type = self._detect_media_type(mime_type)
        media: Dict[str, Any] = {"id": media_id}
        if caption:
            media["caption"] = caption
        if media_type == "document":
            media["filename"] = path.name

        data = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": recipient_id,
            "type": media_type,
            media_type: media,
        }
        self.logger.info(f"Sending {media_type} to {recipient_id}")
        result = await self._post(self.url, json=data)
        self.logger.info(f"{media_type.capitalize()} sent to {recipient_id}")
        return result

    async def _post(self, url: str, **kwargs) -> Dict[str, Any]:
        if self._client is None or not self.is_ready:
            raise MessagingError(f"WhatsApp session is not ready ({self.state.value})")
        try:
            response = await self._client.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise MessagingError(f"Request to {url} failed: {e}") from e

        if response.status_code >= 300:
            raise MessagingError(
                f"WhatsApp Cloud API returned {response.status_code}: {response.text[:400]}"
            )
        return response.json()

    @staticmethod
    def _recipient(chat_id: str) -> str:
        """Strip the chat domain suffix, e.g. ``123@c.us`` -> ``123``."""
        return chat_id.split("@", 1)[0]

    @staticmethod
    def _detect_media_type(mime_type: str) -> str:
        for media_type in ("image", "video", "audio"):
            if mime_type.startswith(f"{media_type}/"):
                return media_type
        return "document"
