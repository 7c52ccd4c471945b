from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from wa_gateway.logging import setup_logger


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class SessionEvent(str, Enum):
    READY = "ready"
    AUTH_FAILURE = "auth_failure"
    DISCONNECTED = "disconnected"


EventHandler = Callable[[SessionEvent, Dict[str, Any]], None]


class MessagingError(Exception):
    """Raised by messaging clients when the platform rejects or drops a send."""


class MessagingClient(ABC):
    """
    Base class for messaging clients.

    A client owns its session with the messaging network. ``initialize``
    opens the session and announces readiness through the event handler
    given at construction; ``destroy`` tears it down.
    """

    def __init__(self, on_event: Optional[EventHandler] = None):
        self.logger = setup_logger(self.__class__.__module__)
        self.state = SessionState.DISCONNECTED
        self._on_event = on_event

    def emit(self, event: SessionEvent, **payload: Any) -> None:
        if event == SessionEvent.READY:
            self.state = SessionState.READY
        elif event == SessionEvent.AUTH_FAILURE:
            self.state = SessionState.FAILED
        elif event == SessionEvent.DISCONNECTED:
            self.state = SessionState.DISCONNECTED

        if self._on_event is None:
            return
        try:
            self._on_event(event, payload)
        except Exception as e:
            self.logger.error(f"Session event handler failed for {event.value}: {e}")

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY

    @abstractmethod
    async def initialize(self) -> None:
        """Open the session. Readiness is signalled with SessionEvent.READY."""

    @abstractmethod
    async def destroy(self) -> None:
        """Close the session and release transport resources."""

    @abstractmethod
    async def send_text(self, chat_id: str, text: str) -> Dict[str, Any]:
        """
        Send a text message.

        Args:
            chat_id: Recipient chat identifier (number plus domain suffix)
            text: Message body

        Returns:
            Response data from the messaging platform
        """

    @abstractmethod
    async def send_media(
        self, chat_id: str, file_path: Union[str, Path], caption: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send a local file as a media message.

        Args:
            chat_id: Recipient chat identifier
            file_path: Path of the file to upload
            caption: Optional caption shown with the media

        Returns:
            Response data from the messaging platform
        """
