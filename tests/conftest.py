import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from wa_gateway.config import Settings
from wa_gateway.context import AppContext
from wa_gateway.main import create_app
from wa_gateway.services.messaging import MessagingClient, SessionEvent
from wa_gateway.uploads import UploadStaging


class StubMessagingClient(MessagingClient):
    """Records every send; optionally fails the Nth media send or stalls."""

    def __init__(self, fail_media_on=None, fail_text=False, delay=0.0):
        super().__init__()
        self.fail_media_on = fail_media_on
        self.fail_text = fail_text
        self.delay = delay
        self.text_calls = []
        self.media_calls = []
        self.destroyed = False

    async def initialize(self):
        self.emit(SessionEvent.READY)

    async def destroy(self):
        self.destroyed = True
        self.emit(SessionEvent.DISCONNECTED)

    async def send_text(self, chat_id, text):
        self.text_calls.append((chat_id, text))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_text:
            raise RuntimeError("session crashed: internal-detail")
        return {"id": "text-1"}

    async def send_media(self, chat_id, file_path, caption=None):
        path = Path(file_path)
        self.media_calls.append(
            {
                "chat_id": chat_id,
                "path": path,
                "caption": caption,
                "existed": path.exists(),
                "content": path.read_bytes() if path.exists() else None,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_media_on == len(self.media_calls):
            raise RuntimeError("media upload crashed: internal-detail")
        return {"id": f"media-{len(self.media_calls)}"}


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def make_client(upload_dir):
    """Build a TestClient around a stub messaging client and custom settings."""
    clients = []

    def _make(stub=None, **overrides):
        values = {
            "UPLOAD_DIR": str(upload_dir),
            "SEND_TIMEOUT": 5.0,
            "SHUTDOWN_TIMEOUT": 1.0,
        }
        values.update(overrides)
        settings = Settings(**values)
        stub = stub or StubMessagingClient()
        context = AppContext(
            settings=settings,
            client=stub,
            staging=UploadStaging(
                upload_dir=settings.UPLOAD_DIR,
                max_file_size=settings.MAX_FILE_SIZE,
                max_field_size=settings.MAX_FIELD_SIZE,
                field_name=settings.UPLOAD_FIELD_NAME,
            ),
        )
        test_client = TestClient(create_app(context))
        test_client.__enter__()
        clients.append(test_client)
        return test_client, stub

    yield _make

    for test_client in clients:
        test_client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    """Test client backed by a stub that always succeeds"""
    test_client, _ = make_client()
    return test_client


@pytest.fixture
def image_parts():
    """Factory for `count` distinct JPEG parts under the `file[]` field"""

    def _parts(count, size=128):
        return [
            ("file[]", (f"photo{i}.jpg", bytes([i]) * size, "image/jpeg"))
            for i in range(1, count + 1)
        ]

    return _parts
