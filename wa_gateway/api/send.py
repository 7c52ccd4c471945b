import asyncio
from typing import Awaitable, Optional, TypeVar

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ValidationError

from wa_gateway.context import AppContext, get_context
from wa_gateway.errors import InvalidRequest, SendFailure, SendTimeout
from wa_gateway.logging import log_exception, setup_logger
from wa_gateway.responses import resp

logger = setup_logger(__name__)

router = APIRouter(tags=["Messaging"])

T = TypeVar("T")


class SendTextRequest(BaseModel):
    number: Optional[str] = None
    message: Optional[str] = None

    class Config:
        coerce_numbers_to_str = True


async def forward(call: Awaitable[T], timeout: float) -> T:
    """Await a messaging client call, cancelling it after ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise SendTimeout(f"Messaging client did not answer within {timeout}s") from e


@router.get("/", tags=["root"])
async def root(context: AppContext = Depends(get_context)):
    return resp(
        status.HTTP_200_OK,
        "ok",
        {
            "status": "ok",
            "session": context.client.state.value,
            "listener": context.listener_state(),
        },
    )


@router.post("/send")
async def send_text(request: Request, context: AppContext = Depends(get_context)):
    """Send a text message: JSON body ``{number, message}``."""
    try:
        body = await request.json()
        payload = SendTextRequest.model_validate(body)
    except (ValueError, ValidationError):
        payload = SendTextRequest()

    number = (payload.number or "").strip()
    if not number or not payload.message or not payload.message.strip():
        raise InvalidRequest("Missing or empty fields (number, message)")

    chat_id = context.chat_id(number)
    try:
        await forward(
            context.client.send_text(chat_id, payload.message),
            context.settings.SEND_TIMEOUT,
        )
    except Exception as e:
        log_exception(logger, f"Failed to send message to {chat_id}", e)
        raise SendFailure("Failed to send message") from e

    return resp(status.HTTP_200_OK, "Sent message successfully")


@router.post("/send-images")
async def send_images(request: Request, context: AppContext = Depends(get_context)):
    """
    Forward uploaded images: multipart form with ``number``, optional
    ``caption`` and one or more ``file[]`` parts.

    Images are sent one at a time. The first failure aborts the batch and
    the remaining staged files are discarded unsent.
    """
    staging = context.staging
    upload = await staging.stage(request.headers.get("content-type"), request.stream())
    files = upload.files

    number = upload.fields.get("number", "").strip()
    if not number:
        staging.release_all(files)
        raise InvalidRequest("Missing field: number")
    if not files:
        raise InvalidRequest("No images uploaded")

    caption = upload.fields.get("caption") or None
    chat_id = context.chat_id(number)
    sent = 0
    try:
        for staged in files:
            try:
                await forward(
                    context.client.send_media(chat_id, staged.stored_path, caption),
                    context.settings.SEND_TIMEOUT,
                )
            finally:
                staging.release(staged)
            sent += 1
    except Exception as e:
        log_exception(
            logger, f"Failed to send images to {chat_id} ({sent}/{len(files)} sent)", e
        )
        raise SendFailure("Failed to send images") from e
    finally:
        staging.release_all(files[sent:])

    logger.info(f"Sent {sent} image(s) to {chat_id}")
    return resp(status.HTTP_200_OK, f"Sent {sent} image(s) successfully", {"count": sent})
