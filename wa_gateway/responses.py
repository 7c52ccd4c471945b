from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ResponseEnvelope(BaseModel):
    """Uniform body shared by every response the gateway returns."""

    success: bool
    message: str
    data: Dict[str, Any] = {}

    @classmethod
    def from_status(
        cls, code: int, message: str, data: Optional[Dict[str, Any]] = None
    ) -> "ResponseEnvelope":
        return cls(success=200 <= code <= 299, message=message, data=data or {})


def resp(code: int, message: str, data: Optional[Dict[str, Any]] = None) -> JSONResponse:
    """
    Render a ``{success, message, data}`` JSON response with status ``code``.

    ``success`` is derived from the status code alone.
    """
    envelope = ResponseEnvelope.from_status(code, message, data)
    return JSONResponse(content=envelope.model_dump(), status_code=code)
