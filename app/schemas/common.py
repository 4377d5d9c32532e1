from typing import Any

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Envelope every listing endpoint returns; check ``success`` before reading ``data``."""
    success: bool
    data: Any | None = None
    error: str | None = None
    message: str | None = None
