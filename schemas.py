"""
Request bodies for the JSON endpoints.

Field names follow the browser client (camelCase). Required fields are
optional here so the handlers can answer with a descriptive 400 instead
of a generic validation error.
"""
from pydantic import BaseModel

from constants import DEFAULT_SESSION_ID


class ChatRequest(BaseModel):
    message: str | None = None
    sessionId: str = DEFAULT_SESSION_ID
    fileUrl: str | None = None
    generateImage: bool = False


class ClearRequest(BaseModel):
    sessionId: str = DEFAULT_SESSION_ID
