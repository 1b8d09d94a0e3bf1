# stdlib imports
from datetime import datetime, timezone
from enum import Enum

# third-party imports
from sqlmodel import SQLModel, Field, Index


"""
NOTE:
Every table keys its rows by the opaque session_id string the browser sends.
The users row for a session is created first (see SQLiteDataManager.create_or_get_user);
all other tables reference users.session_id, and SQLite enforces it because
db_utils switches foreign_keys on for every connection.
"""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class User(SQLModel, table=True):
    """One row per browser session, created lazily on first use."""
    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    session_id: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    last_active: datetime = Field(default_factory=utc_now)


class ChatMessage(SQLModel, table=True):
    """Append-only message log, used to build model prompts."""
    __tablename__ = "chat_messages"

    id: int | None = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="users.session_id")
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    __table_args__ = (Index("idx_chat_messages_session_ts", "session_id", "timestamp"),)


class Conversation(SQLModel, table=True):
    """One user message paired with its assistant response (a turn)."""
    __tablename__ = "conversations"

    id: int | None = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="users.session_id", index=True)
    message: str
    response: str
    timestamp: datetime = Field(default_factory=utc_now)


class FileUpload(SQLModel, table=True):
    """Metadata for a file stored under the uploads directory."""
    __tablename__ = "file_uploads"

    id: int | None = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="users.session_id", index=True)
    filename: str  # stored name on disk, also used in the public URL
    original_name: str
    file_path: str
    file_size: int
    mime_type: str
    upload_timestamp: datetime = Field(default_factory=utc_now)


class GeneratedImage(SQLModel, table=True):
    """An image produced by the fallback chain and saved to disk."""
    __tablename__ = "generated_images"

    id: int | None = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="users.session_id", index=True)
    prompt: str
    image_url: str | None = None
    image_path: str | None = None
    source: str | None = None  # chain strategy that produced the image
    generation_timestamp: datetime = Field(default_factory=utc_now)
