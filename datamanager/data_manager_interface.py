from abc import ABC, abstractmethod

from models import ChatMessage, Conversation, FileUpload, GeneratedImage, User


class StorageError(Exception):
    """Raised when a store operation fails; the engine error is chained."""


class DataManagerInterface(ABC):

    @abstractmethod
    async def create_or_get_user(self, session_id: str) -> User:
        pass

    @abstractmethod
    async def get_user(self, session_id: str) -> User | None:
        pass

    @abstractmethod
    async def save_chat_message(self, session_id: str, role: str, content: str) -> ChatMessage:
        pass

    @abstractmethod
    async def save_conversation(self, session_id: str, user_message: str, bot_response: str) -> Conversation:
        pass

    @abstractmethod
    async def save_exchange(self, session_id: str, user_message: str, bot_response: str) -> Conversation:
        pass

    @abstractmethod
    async def get_conversation_history(self, session_id: str, limit: int = 20) -> list[ChatMessage]:
        pass

    @abstractmethod
    async def get_session_conversations(self, session_id: str) -> list[Conversation]:
        pass

    @abstractmethod
    async def clear_session_history(self, session_id: str) -> int:
        pass

    @abstractmethod
    async def get_chat_stats(self) -> dict:
        pass

    @abstractmethod
    async def save_file_upload(
        self,
        session_id: str,
        filename: str,
        original_name: str,
        file_path: str,
        file_size: int,
        mime_type: str,
    ) -> FileUpload:
        pass

    @abstractmethod
    async def get_file_upload(self, session_id: str, filename: str) -> FileUpload | None:
        pass

    @abstractmethod
    async def save_generated_image(
        self,
        session_id: str,
        prompt: str,
        image_path: str | None,
        image_url: str | None = None,
        source: str | None = None,
    ) -> GeneratedImage:
        pass

    @abstractmethod
    async def get_session_files(self, session_id: str) -> list[FileUpload]:
        pass

    @abstractmethod
    async def get_session_images(self, session_id: str) -> list[GeneratedImage]:
        pass
