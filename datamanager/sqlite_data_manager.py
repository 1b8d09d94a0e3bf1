# stdlib imports
import logging
from contextlib import contextmanager

# third-party imports
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

# local imports
from models import ChatMessage, Conversation, FileUpload, GeneratedImage, MessageRole, User, utc_now
from .data_manager_interface import DataManagerInterface, StorageError


logger = logging.getLogger(__name__)


class SQLiteDataManager(DataManagerInterface):
    """
    Store for sessions, messages, turns, uploads and generated images.

    Wraps one per-request SQLModel Session. Every operation commits on its own,
    except save_exchange and clear_session_history, which group their writes
    into a single transaction. Failures are rolled back and raised as StorageError.
    """

    def __init__(self, session: Session):
        self.session = session


    @contextmanager
    def _transaction(self, action: str):
        """Commit on success; roll back and raise StorageError on engine errors."""
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"{action} failed: {str(e)}")
            raise StorageError(f"{action} failed: {str(e)}") from e


    def _require_user(self, session_id: str) -> None:
        exists = self.session.exec(
            select(User.id).where(User.session_id == session_id)
        ).first()
        if exists is None:
            raise StorageError(f"Unknown session: {session_id}")


    async def create_or_get_user(self, session_id: str) -> User:
        """
        Return the user row for session_id, creating it on first use.

        An existing row gets its last_active timestamp refreshed.
        """
        try:
            user = self.session.exec(select(User).where(User.session_id == session_id)).first()
            if user:
                user.last_active = utc_now()
            else:
                user = User(session_id=session_id)
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
            return user

        except IntegrityError:
            # another request created the same session in between
            self.session.rollback()
            user = self.session.exec(select(User).where(User.session_id == session_id)).first()
            if user is None:
                raise StorageError(f"Could not create session {session_id}")
            return user

        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Session lookup failed: {str(e)}")
            raise StorageError(f"Session lookup failed: {str(e)}") from e


    async def get_user(self, session_id: str) -> User | None:
        try:
            return self.session.exec(select(User).where(User.session_id == session_id)).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Session lookup failed: {str(e)}") from e


    async def save_chat_message(self, session_id: str, role: str, content: str) -> ChatMessage:
        role = MessageRole(role).value
        with self._transaction("Saving chat message"):
            self._require_user(session_id)
            message = ChatMessage(session_id=session_id, role=role, content=content)
            self.session.add(message)
        self.session.refresh(message)
        return message


    async def save_conversation(self, session_id: str, user_message: str, bot_response: str) -> Conversation:
        with self._transaction("Saving conversation"):
            self._require_user(session_id)
            turn = Conversation(session_id=session_id, message=user_message, response=bot_response)
            self.session.add(turn)
        self.session.refresh(turn)
        return turn


    async def save_exchange(self, session_id: str, user_message: str, bot_response: str) -> Conversation:
        """
        Persist one turn: user message, assistant message, then the paired row.

        The flushes keep the insert order (and so the id order) stable
        even when the timestamps collide.
        """
        with self._transaction("Saving exchange"):
            self._require_user(session_id)
            self.session.add(ChatMessage(session_id=session_id, role=MessageRole.USER.value, content=user_message))
            self.session.flush()
            self.session.add(ChatMessage(session_id=session_id, role=MessageRole.ASSISTANT.value, content=bot_response))
            self.session.flush()
            turn = Conversation(session_id=session_id, message=user_message, response=bot_response)
            self.session.add(turn)
        self.session.refresh(turn)
        return turn


    async def get_conversation_history(self, session_id: str, limit: int = 20) -> list[ChatMessage]:
        """
        Return the latest `limit` messages of one session, oldest first.
        """
        if limit <= 0:
            return []
        try:
            stmt = (
                select(ChatMessage)
                .where(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
                .limit(limit)
            )
            latest = self.session.exec(stmt).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Loading history failed: {str(e)}") from e

        return list(reversed(latest))


    async def get_session_conversations(self, session_id: str) -> list[Conversation]:
        try:
            stmt = (
                select(Conversation)
                .where(Conversation.session_id == session_id)
                .order_by(Conversation.timestamp.asc(), Conversation.id.asc())
            )
            return list(self.session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StorageError(f"Loading conversations failed: {str(e)}") from e


    async def clear_session_history(self, session_id: str) -> int:
        """
        Delete every message and turn of one session in a single transaction.

        Returns:
            Number of deleted rows (messages + turns).
        """
        deleted = 0
        with self._transaction("Clearing session"):
            messages = self.session.exec(
                select(ChatMessage).where(ChatMessage.session_id == session_id)
            ).all()
            turns = self.session.exec(
                select(Conversation).where(Conversation.session_id == session_id)
            ).all()
            for row in [*messages, *turns]:
                self.session.delete(row)
                deleted += 1

        logger.info(f"Cleared {deleted} rows for session {session_id}")
        return deleted


    async def get_chat_stats(self) -> dict:
        try:
            total_messages = self.session.exec(select(func.count(ChatMessage.id))).one()
            user_messages = self.session.exec(
                select(func.count(ChatMessage.id)).where(ChatMessage.role == MessageRole.USER.value)
            ).one()
            bot_responses = self.session.exec(
                select(func.count(ChatMessage.id)).where(ChatMessage.role == MessageRole.ASSISTANT.value)
            ).one()
            total_users = self.session.exec(
                select(func.count(func.distinct(ChatMessage.session_id)))
            ).one()
            total_files = self.session.exec(select(func.count(FileUpload.id))).one()
            total_images = self.session.exec(select(func.count(GeneratedImage.id))).one()
        except SQLAlchemyError as e:
            raise StorageError(f"Loading stats failed: {str(e)}") from e

        return {
            "total_users": total_users,
            "total_messages": total_messages,
            "user_messages": user_messages,
            "bot_responses": bot_responses,
            "total_files": total_files,
            "total_images": total_images,
        }


    async def save_file_upload(
        self,
        session_id: str,
        filename: str,
        original_name: str,
        file_path: str,
        file_size: int,
        mime_type: str,
    ) -> FileUpload:
        with self._transaction("Saving file upload"):
            self._require_user(session_id)
            upload = FileUpload(
                session_id=session_id,
                filename=filename,
                original_name=original_name,
                file_path=file_path,
                file_size=file_size,
                mime_type=mime_type,
            )
            self.session.add(upload)
        self.session.refresh(upload)
        return upload


    async def get_file_upload(self, session_id: str, filename: str) -> FileUpload | None:
        try:
            return self.session.exec(
                select(FileUpload).where(
                    FileUpload.session_id == session_id,
                    FileUpload.filename == filename,
                )
            ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Loading file upload failed: {str(e)}") from e


    async def save_generated_image(
        self,
        session_id: str,
        prompt: str,
        image_path: str | None,
        image_url: str | None = None,
        source: str | None = None,
    ) -> GeneratedImage:
        with self._transaction("Saving generated image"):
            self._require_user(session_id)
            image = GeneratedImage(
                session_id=session_id,
                prompt=prompt,
                image_path=image_path,
                image_url=image_url,
                source=source,
            )
            self.session.add(image)
        self.session.refresh(image)
        return image


    async def get_session_files(self, session_id: str) -> list[FileUpload]:
        try:
            stmt = (
                select(FileUpload)
                .where(FileUpload.session_id == session_id)
                .order_by(FileUpload.upload_timestamp.desc(), FileUpload.id.desc())
            )
            return list(self.session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StorageError(f"Loading files failed: {str(e)}") from e


    async def get_session_images(self, session_id: str) -> list[GeneratedImage]:
        try:
            stmt = (
                select(GeneratedImage)
                .where(GeneratedImage.session_id == session_id)
                .order_by(GeneratedImage.generation_timestamp.desc(), GeneratedImage.id.desc())
            )
            return list(self.session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StorageError(f"Loading images failed: {str(e)}") from e
