# stdlib imports
import asyncio
import logging
import os
from datetime import datetime, timezone
from urllib.parse import urlparse

# local imports
from agents import ChatAgent
from api.image_chain import ImageFallbackChain, build_default_chain
from constants import (
    ALLOWED_UPLOAD_EXTENSIONS,
    ALLOWED_UPLOAD_MIME_TYPES,
    GENERATED_URL_PREFIX,
    UPLOADS_URL_PREFIX,
)
from datamanager.data_manager_interface import DataManagerInterface, StorageError
from history_utils import build_chat_prompt, build_file_context, format_message
from logging_utils import preview
from models import FileUpload
from settings import Settings
from utils import (
    detect_image_mime,
    is_text_file,
    read_text_file,
    resolve_mime_type,
    save_generated_image,
    save_uploaded_file,
)
import prompts


logger = logging.getLogger(__name__)


class UploadRejected(Exception):
    """Raised when an upload breaks the size limit or the type allow-list."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ChatService:
    """
    Service layer for the chat workflow.

    Ties the store, the model gateway and the image fallback chain together:
    history lookup, prompt building, model calls, uploads, image generation
    and the persistence of every exchange.
    """

    def __init__(
        self,
        store: DataManagerInterface,
        agent: ChatAgent,
        settings: Settings,
        image_chain: ImageFallbackChain | None = None,
    ):
        """
        Args:
            store: Per-request data manager.
            agent: Model gateway shared by all requests.
            settings: Application settings (history cap, directories, limits).
            image_chain: Fallback chain for image requests; defaults to the standard chain.
        """
        self.store = store
        self.agent = agent
        self.settings = settings
        self.image_chain = image_chain or build_default_chain(settings)


    async def _persist_exchange(self, session_id: str, user_message: str, bot_response: str) -> None:
        """
        Save the turn; a storage failure here does not fail the request.

        The model already answered, so the reply still goes back to the caller.
        """
        try:
            await self.store.save_exchange(session_id, user_message, bot_response)
        except StorageError as e:
            logger.error(f"Reply for session {session_id} was not persisted: {str(e)}")


    async def _resolve_upload(self, session_id: str, file_url: str) -> FileUpload:
        """
        Find the upload a client file URL points to, scoped to the session.

        Raises:
            LookupError: If no such upload exists for this session or its file is gone.
        """
        filename = os.path.basename(urlparse(file_url).path)
        upload = await self.store.get_file_upload(session_id, filename) if filename else None
        if upload is None or not os.path.exists(upload.file_path):
            raise LookupError(f"File not found: {filename or file_url}")
        return upload


    def _load_file_context(self, upload: FileUpload) -> tuple[str, bytes | None, str | None]:
        """
        Prepare content-aware prompt input for an upload.

        Returns:
            (file context block, image bytes for vision or None, image MIME type or None)
        """
        if upload.mime_type.startswith("image/"):
            with open(upload.file_path, "rb") as f:
                image_bytes = f.read()
            media_type = detect_image_mime(image_bytes, fallback=upload.mime_type)
            return build_file_context(upload, is_image=True), image_bytes, media_type

        if is_text_file(upload.mime_type, upload.original_name):
            try:
                text = read_text_file(upload.file_path)
            except OSError as e:
                logger.warning(f"Could not read {upload.file_path}: {str(e)}")
                text = None
            return build_file_context(upload, text=text), None, None

        return build_file_context(upload), None, None


    async def send_message(self, session_id: str, message: str, file_url: str | None = None) -> dict:
        """
        Answer a user message with the model and persist the exchange.

        Args:
            session_id: Chat session; created on first use.
            message: User's message text.
            file_url: Optional public URL of a file uploaded in this session.

        Returns:
            {"response": str, "sessionId": str}

        Raises:
            LookupError: If file_url does not match an upload of this session.
            ModelError: If the model call fails.
            StorageError: If the session or its history cannot be loaded.
        """
        logger.info(f"Message for session {session_id}: {preview(message)}")

        await self.store.create_or_get_user(session_id)
        history = await self.store.get_conversation_history(session_id, self.settings.history_limit)

        file_context = None
        image_bytes = None
        media_type = None
        stored_message = message
        if file_url:
            upload = await self._resolve_upload(session_id, file_url)
            file_context, image_bytes, media_type = self._load_file_context(upload)
            stored_message = f"{message}\n[Attached file: {upload.original_name}]"

        prompt = build_chat_prompt(history, message, file_context)
        reply = await self.agent.generate_reply(prompt, image_bytes=image_bytes, media_type=media_type)

        await self._persist_exchange(session_id, stored_message, reply)
        return {"response": reply, "sessionId": session_id}


    async def generate_image(self, session_id: str, prompt: str) -> dict:
        """
        Produce an image for the prompt through the fallback chain.

        Flow:
            chain (text-to-image, random image, local placeholder)
            -> save file under generated_images_dir -> GeneratedImage row
            -> reply with markdown image syntax.
        When the chain yields nothing or the file cannot be saved, the model
        describes the image in prose instead. Either way the exchange is persisted.

        Returns:
            {"response", "sessionId", "imageUrl", "imageSource"}

        Raises:
            ModelError: If the description fallback is needed and the model call fails.
            StorageError: If the session cannot be created.
        """
        logger.info(f"Image request for session {session_id}: {preview(prompt)}")
        await self.store.create_or_get_user(session_id)

        # requests-based strategies block, keep them off the event loop
        artifact = await asyncio.to_thread(self.image_chain.run, prompt)

        image_url = None
        image_source = None
        if artifact is not None:
            try:
                filename, path = await asyncio.to_thread(
                    save_generated_image,
                    artifact,
                    self.settings.generated_images_dir,
                    session_id,
                )
                image_url = f"{GENERATED_URL_PREFIX}/{filename}"
                image_source = artifact.strategy
            except (ValueError, RuntimeError) as e:
                logger.error(f"Failed to save generated image from {artifact.strategy}: {str(e)}")

        if image_url:
            alt_text = " ".join(prompt.replace("[", "").replace("]", "").split())[:100]
            reply = prompts.IMAGE_REPLY_TEMPLATE.format(prompt=prompt, alt_text=alt_text, image_url=image_url)
            reply += prompts.PLACEHOLDER_REPLY_NOTES.get(image_source, "")
            try:
                await self.store.save_generated_image(
                    session_id,
                    prompt,
                    image_path=path,
                    image_url=image_url,
                    source=image_source,
                )
            except StorageError as e:
                logger.error(f"Generated image record for session {session_id} was not persisted: {str(e)}")
        else:
            description = await self.agent.describe_image(prompt)
            reply = prompts.IMAGE_DESCRIPTION_REPLY_TEMPLATE.format(prompt=prompt, description=description)
            image_source = "description"

        await self._persist_exchange(session_id, prompt, reply)
        logger.info(f"Image request for session {session_id} answered via {image_source}")
        return {
            "response": reply,
            "sessionId": session_id,
            "imageUrl": image_url,
            "imageSource": image_source,
        }


    async def upload_file(
        self,
        session_id: str,
        original_name: str,
        content_type: str | None,
        data: bytes,
    ) -> dict:
        """
        Validate, store and record an uploaded file.

        Size and type are checked before anything touches disk or database.

        Returns:
            Public description of the stored file.

        Raises:
            UploadRejected: Too large (413), empty or type not allowed (400).
            StorageError: If the upload record cannot be saved.
        """
        max_bytes = self.settings.max_upload_bytes
        if len(data) > max_bytes:
            raise UploadRejected(
                f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
                status_code=413,
            )
        if not data:
            raise UploadRejected("Uploaded file is empty.")

        mime_type = resolve_mime_type(original_name, content_type)
        extension = os.path.splitext(original_name)[1].lower()
        if extension not in ALLOWED_UPLOAD_EXTENSIONS and mime_type not in ALLOWED_UPLOAD_MIME_TYPES:
            raise UploadRejected(
                "File type not allowed. Supported: images, text, PDF, Word documents, JSON and CSV."
            )

        await self.store.create_or_get_user(session_id)
        filename, path = save_uploaded_file(data, self.settings.uploads_dir, original_name)
        try:
            upload = await self.store.save_file_upload(
                session_id,
                filename=filename,
                original_name=original_name,
                file_path=path,
                file_size=len(data),
                mime_type=mime_type,
            )
        except StorageError:
            # no row will ever point at the stored bytes
            os.remove(path)
            raise

        logger.info(f"Stored upload {original_name} ({len(data)} bytes) as {filename}")
        return {
            "id": upload.id,
            "filename": upload.filename,
            "originalName": upload.original_name,
            "url": f"{UPLOADS_URL_PREFIX}/{upload.filename}",
            "size": upload.file_size,
            "mimeType": upload.mime_type,
        }


    async def clear_session(self, session_id: str) -> int:
        return await self.store.clear_session_history(session_id)


    async def get_history(self, session_id: str, limit: int = 50) -> dict:
        messages = await self.store.get_conversation_history(session_id, limit)
        return {
            "sessionId": session_id,
            "messages": [format_message(m) for m in messages],
            "count": len(messages),
        }


    async def get_stats(self) -> dict:
        return await self.store.get_chat_stats()


    async def export_session(self, session_id: str) -> dict:
        """
        Collect a session's turns, uploads and generated images for download.

        A session without turns exports an empty conversations list.
        """
        conversations = await self.store.get_session_conversations(session_id)
        files = await self.store.get_session_files(session_id)
        images = await self.store.get_session_images(session_id)

        return {
            "sessionId": session_id,
            "exportTimestamp": datetime.now(timezone.utc).isoformat(),
            "messageCount": len(conversations),
            "fileCount": len(files),
            "imageCount": len(images),
            "conversations": [c.model_dump(mode="json") for c in conversations],
            "files": [f.model_dump(mode="json") for f in files],
            "images": [i.model_dump(mode="json") for i in images],
        }
