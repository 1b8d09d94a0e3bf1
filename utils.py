"""
Utility functions for file storage and file inspection.
"""
# stdlib imports
import base64
import os
import time
import uuid
from io import BytesIO

# third-party imports
import requests
from PIL import Image, UnidentifiedImageError

# local imports
from api.image_sources import ImageArtifact
from constants import (
    DEFAULT_IMAGE_EXTENSION,
    EXTENSION_MIME_MAP,
    MIME_EXTENSION_MAP,
    PIL_FORMAT_MIME_MAP,
    TEXT_EXTENSIONS,
    TEXT_MIME_TYPES,
)


# File utilities
def save_uploaded_file(
    data: bytes,
    base_dir: str,
    original_name: str,
) -> tuple[str, str]:
    """
    Persist an uploaded file to disk under a unique name.

    The stored name keeps the original extension:
    <epoch-millis>-<uuid>.<ext>

    Args:
        data: Raw file data.
        base_dir: Storage directory (created if missing).
        original_name: Client-side filename, used only for its extension.

    Returns:
        (stored filename, relative path)
    """
    target_dir = base_dir
    try:
        os.makedirs(target_dir, exist_ok=True)

        extension = os.path.splitext(original_name)[1].lower()
        filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex}{extension}"
        path = os.path.join(target_dir, filename)

        with open(path, "wb") as f:
            f.write(data)

        return filename, path

    except OSError as e:
        # <from e> = Preserve the original traceback via exception chaining
        raise RuntimeError(f"Failed to save file to {target_dir}: {e}") from e


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """
    Parse data URLs in the format 'data:<mime-type>;base64,<payload>'.

    Returns:
        (mime_type, raw_bytes)
    """
    if not isinstance(data_url, str) or not data_url.startswith("data:image"):
        raise ValueError("Invalid data URL: must start with 'data:image'.")

    try:
        header, b64data = data_url.split(",", 1)
        mime_type = header.split(";", 1)[0].split(":", 1)[1]
        raw_bytes = base64.b64decode(b64data)

        return mime_type, raw_bytes

    except Exception as e:
        raise ValueError(f"Failed to parse and decode data URL: {e}") from e


def save_generated_image(
    artifact: ImageArtifact,
    base_dir: str,
    session_id: str,
    download_timeout: float = 30,
) -> tuple[str, str]:
    """
    Write an image produced by the fallback chain to disk.

    Inline data URLs are decoded; remote URLs use the bytes the strategy
    already fetched, or are downloaded when it fetched none.

    Args:
        artifact: Result of ImageFallbackChain.run().
        base_dir: Directory for generated images (created if missing).
        session_id: Chat session, embedded in the filename.
        download_timeout: Seconds allowed for a download.

    Returns:
        (stored filename, relative path)

    Raises:
        ValueError: If the image data cannot be obtained or decoded.
        RuntimeError: If writing the file fails.
    """
    if artifact.is_inline:
        mime_type, image_bytes = decode_data_url(artifact.source)
    elif artifact.content:
        mime_type, image_bytes = artifact.mime_type, artifact.content
    else:
        try:
            response = requests.get(artifact.source, timeout=download_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ValueError(f"Failed to download image from {artifact.source}: {e}") from e
        mime_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip() or artifact.mime_type
        image_bytes = response.content

    if not image_bytes:
        raise ValueError("Image source returned no data.")

    extension = MIME_EXTENSION_MAP.get(mime_type or "", DEFAULT_IMAGE_EXTENSION)
    safe_session = "".join(c for c in session_id if c.isalnum() or c in "-_")[:40] or "session"
    filename = f"generated_{safe_session}_{uuid.uuid4().hex}.{extension}"
    path = os.path.join(base_dir, filename)

    try:
        os.makedirs(base_dir, exist_ok=True)
        with open(path, "wb") as f:
            f.write(image_bytes)
    except OSError as e:
        raise RuntimeError(f"Failed to save generated image to {base_dir}: {e}") from e

    return filename, path


def resolve_mime_type(original_name: str, content_type: str | None) -> str:
    """
    Pick the MIME type for an upload.

    The client's content type wins unless it is missing or generic,
    then the extension decides.
    """
    content_type = (content_type or "").split(";", 1)[0].strip().lower()
    if content_type and content_type != "application/octet-stream":
        return content_type
    extension = os.path.splitext(original_name)[1].lower()
    return EXTENSION_MIME_MAP.get(extension, "application/octet-stream")


def detect_image_mime(image_bytes: bytes, fallback: str = "image/jpeg") -> str:
    """
    Detect the real image format with Pillow.

    Browsers sometimes label uploads by extension only; the model needs the
    actual format of the bytes.
    """
    try:
        with Image.open(BytesIO(image_bytes)) as image:
            return PIL_FORMAT_MIME_MAP.get(image.format or "", fallback)
    except (UnidentifiedImageError, OSError):
        return fallback


def is_text_file(mime_type: str, filename: str) -> bool:
    if mime_type in TEXT_MIME_TYPES or mime_type.startswith("text/"):
        return True
    return os.path.splitext(filename)[1].lower() in TEXT_EXTENSIONS


def read_text_file(path: str) -> str:
    """Read an uploaded text file, replacing undecodable bytes."""
    with open(path, "r", encoding="utf-8", errors="replace") as handle:
        return handle.read()
