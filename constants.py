"""
Shared constants for the chat application.
Keeps URL prefixes, upload rules and image defaults centralized.
"""

# Public URL prefixes for files served from disk
UPLOADS_URL_PREFIX = "/uploads"
GENERATED_URL_PREFIX = "/generated"

# Session used when the client sends none
DEFAULT_SESSION_ID = "default"

# Prompt sizing
MAX_FILE_TEXT_CHARS = 20_000
PLACEHOLDER_PROMPT_WORDS = 8

# Generated image defaults
DEFAULT_IMAGE_EXTENSION = "png"
PLACEHOLDER_SIZE = 512

# Mapping returned MIME types to file extensions
MIME_EXTENSION_MAP = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}

# Mapping Pillow format names to MIME types
PIL_FORMAT_MIME_MAP = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

# Upload allow-list
ALLOWED_UPLOAD_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".webp",
    ".txt", ".md", ".pdf", ".doc", ".docx", ".json", ".csv",
}

ALLOWED_UPLOAD_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "text/plain",
    "text/markdown",
    "text/csv",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/json",
}

# Uploaded types whose content is injected into prompts as text
TEXT_MIME_TYPES = {"text/plain", "text/markdown", "text/csv", "application/json"}
TEXT_EXTENSIONS = {".txt", ".md", ".csv", ".json"}

# Extension fallback when the client sends no useful content type
EXTENSION_MIME_MAP = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".json": "application/json",
    ".csv": "text/csv",
}
