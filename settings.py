"""
Environment settings loader for the chat application.
"""
from dataclasses import dataclass
from functools import lru_cache
import logging
import os
import sys

from dotenv import load_dotenv


load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_TEXT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4.1",
}

API_KEY_VARIABLES = {
    "gemini": "GEMINI_API_KEY",
    "openai": "MY_OPENAI_API_KEY",
}


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable settings container built from environment variables."""
    model_provider: str
    gemini_api_key: str | None
    openai_api_key: str | None
    text_model: str
    database_url: str
    uploads_dir: str
    generated_images_dir: str
    history_limit: int
    max_upload_bytes: int
    image_service_url: str
    placeholder_image_url: str
    image_service_timeout: float
    placeholder_image_timeout: float
    frontend_origins: list[str]
    api_host: str
    api_port: int

    @property
    def required_api_key_name(self) -> str:
        return API_KEY_VARIABLES.get(self.model_provider, "GEMINI_API_KEY")

    @property
    def api_key(self) -> str | None:
        if self.model_provider == "openai":
            return self.openai_api_key
        return self.gemini_api_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings built from environment variables."""
    model_provider = os.getenv("MODEL_PROVIDER", "gemini").lower()
    origins = os.getenv("FRONTEND_ORIGINS", "*")

    return Settings(
        model_provider=model_provider,
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        openai_api_key=os.getenv("MY_OPENAI_API_KEY"),
        text_model=os.getenv("TEXT_MODEL") or DEFAULT_TEXT_MODELS.get(model_provider, "gemini-2.5-flash"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///chatbot.db"),
        uploads_dir=os.getenv("UPLOADS_DIR", "uploads"),
        generated_images_dir=os.getenv("GENERATED_IMAGES_DIR", "generated_images"),
        history_limit=int(os.getenv("HISTORY_LIMIT", "10")),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
        image_service_url=os.getenv(
            "IMAGE_SERVICE_URL",
            "https://image.pollinations.ai/prompt/{prompt}?width=512&height=512&nologo=true",
        ),
        placeholder_image_url=os.getenv("PLACEHOLDER_IMAGE_URL", "https://picsum.photos/512/512"),
        image_service_timeout=float(os.getenv("IMAGE_SERVICE_TIMEOUT", "10")),
        placeholder_image_timeout=float(os.getenv("PLACEHOLDER_IMAGE_TIMEOUT", "10")),
        frontend_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
        api_host=os.getenv("HOST", "0.0.0.0"),
        api_port=int(os.getenv("PORT", "3000")),
    )


def require_api_key(settings: Settings) -> None:
    """
    Exit the process with a diagnostic when the provider's API key is missing.

    The key checked depends on settings.model_provider
    (GEMINI_API_KEY for "gemini", MY_OPENAI_API_KEY for "openai").
    """
    if settings.api_key:
        return

    name = settings.required_api_key_name
    logger.error(
        f"{name} not found in environment variables. "
        f"Create a .env file and add your API key: {name}=your_api_key_here"
    )
    sys.exit(1)
