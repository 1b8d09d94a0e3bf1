# stdlib imports
import logging

# third-party imports
from openai import AsyncOpenAI
from pydantic_ai import Agent, BinaryContent
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider

# local imports
from logging_utils import preview
from settings import DEFAULT_TEXT_MODELS
import prompts


logger = logging.getLogger(__name__)


class ModelError(Exception):
    """Raised when the hosted model call fails; the provider error is chained."""


class ChatAgent:
    """
    Thin gateway to the hosted completion API.

    Supports both providers:
    - Google: gemini-2.5-flash (default)
    - OpenAI: gpt-4.1

    The prompt is a single flat string that already carries the system
    preamble and history (see history_utils.build_chat_prompt), so the
    agent itself has no system prompt.
    """
    def __init__(
        self,
        model_provider: str,
        gemini_api_key: str | None = None,
        openai_api_key: str | None = None,
        text_model: str | None = None,
    ):
        """
        Initialize the agent for the selected provider.

        Args:
            model_provider: Provider selection ("gemini" or "openai").
            gemini_api_key: API key for Google (required when provider="gemini").
            openai_api_key: API key for OpenAI (required when provider="openai").
            text_model: Model name; defaults to the provider's default model.

        Raises:
            ValueError: If the provider is unknown or its API key is missing.
        """
        if model_provider == "gemini" and not gemini_api_key:
            raise ValueError("Gemini API key is required when using Google provider.")
        if model_provider == "openai" and not openai_api_key:
            raise ValueError("OpenAI API key is required when using OpenAI provider.")

        self.model_provider = model_provider
        self.text_model = text_model or DEFAULT_TEXT_MODELS.get(model_provider)

        if model_provider == "gemini":
            provider = GoogleProvider(api_key=gemini_api_key)
            model = GoogleModel(self.text_model, provider=provider)
        elif model_provider == "openai":
            # AsyncOpenAI client needed because pydantic-ai's OpenAI model wraps it
            client = AsyncOpenAI(api_key=openai_api_key)
            model = OpenAIChatModel(self.text_model, provider=OpenAIProvider(openai_client=client))
        else:
            raise ValueError(f"Unsupported model provider: {model_provider}")

        self.chat_agent = Agent(model, output_type=str)


    async def generate_reply(
        self,
        prompt: str,
        image_bytes: bytes | None = None,
        media_type: str | None = None,
    ) -> str:
        """
        Run one completion for the prompt, optionally with an inline image.

        Args:
            prompt: Full instruction-and-history prompt.
            image_bytes: Raw image data for vision requests.
            media_type: MIME type of image_bytes (e.g. "image/png").

        Returns:
            The model's reply text.

        Raises:
            ModelError: If the provider call fails.
        """
        content: str | list = prompt
        if image_bytes is not None:
            content = [prompt, BinaryContent(data=image_bytes, media_type=media_type or "image/jpeg")]

        logger.info(
            f"Calling {self.model_provider}:{self.text_model} "
            f"(vision={image_bytes is not None}, prompt_chars={len(prompt)})"
        )
        try:
            result = await self.chat_agent.run(content)
        except Exception as e:
            logger.error(f"Model call failed: {str(e)}")
            raise ModelError(f"Model call failed: {str(e)}") from e

        reply = (result.output or "").strip()
        logger.info(f"Model replied: {preview(reply)}")
        return reply


    async def describe_image(self, prompt: str) -> str:
        """
        Ask the model for a prose description of a requested image.

        Used when no image source produced a picture.
        """
        return await self.generate_reply(prompts.IMAGE_DESCRIPTION_TEMPLATE.format(prompt=prompt))
