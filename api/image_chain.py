"""
Ordered fallback chain for image generation.

The chain holds named strategies (prompt -> ImageArtifact | None) and
returns the first artifact produced. When every strategy comes back empty
the caller falls back to a prose description of the image.
"""

# stdlib imports
import logging
from collections.abc import Callable
from functools import partial

# local imports
from api.image_sources import (
    ImageArtifact,
    fetch_random_image,
    fetch_text_to_image,
    render_placeholder_svg,
)
from logging_utils import preview
from settings import Settings


logger = logging.getLogger(__name__)


ImageStrategy = Callable[[str], ImageArtifact | None]


class ImageFallbackChain:
    """First non-empty result wins."""

    def __init__(self, strategies: list[tuple[str, ImageStrategy]]):
        self.strategies = strategies

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.strategies]

    def run(self, prompt: str) -> ImageArtifact | None:
        """
        Try each strategy in order.

        Returns:
            The first artifact produced, or None when the chain is exhausted.
        """
        for attempt, (name, strategy) in enumerate(self.strategies, 1):
            logger.info(f"Image attempt {attempt}/{len(self.strategies)} via {name}: {preview(prompt)}")
            try:
                artifact = strategy(prompt)
            except Exception as e:
                logger.warning(f"Image strategy {name} failed: {str(e)}")
                continue

            if artifact is not None:
                logger.info(f"Image produced by {name}")
                return artifact

            logger.warning(f"Image strategy {name} produced nothing")

        logger.warning("All image strategies exhausted")
        return None


def build_default_chain(settings: Settings) -> ImageFallbackChain:
    """Remote text-to-image service, then random image service, then local SVG."""
    return ImageFallbackChain([
        (
            "text_to_image",
            partial(
                fetch_text_to_image,
                url_template=settings.image_service_url,
                timeout=settings.image_service_timeout,
            ),
        ),
        (
            "random_image",
            partial(
                fetch_random_image,
                url=settings.placeholder_image_url,
                timeout=settings.placeholder_image_timeout,
            ),
        ),
        ("local_placeholder", render_placeholder_svg),
    ])
