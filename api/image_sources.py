"""
Image sources used by the image generation fallback chain.

Each strategy takes the user's text prompt and returns an ImageArtifact,
or None when it could not produce one. Strategies never raise; failures
are logged and reported as None so the chain can move on.
"""

# stdlib imports
import base64
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote
from xml.sax.saxutils import escape

# third-party imports
import requests

# local imports
from constants import PLACEHOLDER_PROMPT_WORDS, PLACEHOLDER_SIZE


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageArtifact:
    """
    An image produced by one strategy.

    Attributes:
        source: Remote URL or inline "data:image/...;base64," URL.
        strategy: Name of the strategy that produced it.
        content: Image bytes already fetched by the strategy, if any.
        mime_type: MIME type of the image, when known.
    """
    source: str
    strategy: str
    content: bytes | None = None
    mime_type: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.source.startswith("data:")


# Gradient pairs for the local placeholder (start color, end color)
PLACEHOLDER_GRADIENTS = [
    ("#667eea", "#764ba2"),
    ("#f093fb", "#f5576c"),
    ("#4facfe", "#00f2fe"),
    ("#43e97b", "#38f9d7"),
    ("#fa709a", "#fee140"),
    ("#30cfd0", "#330867"),
    ("#a8edea", "#fed6e3"),
    ("#ff9a9e", "#fecfef"),
]


def _content_mime(response: requests.Response) -> str:
    return response.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()


def fetch_text_to_image(prompt: str, url_template: str, timeout: float) -> ImageArtifact | None:
    """
    Ask the remote text-to-image service for a picture of the prompt.

    Args:
        prompt: User's image description.
        url_template: Service URL with a "{prompt}" placeholder.
        timeout: Seconds to wait for the service.

    Returns:
        ImageArtifact with the fetched bytes on HTTP 200 with an image body, else None.
    """
    url = url_template.format(prompt=quote(prompt, safe=""))
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"Text-to-image service unreachable: {str(e)}")
        return None

    mime_type = _content_mime(response)
    if response.status_code != 200 or not mime_type.startswith("image/"):
        logger.warning(
            f"Text-to-image service returned status={response.status_code} content_type={mime_type or 'none'}"
        )
        return None

    return ImageArtifact(source=url, strategy="text_to_image", content=response.content, mime_type=mime_type)


def fetch_random_image(prompt: str, url: str, timeout: float) -> ImageArtifact | None:
    """
    Fetch a random picture from a generic image service.

    The picture is unrelated to the prompt; it stands in as a creative placeholder.
    """
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"Random image service unreachable: {str(e)}")
        return None

    mime_type = _content_mime(response)
    if response.status_code != 200 or not mime_type.startswith("image/"):
        logger.warning(
            f"Random image service returned status={response.status_code} content_type={mime_type or 'none'}"
        )
        return None

    # response.url is the final address after redirects
    return ImageArtifact(
        source=response.url or url,
        strategy="random_image",
        content=response.content,
        mime_type=mime_type,
    )


def _placeholder_lines(prompt: str) -> list[str]:
    words = prompt.split()[:PLACEHOLDER_PROMPT_WORDS]
    if not words:
        return ["Your image"]
    # two lines of at most four words keep the text inside the canvas
    return [" ".join(words[i:i + 4]) for i in range(0, len(words), 4)]


def render_placeholder_svg(prompt: str, now: datetime | None = None) -> ImageArtifact:
    """
    Render a local SVG placeholder showing the start of the prompt.

    The graphic embeds the first words of the prompt, a randomly chosen
    gradient and a timestamp. Always succeeds.

    Returns:
        ImageArtifact with an inline data URL.
    """
    now = now or datetime.now(timezone.utc)
    start, end = random.choice(PLACEHOLDER_GRADIENTS)
    size = PLACEHOLDER_SIZE
    center = size // 2

    text_lines = _placeholder_lines(prompt)
    first_y = center - (len(text_lines) - 1) * 18
    tspans = "".join(
        f'<tspan x="{center}" y="{first_y + i * 36}">{escape(line)}</tspan>'
        for i, line in enumerate(text_lines)
    )

    svg = (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" viewBox="0 0 {size} {size}">'
        '<defs><linearGradient id="bg" x1="0%" y1="0%" x2="100%" y2="100%">'
        f'<stop offset="0%" stop-color="{start}"/>'
        f'<stop offset="100%" stop-color="{end}"/>'
        '</linearGradient></defs>'
        f'<rect width="{size}" height="{size}" fill="url(#bg)"/>'
        f'<text x="{center}" y="{center - 110}" font-family="Arial, sans-serif" font-size="56" '
        'text-anchor="middle" fill="#ffffff">&#127912;</text>'
        '<text font-family="Arial, sans-serif" font-size="28" font-weight="bold" '
        f'text-anchor="middle" fill="#ffffff">{tspans}</text>'
        f'<text x="{center}" y="{size - 40}" font-family="Arial, sans-serif" font-size="14" '
        'text-anchor="middle" fill="#ffffff" fill-opacity="0.8">'
        f'Generated {now.strftime("%Y-%m-%d %H:%M:%S")} UTC</text>'
        '</svg>'
    )

    svg_bytes = svg.encode("utf-8")
    data_url = f"data:image/svg+xml;base64,{base64.b64encode(svg_bytes).decode('utf-8')}"
    return ImageArtifact(source=data_url, strategy="local_placeholder", content=svg_bytes, mime_type="image/svg+xml")
