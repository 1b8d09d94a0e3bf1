import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_LEVEL = logging.INFO


def configure_logging(level: int = DEFAULT_LOG_LEVEL) -> None:
    """Configure the root logger with a shared format and level."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def preview(text: str, limit: int = 80) -> str:
    """
    Shorten user or model text for log lines.

    Args:
        text: Text to shorten.
        limit: Maximum characters kept before the ellipsis.
    """
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."
