"""
Loguru sink setup for the CLI and embedding applications.
"""
import sys

from loguru import logger

_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default stderr sink with one at `level`. Call once at startup."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_FORMAT)


def redact_token(url: str) -> str:
    """Hide the access_token query value so URLs are safe to log."""
    marker = "access_token="
    start = url.find(marker)
    if start == -1:
        return url
    start += len(marker)
    end = url.find("&", start)
    if end == -1:
        end = len(url)
    return url[:start] + "<redacted>" + url[end:]
