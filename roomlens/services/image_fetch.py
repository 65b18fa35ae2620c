"""
Image fetch & encode: turns an image URL (remote or data-URL) into a base64 payload plus MIME type
"""
import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import aiohttp

from roomlens.core.exceptions import FetchError, InvalidInput

logger = logging.getLogger(__name__)

DEFAULT_MIME = "image/png"


@dataclass(frozen=True)
class EncodedImage:
    """Image ready to be sent inline to a vision model"""

    base64: str
    mime: str

    def decode(self) -> bytes:
        return base64.b64decode(self.base64)


def parse_mime(content_type: Optional[str]) -> str:
    """Take the media type from a Content-Type value, falling back to image/png"""
    if not content_type:
        return DEFAULT_MIME
    mime = content_type.split(";")[0].strip().lower()
    if "/" not in mime or mime.startswith("/") or mime.endswith("/"):
        return DEFAULT_MIME
    return mime


def decode_data_url(url: str) -> Tuple[bytes, str]:
    """Split a data:[<mime>][;base64],<payload> URL into bytes and MIME type"""
    header, sep, payload = url.partition(",")
    if not sep or ";base64" not in header:
        raise InvalidInput("Only base64 data URLs are supported", {"url": url[:64]})
    mime = parse_mime(header[len("data:") :].split(";base64")[0])
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInput(f"Malformed data URL: {e}", {"url": url[:64]}) from e
    return data, mime


async def fetch_image_bytes(session: aiohttp.ClientSession, url: str, timeout: float = 30.0) -> Tuple[bytes, str]:
    """Fetch raw image bytes and MIME type. One attempt, no retry."""
    if url.startswith("data:"):
        return decode_data_url(url)

    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            if response.status < 200 or response.status >= 300:
                logger.warning(f"Image fetch failed for {url[:120]}: HTTP {response.status}")
                raise FetchError(f"Failed to fetch image ({response.status})", upstream_status=response.status, url=url)
            data = await response.read()
            mime = parse_mime(response.headers.get("Content-Type"))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"Network error fetching image {url[:120]}: {e}")
        raise FetchError(f"Failed to fetch image ({e})", url=url) from e

    logger.info(f"Fetched image {url[:120]} ({len(data)} bytes, {mime})")
    return data, mime


async def fetch_image_base64(session: aiohttp.ClientSession, url: str, timeout: float = 30.0) -> EncodedImage:
    data, mime = await fetch_image_bytes(session, url, timeout=timeout)
    return EncodedImage(base64=base64.b64encode(data).decode("ascii"), mime=mime)
