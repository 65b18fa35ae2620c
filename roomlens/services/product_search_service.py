"""
Product lookup services: visual match search (Google Lens via SerpAPI) and
keyword search (vision model keywords -> Rainforest Amazon search)
"""
import asyncio
import base64
import io
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import aiohttp
from PIL import Image, UnidentifiedImageError

from roomlens.core.config import Settings
from roomlens.core.exceptions import InvalidInput, NoResultsFound, ProviderError, ProviderNotConfigured
from roomlens.middleware.logging_middleware import get_logger
from roomlens.schemas.products import CropRegion, ProductMatch, SmartLookupResponse
from roomlens.services.google_ai_service import GoogleAIStudioService
from roomlens.services.image_fetch import EncodedImage, fetch_image_bytes

logger = get_logger(__name__)

USER_AGENT = "RoomLens/1.0"
KEYWORD_MAX_TOKENS = 120
KEYWORD_INSTRUCTION = (
    "Provide a concise, high-intent Amazon search query (3-6 words) that describes the highlighted product. "
    "Focus on furniture/decor keywords like color, material, and style. Return only the keyword string."
)

_QUOTES = re.compile(r"[\"']")
_AMAZON_PRODUCT_PATH = re.compile(r"/dp/|/gp/")


def is_amazon_product_url(url: str) -> bool:
    """True for amazon.* links that point at a product page"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if "amazon." not in (parsed.hostname or ""):
        return False
    return bool(_AMAZON_PRODUCT_PATH.search(parsed.path))


def pick_visual_match(matches: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Prefer an Amazon product listing, else the first match"""
    for match in matches:
        if is_amazon_product_url(match.get("link") or ""):
            return match
    return matches[0] if matches else None


def normalize_lens_match(match: Dict[str, Any]) -> ProductMatch:
    title = match.get("title")
    link = match.get("link")
    hostname = (urlparse(link).hostname or "") if link else ""
    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    source = hostname or match.get("source") or "listing"
    return ProductMatch(
        name=title,
        description=f"{source} listing for {title}",
        link_url=link,
        image_url=match.get("thumbnail"),
        price=match.get("price") if isinstance(match.get("price"), str) else None,
    )


def normalize_rainforest_result(item: Dict[str, Any], keywords: str) -> ProductMatch:
    title = item.get("title")
    price = (item.get("price") or {}).get("display") if isinstance(item.get("price"), dict) else None
    asin = item.get("asin")
    link = item.get("link") or (f"https://www.amazon.com/dp/{asin}" if asin else None)
    return ProductMatch(
        name=title,
        description=f"{title} ({price})" if price else title,
        search_terms=[keywords],
        link_url=link,
        image_url=item.get("image"),
        price=price,
        asin=asin,
    )


def clean_keywords(text: str) -> str:
    return _QUOTES.sub("", text).strip()


def crop_image(data: bytes, region: Optional[CropRegion]) -> bytes:
    """
    Crop raw image bytes to a pixel region, clamped to the image bounds.

    The crop keeps at least one pixel in each direction. Without a region
    the input bytes are returned as-is.
    """
    if region is None:
        return data
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidInput(f"Image could not be decoded for cropping: {e}") from e

    width, height = image.size
    left = max(0, min(round(region.x), max(0, width - 1)))
    top = max(0, min(round(region.y), max(0, height - 1)))
    crop_width = max(1, min(round(region.width), width - left))
    crop_height = max(1, min(round(region.height), height - top))

    cropped = image.crop((left, top, left + crop_width, top + crop_height))
    if cropped.mode not in ("RGB", "RGBA", "L"):
        cropped = cropped.convert("RGB")
    buffer = io.BytesIO()
    cropped.save(buffer, format="PNG")
    logger.debug(f"Cropped image {width}x{height} to ({left}, {top}, {crop_width}x{crop_height})")
    return buffer.getvalue()


class ProductSearchService:
    """Finds shoppable listings for a photographed item"""

    def __init__(self, settings: Settings, vision: GoogleAIStudioService, http_session: aiohttp.ClientSession):
        self.settings = settings
        self.vision = vision
        self.http_session = http_session

    async def _get_json(self, provider: str, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with self.http_session.get(url, params=params, headers={"User-Agent": USER_AGENT}) as response:
                if not 200 <= response.status < 300:
                    text = await response.text()
                    logger.error(f"{provider} error {response.status}: {text[:300]}")
                    raise ProviderError(f"{provider} lookup failed ({response.status})", {"provider": provider})
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"{provider} request failed: {e}")
            raise ProviderError(f"{provider} lookup failed: {e}", {"provider": provider}) from e
        return payload if isinstance(payload, dict) else {}

    async def lens_lookup(self, image_url: str) -> ProductMatch:
        """Visual search for the pictured item, preferring an Amazon listing"""
        if not self.settings.serpapi_key:
            raise ProviderNotConfigured("SERPAPI_KEY")

        params = {"engine": "google_lens", "url": image_url, "api_key": self.settings.serpapi_key, "hl": "en"}
        payload = await self._get_json("Google Lens", self.settings.serpapi_endpoint, params)
        matches = [match for match in payload.get("visual_matches") or [] if isinstance(match, dict)]

        match = pick_visual_match(matches)
        if match is None or not match.get("link"):
            raise NoResultsFound("No product match found", {"matches": len(matches)})

        logger.info(f"Lens lookup matched {match.get('link')} out of {len(matches)} visual matches")
        return normalize_lens_match(match)

    async def extract_keywords(self, image: EncodedImage, user_prompt: Optional[str] = None) -> str:
        extra_texts = [f"User request/context: {user_prompt}"] if user_prompt else []
        text = await self.vision.generate_text(
            KEYWORD_INSTRUCTION,
            image=image,
            extra_texts=extra_texts,
            max_output_tokens=KEYWORD_MAX_TOKENS,
            temperature=0.0,
            purpose="product keywords",
        )
        return clean_keywords(text)

    async def search_rainforest(self, keywords: str) -> List[ProductMatch]:
        if not self.settings.rainforest_api_key:
            raise ProviderNotConfigured("RAINFOREST_API_KEY")

        params = {
            "api_key": self.settings.rainforest_api_key,
            "type": "search",
            "amazon_domain": "amazon.com",
            "search_term": keywords,
            "sort_by": "featured",
            "page": "1",
        }
        payload = await self._get_json("Rainforest", self.settings.rainforest_endpoint, params)
        results = [item for item in payload.get("search_results") or [] if isinstance(item, dict)]
        return [normalize_rainforest_result(item, keywords) for item in results[: self.settings.product_search_limit]]

    async def smart_lookup(
        self,
        image_url: str,
        user_prompt: Optional[str] = None,
        crop_region: Optional[CropRegion] = None,
    ) -> SmartLookupResponse:
        """Crop, describe in a short shopping query, then search for matching listings"""
        self.vision.require_configured()
        if not self.settings.rainforest_api_key:
            raise ProviderNotConfigured("RAINFOREST_API_KEY")

        data, mime = await fetch_image_bytes(self.http_session, image_url, timeout=self.settings.image_fetch_timeout)
        if crop_region is not None:
            # Cropped output is always re-encoded as PNG
            data, mime = crop_image(data, crop_region), "image/png"
        image = EncodedImage(base64=base64.b64encode(data).decode("ascii"), mime=mime)

        keywords = await self.extract_keywords(image, user_prompt)
        products = await self.search_rainforest(keywords)
        if not products:
            raise NoResultsFound("No matching products found", {"keywords": keywords})

        logger.info(f"Smart lookup for '{keywords}' returned {len(products)} products")
        return SmartLookupResponse(keywords=keywords, products=products)
