from __future__ import annotations

import io
import logging

import httpx
from PIL import Image, UnidentifiedImageError

from .types import ImageAsset

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 15 * 1024 * 1024

_EXTENSIONS = {"JPEG": "jpg", "TIFF": "tif"}


class SpotPriceResolver:
    """CoinGecko ``/simple/price`` lookup."""

    def __init__(self, api_base: str, timeout: float = 15.0) -> None:
        self.api_base = api_base.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_prices(self, asset: str, fiat: str) -> dict[str, dict[str, float]]:
        resp = await self._client.get(
            f"{self.api_base}/simple/price",
            params={"ids": asset, "vs_currencies": fiat},
        )
        resp.raise_for_status()
        return resp.json()

    async def get_price(self, asset: str = "solana", fiat: str = "usd") -> float:
        data = await self.get_prices(asset, fiat)
        try:
            return float(data[asset][fiat])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"No {asset}/{fiat} price in response: {data!r}") from exc


class ImageFetcher:
    def __init__(self, timeout: float = 15.0, max_bytes: int = MAX_IMAGE_BYTES) -> None:
        self.max_bytes = max_bytes
        self._client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, image_uri: str) -> ImageAsset | None:
        """Download ``image_uri``; ``None`` when the body is too large or not an image.

        Transport and HTTP status errors propagate to the caller.
        """
        resp = await self._client.get(image_uri)
        resp.raise_for_status()
        data = resp.content
        if len(data) > self.max_bytes:
            logger.warning("Image %s too large (%d bytes)", image_uri, len(data))
            return None
        asset = sniff_image(data)
        if asset is None:
            logger.warning("Unrecognized image format at %s", image_uri)
        return asset


def sniff_image(data: bytes) -> ImageAsset | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return None

    if not fmt:
        return None
    mime = Image.MIME.get(fmt) or f"image/{fmt.lower()}"
    ext = _EXTENSIONS.get(fmt, fmt.lower())
    return ImageAsset(data=data, ext=ext, mime=mime)
