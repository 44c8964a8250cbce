"""Image resolution: pick the best candidate and mirror it into the asset store."""

from io import BytesIO
from typing import Optional, Sequence

import structlog
from PIL import Image, UnidentifiedImageError

from restockradar.config import settings
from restockradar.core.exceptions import AssetError, FetchError

logger = structlog.get_logger(__name__)


def storage_path(site_key: str, product_id: str) -> str:
    """Deterministic asset path for a product image."""
    return f"product-images/{site_key}/{product_id}.jpg"


def process_image(content: bytes, max_size: int, quality: int) -> bytes:
    """Convert an image to an RGB JPEG fitting inside max_size x max_size.

    Raises:
        AssetError: If the bytes are empty or not a decodable image
    """
    if not content:
        raise AssetError("empty image payload")
    try:
        img = Image.open(BytesIO(content))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise AssetError(f"undecodable image: {e}") from e

    # Convert transparent images to RGB with white background
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    else:
        img = img.convert("RGB")

    img.thumbnail((max_size, max_size), Image.LANCZOS)

    out = BytesIO()
    img.save(out, "JPEG", quality=quality, optimize=True)
    return out.getvalue()


class ImageResolver:
    """Resolves a product's image URL, optionally caching it as a stored asset.

    Without an asset store the first candidate URL is returned as-is. With
    one, an existing asset is reused; otherwise candidates are downloaded in
    order, resized and uploaded. If every candidate fails the remote URL of
    the first candidate is kept.
    """

    def __init__(
        self,
        fetcher=None,
        asset_store=None,
        max_size: Optional[int] = None,
        quality: Optional[int] = None,
    ):
        self.fetcher = fetcher
        self.asset_store = asset_store
        self.max_size = max_size or settings.IMAGE_MAX_SIZE
        self.quality = quality or settings.IMAGE_QUALITY

    @property
    def stores_assets(self) -> bool:
        return self.fetcher is not None and self.asset_store is not None

    async def resolve(
        self, candidates: Sequence[str], site_key: str, product_id: str
    ) -> Optional[str]:
        """Return the image URL to publish for a product.

        Args:
            candidates: Absolute candidate URLs, best first
            site_key: Site configuration key
            product_id: Stable product id

        Returns:
            Public asset URL, remote candidate URL, or None without candidates
        """
        if not candidates:
            return None
        remote = candidates[0]
        if not self.stores_assets:
            return remote

        path = storage_path(site_key, product_id)
        if await self.asset_store.exists(path):
            return self.asset_store.public_url(path)

        for url in candidates:
            try:
                data = await self._download(url)
                public_url = await self.asset_store.upload(path, data)
            except (FetchError, AssetError) as e:
                logger.warning("image_candidate_failed", site=site_key, url=url, error=e.message)
                continue
            logger.info("image_stored", site=site_key, product_id=product_id, path=path)
            return public_url

        return remote

    async def _download(self, url: str) -> bytes:
        response = await self.fetcher.fetch(url, headers={"Accept": "image/*,*/*;q=0.8"})
        if not response.content_type.startswith("image/"):
            raise AssetError(f"not an image: {response.content_type or 'unknown'}")
        return process_image(response.content, self.max_size, self.quality)
