"""Asset store for product images.

LocalAssetStore writes files under a root directory and serves them from a
configured public base URL. Paths are relative, e.g.
"product-images/{site_key}/{product_id}.jpg".
"""

import asyncio
from pathlib import Path, PurePosixPath
from typing import Optional, Union

import structlog

from restockradar.config import settings
from restockradar.core.exceptions import AssetError

logger = structlog.get_logger(__name__)


class LocalAssetStore:
    """Filesystem-backed asset store."""

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        public_base_url: Optional[str] = None,
    ):
        self.root = Path(root or settings.ASSET_ROOT)
        self.public_base_url = (public_base_url or settings.ASSET_PUBLIC_BASE_URL).rstrip("/")

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise AssetError(f"invalid asset path: {path}")
        return self.root.joinpath(*relative.parts)

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.lstrip('/')}"

    async def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    async def upload(self, path: str, data: bytes) -> str:
        """Write an asset and return its public URL.

        Raises:
            AssetError: If the file cannot be written
        """
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            raise AssetError(f"failed to store {path}: {e}") from e
        logger.debug("asset_uploaded", path=path, bytes=len(data))
        return self.public_url(path)

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(target)
