"""Tests for image processing, resolution and the local asset store."""

from io import BytesIO

import pytest
from PIL import Image

from conftest import FakeFetcher
from restockradar.core.exceptions import AssetError
from restockradar.scrapers.utils.images import ImageResolver, process_image, storage_path
from restockradar.services.asset_store import LocalAssetStore

PUBLIC_BASE = "https://assets.example.com"


def _png_bytes(size=(800, 400), mode="RGBA") -> bytes:
    color = (0, 128, 0, 0) if mode == "RGBA" else (0, 128, 0)
    img = Image.new(mode, size, color)
    out = BytesIO()
    img.save(out, "PNG")
    return out.getvalue()


@pytest.fixture
def asset_store(tmp_path) -> LocalAssetStore:
    return LocalAssetStore(root=tmp_path, public_base_url=PUBLIC_BASE + "/")


class TestProcessImage:
    """Test Pillow conversion and resizing."""

    def test_resizes_and_converts_to_jpeg(self):
        data = process_image(_png_bytes(), max_size=400, quality=85)

        img = Image.open(BytesIO(data))
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert img.size == (400, 200)

    def test_transparent_pixels_become_white(self):
        data = process_image(_png_bytes(size=(10, 10)), max_size=400, quality=95)

        r, g, b = Image.open(BytesIO(data)).getpixel((5, 5))
        assert min(r, g, b) > 240

    def test_small_images_are_not_upscaled(self):
        data = process_image(_png_bytes(size=(120, 80), mode="RGB"), max_size=400, quality=85)
        assert Image.open(BytesIO(data)).size == (120, 80)

    @pytest.mark.parametrize("payload", [b"", b"<html>not an image</html>"])
    def test_invalid_payload(self, payload):
        with pytest.raises(AssetError):
            process_image(payload, max_size=400, quality=85)


class TestLocalAssetStore:
    """Test the filesystem asset store."""

    async def test_upload_and_exists(self, asset_store, tmp_path):
        path = storage_path("tokichi", "tokichi_uji_uji")

        assert await asset_store.exists(path) is False
        url = await asset_store.upload(path, b"jpeg-bytes")

        assert url == f"{PUBLIC_BASE}/product-images/tokichi/tokichi_uji_uji.jpg"
        assert await asset_store.exists(path) is True
        assert (tmp_path / "product-images" / "tokichi" / "tokichi_uji_uji.jpg").read_bytes() == b"jpeg-bytes"

    async def test_rejects_path_traversal(self, asset_store):
        with pytest.raises(AssetError):
            await asset_store.upload("../outside.jpg", b"x")


class TestImageResolver:
    """Test candidate selection and idempotent storage."""

    async def test_without_store_returns_first_candidate(self):
        resolver = ImageResolver()
        url = await resolver.resolve(["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"], "s", "p")
        assert url == "https://cdn.example.com/a.jpg"

    async def test_no_candidates(self, asset_store):
        resolver = ImageResolver(fetcher=FakeFetcher(), asset_store=asset_store)
        assert await resolver.resolve([], "s", "p") is None

    async def test_stores_first_working_candidate(self, asset_store, tmp_path):
        """Test that a failing candidate is skipped and the next one stored."""
        fetcher = FakeFetcher({"https://cdn.example.com/good.png": _png_bytes()})
        resolver = ImageResolver(fetcher=fetcher, asset_store=asset_store, max_size=400, quality=85)

        url = await resolver.resolve(
            ["https://cdn.example.com/missing.png", "https://cdn.example.com/good.png"],
            "poppatea",
            "poppatea_matcha_matcha",
        )

        assert url == f"{PUBLIC_BASE}/product-images/poppatea/poppatea_matcha_matcha.jpg"
        stored = tmp_path / "product-images" / "poppatea" / "poppatea_matcha_matcha.jpg"
        assert Image.open(stored).format == "JPEG"

    async def test_existing_asset_is_not_uploaded_again(self, asset_store):
        fetcher = FakeFetcher({"https://cdn.example.com/good.png": _png_bytes()})
        resolver = ImageResolver(fetcher=fetcher, asset_store=asset_store)
        candidates = ["https://cdn.example.com/good.png"]

        first = await resolver.resolve(candidates, "ippodo", "ippodo_sayaka_sayaka")
        second = await resolver.resolve(candidates, "ippodo", "ippodo_sayaka_sayaka")

        assert first == second
        assert fetcher.calls == candidates

    async def test_non_image_response_falls_back_to_remote_url(self, asset_store):
        fetcher = FakeFetcher({"https://cdn.example.com/a.jpg": b"<html></html>"})
        fetcher.content_types["https://cdn.example.com/a.jpg"] = "text/html"
        resolver = ImageResolver(fetcher=fetcher, asset_store=asset_store)

        url = await resolver.resolve(["https://cdn.example.com/a.jpg"], "s", "p")

        assert url == "https://cdn.example.com/a.jpg"
        assert await asset_store.exists(storage_path("s", "p")) is False
