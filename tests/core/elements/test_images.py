import asyncio

import pytest

from wordforge.core.elements.images import (
    Image,
    ImageManager,
    ImageManagerOptions,
    InlineImage,
)
from wordforge.core.exceptions import (
    ImageCountLimitError,
    ImageLoadError,
    ImageNotLoadedError,
    ImageSizeLimitError,
    TotalImageSizeLimitError,
    ValidationError,
)
from wordforge.core.registry import IdentifierRegistry, IdSpace

MB = 1024 * 1024


def _lazy(data: bytes) -> Image:
    return Image(lambda: data, extension="png")


class TestImage:
    """Test cases for the image value."""

    def test_extension_sniffed_from_bytes(self, png_bytes):
        """Test that bytes without an extension are identified."""
        assert Image(png_bytes).extension == "png"
        assert Image(b"\xff\xd8\xff\xe0rest").extension == "jpeg"

    def test_extension_from_path(self, temp_dir, png_bytes):
        """Test that path sources take their suffix and load lazily."""
        path = temp_dir / "logo.PNG"
        path.write_bytes(png_bytes)
        image = Image(path)
        assert image.extension == "png"
        assert not image.is_loaded
        assert image.get_size() is None
        assert image.load() == png_bytes

    def test_not_loaded(self, temp_dir):
        """Test that reading unloaded bytes raises."""
        image = Image(temp_dir / "missing.png")
        with pytest.raises(ImageNotLoadedError):
            image.get_image_data()
        with pytest.raises(ImageLoadError):
            image.load()

    def test_extent(self, png_bytes):
        """Test the EMU extent at 96 dpi."""
        assert Image(png_bytes).get_extent_emu() == (914400, 457200)

    def test_extent_keeps_aspect(self, png_bytes):
        """Test that one given dimension scales the other."""
        assert Image(png_bytes, width_emu=1828800).get_extent_emu() == (1828800, 914400)

    def test_release_keeps_in_memory_bytes(self, png_bytes):
        """Test that only reloadable images drop their bytes."""
        in_memory = Image(png_bytes)
        in_memory.release_data()
        assert in_memory.is_loaded
        lazy = _lazy(png_bytes)
        lazy.load()
        lazy.release_data()
        assert not lazy.is_loaded

    def test_drawing_requires_registration(self, png_bytes):
        """Test that an unregistered image cannot be drawn."""
        with pytest.raises(ValidationError):
            Image(png_bytes).to_drawing_xml()


class TestImageManagerRegistration:
    """Test cases for image registration."""

    def test_filenames_and_ids(self, png_bytes):
        """Test sequential filenames and drawing ids."""
        manager = ImageManager()
        first, second = Image(png_bytes), Image(png_bytes)
        assert manager.register_image(first, "rId5") == "image1.png"
        assert manager.register_image(second, "rId6") == "image2.png"
        assert (first.relationship_id, first.doc_pr_id) == ("rId5", 1)
        assert second.doc_pr_id == 2
        assert manager.get_entry("rId6").part_name == "word/media/image2.png"

    def test_same_relationship_is_idempotent(self, png_bytes):
        """Test that a relationship id maps to one asset."""
        manager = ImageManager()
        manager.register_image(Image(png_bytes), "rId7")
        other = Image(png_bytes)
        assert manager.register_image(other, "rId7") == "image1.png"
        assert manager.get_image_count() == 1
        assert other.doc_pr_id == 1

    def test_count_quota(self, png_bytes):
        """Test the image count limit and its remediation text."""
        manager = ImageManager(options=ImageManagerOptions(max_image_count=2))
        manager.register_image(Image(png_bytes), "rId1")
        manager.register_image(Image(png_bytes), "rId2")
        with pytest.raises(ImageCountLimitError) as excinfo:
            manager.register_image(Image(png_bytes), "rId3")
        assert excinfo.value.limit == 2
        assert excinfo.value.actual == 3
        assert "max_image_count" in excinfo.value.remediation
        assert manager.get_image_count() == 2

    def test_single_size_quota(self):
        """Test the per-image size limit."""
        manager = ImageManager(options=ImageManagerOptions(max_single_image_size_mb=2))
        with pytest.raises(ImageSizeLimitError) as excinfo:
            manager.register_image(Image(b"\x89PNG" + b"\0" * (2 * MB)), "rId1")
        assert "Compressing the image" in excinfo.value.remediation

    def test_total_size_quota(self):
        """Test the total size limit."""
        manager = ImageManager(options=ImageManagerOptions(max_total_image_size_mb=1.5,
                                                           max_single_image_size_mb=2))
        manager.register_image(Image(b"\x89PNG" + b"\0" * MB), "rId1")
        with pytest.raises(TotalImageSizeLimitError):
            manager.register_image(Image(b"\x89PNG" + b"\0" * MB), "rId2")

    def test_unloaded_sizes_checked_later(self):
        """Test that lazy images skip size checks until validate_limits."""
        manager = ImageManager(options=ImageManagerOptions(max_single_image_size_mb=2))
        manager.register_image(_lazy(b"\0" * (3 * MB)), "rId1")
        manager.validate_limits()
        asyncio.run(manager.load_all_image_data())
        with pytest.raises(ImageSizeLimitError):
            manager.validate_limits()

    def test_remove(self, png_bytes):
        """Test removal frees the relationship key."""
        manager = ImageManager()
        image = Image(png_bytes)
        manager.register_image(image, "rId1")
        assert manager.remove_image(image) is True
        assert manager.get_entry("rId1") is None
        assert manager.remove_image(image) is False

    def test_initialize_from_loaded_images(self, png_bytes):
        """Test that new filenames skip past loaded ones."""
        registry = IdentifierRegistry()
        manager = ImageManager(registry)
        manager.register_image(Image(png_bytes), "rId9", filename="image7.png")
        manager.initialize_from_loaded_images()
        assert registry.peek(IdSpace.IMAGE) == 8
        assert manager.register_image(Image(png_bytes), "rId10") == "image8.png"

    def test_inline_image(self, png_bytes):
        """Test the drawing run."""
        manager = ImageManager()
        image = Image(png_bytes, description="Logo")
        manager.register_image(image, "rId4")
        run = InlineImage(image, manager).to_xml()
        inline = run.find_path("w:drawing", "wp:inline")
        assert inline.find("wp:extent").get("cx") == "914400"
        assert inline.find("wp:docPr").get("descr") == "Logo"
        blip = next(inline.iter("a:blip"))
        assert blip.get("r:embed") == "rId4"

    def test_mime_types(self):
        """Test MIME lookup."""
        assert ImageManager.get_mime_type("JPG") == "image/jpeg"
        assert ImageManager.get_mime_type(".gif") == "image/gif"
        assert ImageManager.get_mime_type("xyz") == "image/png"


class TestImageManagerBulkLoad:
    """Test cases for batched loading."""

    def test_batches_and_progress(self, png_factory):
        """Test progress reports and per-image failures."""
        manager = ImageManager()
        for i in range(7):
            manager.register_image(_lazy(png_factory(8 + i, 8)), f"rId{i + 1}")

        def fail():
            raise OSError("gone")

        manager.register_image(Image(fail, extension="png"), "rId99")
        progress = []
        result = asyncio.run(manager.load_all_image_data(
            concurrency=3, on_progress=lambda done, total: progress.append((done, total))
        ))

        assert result.total == 8
        assert result.loaded == 7
        assert result.failed == ["image8.png"]
        assert [p[0] for p in progress] == list(range(1, 9))
        assert all(total == 8 for _, total in progress)

    def test_nothing_pending(self, png_bytes):
        """Test that loaded images are not reloaded."""
        manager = ImageManager()
        manager.register_image(Image(png_bytes), "rId1")
        result = asyncio.run(manager.load_all_image_data())
        assert result.total == 0

    @pytest.mark.parametrize("concurrency", [0, 51, True, 2.5])
    def test_concurrency_validated(self, concurrency):
        """Test the allowed concurrency range."""
        with pytest.raises(ValidationError):
            asyncio.run(ImageManager().load_all_image_data(concurrency=concurrency))

    def test_release_and_stats(self, png_factory):
        """Test that releasing drops bytes but keeps registrations."""
        manager = ImageManager()
        image = _lazy(png_factory())
        manager.register_image(image, "rId1")
        asyncio.run(manager.load_all_image_data())
        stats = manager.get_stats()
        assert stats["count"] == 1
        assert stats["total_size"] == stats["average_size"] > 0
        manager.release_all_image_data()
        assert not image.is_loaded
        assert manager.get_total_size() == 0
        assert manager.get_filename(image) == "image1.png"
        assert asyncio.run(manager.get_total_size_async()) == stats["total_size"]
