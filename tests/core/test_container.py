import io
import zipfile

import pytest

from wordforge.core.container import ZipContainer
from wordforge.core.exceptions import PackageImportError
from wordforge.core.package_utils import Package


def _zip(members):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


class TestZipContainer:
    """Test cases for the ZIP container."""

    def test_write_and_read(self, temp_dir):
        """Test that parts come back in order with their bytes."""
        package = Package(parts={"[Content_Types].xml": b"<Types/>", "word/document.xml": b"<w:document/>"})
        target = temp_dir / "out.docx"
        ZipContainer.write(package, target)
        parts = ZipContainer.read(target)
        assert list(parts) == ["[Content_Types].xml", "word/document.xml"]
        assert parts["word/document.xml"] == b"<w:document/>"

    def test_bytes(self):
        """Test in-memory writing and reading."""
        data = ZipContainer.to_bytes(Package(parts={"a.xml": b"<a/>"}))
        assert ZipContainer.read(data) == {"a.xml": b"<a/>"}

    @pytest.mark.parametrize("name", ["../evil.xml", "/etc/passwd", "word/../../evil.xml"])
    def test_unsafe_member_rejected(self, name):
        """Test that members escaping the package root are refused."""
        with pytest.raises(PackageImportError):
            ZipContainer.read(_zip({name: b"x"}))

    def test_not_a_zip(self, temp_dir):
        """Test the error for a file that is not an archive."""
        path = temp_dir / "fake.docx"
        path.write_bytes(b"not a zip")
        with pytest.raises(PackageImportError) as excinfo:
            ZipContainer.read(path)
        assert excinfo.value.file_path == str(path)

    def test_missing_file(self, temp_dir):
        """Test the error for a missing file."""
        with pytest.raises(PackageImportError):
            ZipContainer.read(temp_dir / "missing.docx")

    def test_directories_skipped(self):
        """Test that directory entries are not parts."""
        assert ZipContainer.read(_zip({"word/": b"", "word/a.xml": b"<a/>"})) == {"word/a.xml": b"<a/>"}

    def test_read_member(self, temp_dir):
        """Test reading a single member from bytes and from a file."""
        data = _zip({"word/a.xml": b"<a/>", "word/media/image1.png": b"png"})
        assert ZipContainer.read_member(data, "word/media/image1.png") == b"png"
        path = temp_dir / "pkg.docx"
        path.write_bytes(data)
        assert ZipContainer.read_member(path, "word/a.xml") == b"<a/>"

    def test_read_member_missing(self, temp_dir):
        """Test the errors for an absent member and an absent file."""
        with pytest.raises(PackageImportError):
            ZipContainer.read_member(_zip({"word/a.xml": b"<a/>"}), "word/b.xml")
        with pytest.raises(PackageImportError) as excinfo:
            ZipContainer.read_member(temp_dir / "missing.docx", "word/a.xml")
        assert excinfo.value.file_path == str(temp_dir / "missing.docx")
