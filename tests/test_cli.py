import zipfile

import pytest

from wordforge.__main__ import main
from wordforge.core.services import PackageService


@pytest.fixture
def sample_docx(context, temp_dir):
    context.add_paragraph("Hello")
    context.numbering.create_numbered_list()
    context.add_comment(context.body[0], "Ada Lovelace", "Check this")
    return PackageService().save(context, temp_dir / "sample.docx")


class TestCommandLine:
    """Test cases for the wordforge command."""

    def test_inspect(self, sample_docx, restore_logging, capsys):
        """Test the package summary."""
        assert main(["inspect", str(sample_docx)]) == 0
        out = capsys.readouterr().out
        assert "Blocks:      1" in out
        assert "Comments:    1" in out
        assert "Lists:       1 instance(s), 1 definition(s)" in out

    def test_resave_with_cleanup(self, sample_docx, temp_dir, restore_logging, capsys):
        """Test that cleanup drops the unused list from the written copy."""
        target = temp_dir / "clean.docx"
        assert main(["resave", str(sample_docx), str(target), "--cleanup"]) == 0
        assert f"Wrote {target}" in capsys.readouterr().out
        with zipfile.ZipFile(target) as archive:
            assert "word/numbering.xml" not in archive.namelist()
        assert PackageService().load(target).get_text() == "Hello"

    def test_resave_keeps_content(self, sample_docx, temp_dir, restore_logging):
        target = temp_dir / "copy.docx"
        assert main(["resave", str(sample_docx), str(target)]) == 0
        assert PackageService().load(target).numbering.get_instance_count() == 1

    def test_bad_file_returns_error(self, temp_dir, restore_logging):
        """Test the exit code for a file that is not a package."""
        bogus = temp_dir / "bogus.docx"
        bogus.write_bytes(b"not a zip")
        assert main(["inspect", str(bogus)]) == 1

    def test_missing_command(self, restore_logging):
        with pytest.raises(SystemExit):
            main([])
