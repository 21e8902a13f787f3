"""Shared fixtures for the wordforge test suite.

Every test gets a fresh :class:`ConfigManager` that ignores the user's own
override directory, so quotas and logging settings always come from the
packaged defaults unless a test writes its own override files.
"""

import io
import logging
import shutil
import tempfile
from pathlib import Path

import pytest
from PIL import Image as PILImage

from wordforge.config import ConfigManager
from wordforge.core.context import DocumentContext
from wordforge.core.elements.images import ImageManagerOptions
from wordforge.core.registry import IdentifierRegistry

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@pytest.fixture
def temp_dir():
    """Creates a temporary directory for test operations."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point user overrides at an empty directory and reset the config singleton."""
    config_dir = tmp_path / "wordforge-config"
    config_dir.mkdir()
    monkeypatch.setenv("WORDFORGE_CONFIG_DIR", str(config_dir))
    ConfigManager.reset_instance()
    yield config_dir
    ConfigManager.reset_instance()


@pytest.fixture
def registry():
    """A fresh identifier registry."""
    return IdentifierRegistry()


@pytest.fixture
def image_options():
    """Default quotas, independent of any config file."""
    return ImageManagerOptions()


@pytest.fixture
def context(image_options):
    """An empty document context with the default styles."""
    return DocumentContext.create_empty(image_options)


@pytest.fixture
def png_factory():
    """Returns a callable producing small PNG images encoded with Pillow."""
    def make_png(width: int = 96, height: int = 48, color=(200, 30, 30)) -> bytes:
        buffer = io.BytesIO()
        PILImage.new("RGB", (width, height), color).save(buffer, format="PNG")
        return buffer.getvalue()
    return make_png


@pytest.fixture
def png_bytes(png_factory):
    """A 96x48 pixel PNG (one inch by half an inch at 96 dpi)."""
    return png_factory()


def _is_pytest_handler(handler):
    return type(handler).__module__.startswith("_pytest")


@pytest.fixture
def restore_logging(monkeypatch, tmp_path):
    """Sends log files to a temp dir and undoes setup_logging() afterwards."""
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("WORDFORGE_LOG_DIR", str(log_dir))
    root = logging.getLogger()
    # pytest attaches its own capture handlers per test phase; leave those alone
    saved_level = root.level
    saved_handlers = [h for h in root.handlers if not _is_pytest_handler(h)]
    yield log_dir
    for name in ("wordforge", "wordforge.core.elements.images", "wordforge.debugged"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
    for handler in list(root.handlers):
        if handler not in saved_handlers and not _is_pytest_handler(handler):
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)
