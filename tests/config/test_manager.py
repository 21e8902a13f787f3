import logging

from wordforge.config import ConfigManager
from wordforge.core.elements.images import ImageManagerOptions


class TestConfigManager:
    """Test cases for YAML configuration loading."""

    def test_packaged_defaults(self):
        """Test the values shipped with the package."""
        config = ConfigManager()
        limits = config.get_image_limits()
        assert limits["max_image_count"] == 20
        assert limits["max_total_image_size_mb"] == 100
        assert limits["max_single_image_size_mb"] == 20
        assert limits["default_concurrency"] == 5
        assert config.get_logging_config()["version"] == 1

    def test_singleton(self):
        """Test that every call returns the shared instance."""
        assert ConfigManager() is ConfigManager()
        first = ConfigManager()
        ConfigManager.reset_instance()
        assert ConfigManager() is not first

    def test_user_override_merged(self, isolated_config):
        """Test that a user file only replaces the keys it names."""
        (isolated_config / "default_limits.yml").write_text(
            "images:\n  max_image_count: 5\n  default_concurrency: 10\n", encoding="utf-8"
        )
        limits = ConfigManager().get_image_limits()
        assert limits["max_image_count"] == 5
        assert limits["default_concurrency"] == 10
        assert limits["max_single_image_size_mb"] == 20

    def test_invalid_user_file_ignored(self, isolated_config, caplog):
        """Test that a broken override is reported and the defaults kept."""
        (isolated_config / "default_limits.yml").write_text("images: [unclosed\n", encoding="utf-8")
        with caplog.at_level(logging.ERROR):
            limits = ConfigManager().get_image_limits()
        assert limits["max_image_count"] == 20
        assert "Could not parse user config" in caplog.text

    def test_explicit_directory(self, tmp_path):
        """Test a directory passed to the constructor."""
        override_dir = tmp_path / "explicit"
        override_dir.mkdir()
        (override_dir / "default_limits.yml").write_text("images:\n  max_image_count: 2\n", encoding="utf-8")
        assert ConfigManager(override_dir).get_image_limits()["max_image_count"] == 2

    def test_reload(self, isolated_config):
        """Test that reload picks up changed files."""
        config = ConfigManager()
        assert config.get_image_limits()["max_image_count"] == 20
        (isolated_config / "default_limits.yml").write_text("images:\n  max_image_count: 7\n", encoding="utf-8")
        config.reload()
        assert config.get_image_limits()["max_image_count"] == 7

    def test_get_defaults_is_a_copy(self):
        """Test that callers cannot mutate the cached sections."""
        config = ConfigManager()
        config.get_defaults()["limits"]["images"] = {}
        assert config.get_image_limits()

    def test_image_options_from_config(self, isolated_config):
        """Test building image quotas from the limits section."""
        (isolated_config / "default_limits.yml").write_text(
            "images:\n  max_total_image_size_mb: 12.5\n", encoding="utf-8"
        )
        options = ImageManagerOptions.from_config()
        assert options.max_total_image_size_mb == 12.5
        assert options.max_image_count == 20
