import logging
import logging.handlers

from wordforge.logging_config import setup_logging


class TestSetupLogging:
    """Test cases for logging initialisation."""

    def test_configured_from_yaml(self, restore_logging):
        """Test handlers from logging.yml and the redirected log file."""
        setup_logging()
        logger = logging.getLogger("wordforge")
        assert logger.level == logging.INFO
        assert logger.propagate is False
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename == str(restore_logging / "wordforge.log")
        assert (restore_logging / "wordforge.log").exists()

    def test_user_override(self, restore_logging, isolated_config):
        """Test that a user logging.yml changes logger levels."""
        (isolated_config / "logging.yml").write_text(
            "loggers:\n  wordforge:\n    level: DEBUG\n    handlers: [console]\n", encoding="utf-8"
        )
        setup_logging()
        logger = logging.getLogger("wordforge")
        assert logger.level == logging.DEBUG
        assert not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers)

    def test_fallback_without_config(self, restore_logging, isolated_config):
        """Test console logging when the config has no version."""
        (isolated_config / "logging.yml").write_text("version: null\n", encoding="utf-8")
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert any(isinstance(h, logging.StreamHandler) for h in root.handlers)

    def test_debug_modules(self, restore_logging, monkeypatch):
        """Test per-module DEBUG overrides from the environment."""
        monkeypatch.setenv("WORDFORGE_DEBUG_MODULES", "wordforge.debugged")
        setup_logging()
        logger = logging.getLogger("wordforge.debugged")
        assert logger.level == logging.DEBUG
        assert any(h.level == logging.DEBUG for h in logger.handlers)
