"""
Unit tests for cbind settings.
"""

import os

import pytest
from cbind.utils.settings import DEFAULT_SETTINGS, Settings


class TestSettings:
    """Tests for Settings defaults and environment overrides."""

    def test_defaults(self):
        """Test the default values."""
        settings = Settings()
        assert settings.include_whitespace is True
        assert settings.log_level == "WARNING"
        assert settings.json_indent == 2
        assert settings.library_search == []

    def test_search_lists_not_shared(self):
        """Test that each instance owns its search list."""
        a = Settings()
        a.library_search.append("/opt/lib")
        assert Settings().library_search == []
        assert DEFAULT_SETTINGS.library_search == []

    def test_from_empty_env(self):
        """Test that an empty environment gives the defaults."""
        assert Settings.from_env({}) == Settings()

    def test_from_env(self):
        """Test every recognized variable."""
        settings = Settings.from_env({
            "CBIND_LOG_LEVEL": "debug",
            "CBIND_JSON_INDENT": "4",
            "CBIND_LIBRARY_PATH": os.pathsep.join(["/opt/a", "", "/opt/b"]),
        })
        assert settings.log_level == "DEBUG"
        assert settings.json_indent == 4
        assert settings.library_search == ["/opt/a", "/opt/b"]

    def test_invalid_indent(self):
        """Test that a non-numeric indent is rejected."""
        with pytest.raises(ValueError):
            Settings.from_env({"CBIND_JSON_INDENT": "wide"})

    def test_reads_process_environment(self, monkeypatch):
        """Test that os.environ is used by default."""
        monkeypatch.setenv("CBIND_JSON_INDENT", "0")
        monkeypatch.delenv("CBIND_LOG_LEVEL", raising=False)
        monkeypatch.delenv("CBIND_LIBRARY_PATH", raising=False)
        settings = Settings.from_env()
        assert settings.json_indent == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
