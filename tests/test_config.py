"""Tests for environment configuration."""

import os

import pytest

from fmql.config import FmqlConfig


class TestFromEnv:
    """Tests for FmqlConfig.from_env."""

    def test_defaults(self):
        """Test the defaults for an empty environment."""
        config = FmqlConfig.from_env({})
        assert config.log_level == "WARNING"
        assert config.output_format == "text"
        assert config.like_case_sensitive is False
        assert config.history_file == os.path.expanduser("~/.fmql_history")

    def test_values(self):
        """Test reading every variable."""
        config = FmqlConfig.from_env({
            "FMQL_LOG_LEVEL": "debug",
            "FMQL_OUTPUT_FORMAT": "JSON",
            "FMQL_LIKE_CASE_SENSITIVE": "yes",
            "FMQL_HISTORY_FILE": "/var/tmp/history",
        })
        assert config.log_level == "DEBUG"
        assert config.output_format == "json"
        assert config.like_case_sensitive is True
        assert config.history_file == "/var/tmp/history"

    @pytest.mark.parametrize("value", ["false", "0", "no", ""])
    def test_false_values(self, value):
        """Test values that leave LIKE case-insensitive."""
        assert FmqlConfig.from_env({"FMQL_LIKE_CASE_SENSITIVE": value}).like_case_sensitive is False

    def test_reads_os_environ(self, monkeypatch):
        """Test that os.environ is used by default."""
        monkeypatch.setenv("FMQL_OUTPUT_FORMAT", "json")
        assert FmqlConfig.from_env().output_format == "json"


class TestValidate:
    """Tests for FmqlConfig.validate."""

    def test_valid(self):
        """Test that the defaults validate."""
        FmqlConfig().validate()

    def test_unknown_format(self):
        """Test that an unknown output format is rejected."""
        with pytest.raises(ValueError, match="output format"):
            FmqlConfig(output_format="xml").validate()

    def test_unknown_level(self):
        """Test that an unknown log level is rejected."""
        with pytest.raises(ValueError, match="log level"):
            FmqlConfig(log_level="LOUD").validate()
