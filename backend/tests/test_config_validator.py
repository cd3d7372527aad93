"""
Tests for startup configuration validation.
"""
from unittest.mock import MagicMock, patch

import requests

from core.config import OUTLINE_MODEL, PARAGRAPH_MODEL
from core.config_validator import ConfigValidator


def tags_response(*names):
    response = MagicMock()
    response.json.return_value = {"models": [{"name": name} for name in names]}
    return response


class TestConfigValidator:
    """Test ConfigValidator checks."""

    @patch("core.config_validator.requests.get")
    def test_valid_configuration(self, mock_get):
        mock_get.return_value = tags_response(OUTLINE_MODEL, PARAGRAPH_MODEL)

        result = ConfigValidator().validate_all()

        assert result["valid"] is True
        assert result["errors"] == []

    @patch("core.config_validator.requests.get")
    def test_missing_model_is_an_error(self, mock_get):
        """Test that a configured model which is not pulled fails validation."""
        mock_get.return_value = tags_response("some-other-model:latest")

        result = ConfigValidator().validate_all()

        assert result["valid"] is False
        assert any(OUTLINE_MODEL in error for error in result["errors"])

    @patch("core.config_validator.requests.get")
    def test_unreachable_ollama_only_warns(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")

        result = ConfigValidator().validate_all()

        assert any("Cannot connect to Ollama" in warning for warning in result["warnings"])
        assert not any("Required model" in error for error in result["errors"])

    @patch("core.config_validator.requests.get")
    def test_timeout_only_warns(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout()

        result = ConfigValidator().validate_all()

        assert any("timeout" in warning for warning in result["warnings"])

    @patch("core.config_validator.requests.get")
    def test_empty_prompt_file_is_an_error(self, mock_get, tmp_path):
        mock_get.return_value = tags_response(OUTLINE_MODEL, PARAGRAPH_MODEL)
        (tmp_path / "outline_generation.txt").write_text("")

        with patch("core.config.PROMPTS_DIR", tmp_path):
            result = ConfigValidator().validate_all()

        assert "Prompt file is empty: outline_generation.txt" in result["errors"]
        assert any("paragraph_generation.txt" in warning for warning in result["warnings"])
