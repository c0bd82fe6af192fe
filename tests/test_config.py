"""Tests for settings."""

from truthstack.config import Settings, split_chain


class TestSettings:
    """Test model chain settings."""

    def test_split_chain(self):
        """Test that blanks and whitespace are dropped."""
        assert split_chain(" a, b ,,c ") == ["a", "b", "c"]
        assert split_chain("") == []

    def test_default_chain_order(self):
        """Test the default analysis models, most preferred first."""
        settings = Settings(_env_file=None, MODEL_FALLBACK_CHAIN="x,y")

        assert settings.analysis_models() == ["x", "y"]

    def test_env_override(self, monkeypatch):
        """Test overriding the model chain from the environment."""
        monkeypatch.setenv("DEBATE_MODEL_CHAIN", "gemini-1.5-pro-002, gemini-2.0-flash")

        settings = Settings(_env_file=None)

        assert settings.debate_models() == ["gemini-1.5-pro-002", "gemini-2.0-flash"]
