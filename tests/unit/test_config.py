"""Unit tests for MnemographSettings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mnemograph.config import MnemographSettings
from mnemograph.memory.types import Language
from mnemograph.search.fusion import FusionWeights


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self):
        settings = MnemographSettings()
        assert settings.languages == ["en", "ru"]
        assert settings.capture_min_length == 10
        assert settings.capture_max_length == 2000
        assert settings.max_emoji == 3
        assert settings.max_captures_per_conversation == 3
        assert settings.hybrid_weight == 0.7
        assert settings.recall_limit == 5
        assert settings.min_score == 0.3
        assert settings.duplicate_threshold == 0.95
        assert settings.ollama_model == "mxbai-embed-large"
        assert settings.collection_name == "memories"

    def test_paths_unset_by_default(self):
        settings = MnemographSettings()
        assert settings.get_sqlite_path() is None
        assert settings.get_chroma_path() is None


class TestEnvironment:
    """Settings are read from MNEMOGRAPH_ variables."""

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MNEMOGRAPH_HYBRID_WEIGHT", "0.5")
        monkeypatch.setenv("MNEMOGRAPH_AUTO_CAPTURE", "false")
        settings = MnemographSettings()
        assert settings.hybrid_weight == 0.5
        assert settings.auto_capture is False

    def test_env_languages_json(self, monkeypatch):
        monkeypatch.setenv("MNEMOGRAPH_LANGUAGES", '["cs"]')
        assert MnemographSettings().languages == ["cs"]

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            MnemographSettings(hybrid_weight=1.5)


class TestLanguages:
    """Tests for the languages validator."""

    def test_comma_separated(self):
        settings = MnemographSettings(languages="ru, cs")
        assert settings.languages == ["ru", "cs"]
        assert settings.get_languages() == [Language.RU, Language.CS]

    def test_unknown_codes_dropped(self):
        assert MnemographSettings(languages=["en", "de"]).languages == ["en"]

    def test_falls_back_to_defaults(self):
        assert MnemographSettings(languages=["de"]).languages == ["en", "ru"]


class TestHelpers:
    """Tests for conversion helpers."""

    def test_fusion_weights(self):
        settings = MnemographSettings(graph_overlap_score=0.4, importance_weight=0.2)
        assert settings.get_fusion_weights() == FusionWeights(
            graph_overlap_score=0.4,
            graph_only_score=0.7,
            importance_weight=0.2,
        )

    def test_paths_resolved(self, tmp_path):
        settings = MnemographSettings(sqlite_path=tmp_path / "graph.db")
        assert settings.get_sqlite_path() == (tmp_path / "graph.db").resolve()
        assert settings.get_chroma_path() is None
        assert isinstance(settings.get_sqlite_path(), Path)
