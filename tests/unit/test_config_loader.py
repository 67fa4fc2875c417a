"""
Tests for the YAML configuration loader
"""
import pytest
import yaml

from similar_artists.config_loader import Config


def write_yaml(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


def minimal(**extra):
    data = {"library": {"database_path": "data/library.db"}, "lastfm": {"api_key": "abc"}}
    data.update(extra)
    return data


class TestConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(str(tmp_path / "nope.yaml"))

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError):
            Config(str(path))

    def test_placeholder_api_key_rejected(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LASTFM_API_KEY", raising=False)
        path = write_yaml(tmp_path, minimal(lastfm={"api_key": "YOUR_LASTFM_API_KEY"}))
        with pytest.raises(ValueError, match="lastfm.api_key"):
            Config(path)

    def test_env_api_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LASTFM_API_KEY", "from-env")
        path = write_yaml(tmp_path, {"library": {"database_path": "x.db"}})

        assert Config(path).lastfm_api_key == "from-env"

    def test_missing_library_section(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LASTFM_API_KEY", raising=False)
        with pytest.raises(ValueError, match="library"):
            Config(write_yaml(tmp_path, {"lastfm": {"api_key": "abc"}}))

    @pytest.mark.parametrize("ratio", [1.5, -0.2, "half", True])
    def test_blend_ratio_validated(self, tmp_path, ratio):
        with pytest.raises(ValueError, match="blend_ratio"):
            Config(write_yaml(tmp_path, minimal(discovery={"blend_ratio": ratio})))

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RECCOBEATS_BASE_URL", raising=False)
        config = Config(write_yaml(tmp_path, minimal()))

        assert config.library_ready_timeout == 5.0
        assert config.lastfm_calls_per_second == 5.0
        assert config.reccobeats_base_url == "https://api.reccobeats.com/v1"
        assert config.export_path == "playlists"
        assert config.missed_results_enabled
        assert config.missed_results_max == 10000
        assert not config.cache_clear_on_run
        assert config.ignore_prefixes == ["The"]
        assert config.log_level == "INFO"

    def test_get_and_sections(self, tmp_path):
        config = Config(write_yaml(tmp_path, minimal(output={"export_path": "out"}, discovery={"ignore_prefixes": "The; Die"})))

        assert config.get("output", "export_path") == "out"
        assert config.get("output", "missing", 7) == 7
        assert config.get("nope", "key") is None
        assert config.get_section("output") == {"export_path": "out"}
        assert config.get_section("nope") == {}
        assert config.ignore_prefixes == ["The", "Die"]
