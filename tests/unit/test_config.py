"""Tests for cloudbackup.core.config."""

from pathlib import Path

import pytest

from cloudbackup.core.config import (
    DEFAULTS,
    _deep_merge,
    config_path,
    load_config,
    load_settings,
    resolve_home,
)
from cloudbackup.core.errors import ConfigurationError
from cloudbackup.core.models import ScheduleKind, identity_for, normalize_path


def _config(tmp_path: Path, paths: dict, **overrides) -> dict:
    """Minimal valid config using the local target."""
    cfg = {
        "working_dir": str(tmp_path / "work"),
        "cloud": "local",
        "targets": {"local": {"path": str(tmp_path / "remote")}},
        "paths": paths,
    }
    cfg.update(overrides)
    return _deep_merge(DEFAULTS, cfg)


class TestDeepMerge:
    def test_nested_merge(self):
        base = {"targets": {"local": {"path": "/a"}}, "cloud": ""}
        override = {"targets": {"rclone": {"remote": "s3:b"}}}
        result = _deep_merge(base, override)
        assert result["targets"] == {"local": {"path": "/a"}, "rclone": {"remote": "s3:b"}}

    def test_does_not_mutate_base(self):
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base["a"]["b"] == 1


class TestLoadConfig:
    def test_returns_defaults_when_no_file(self, tmp_path: Path):
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config["compression_level"] == 2
        assert config["paths"] == {}

    def test_loads_and_merges(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "working-dir: /tmp/work\n"
            "compression_level: 6\n"
            "paths:\n"
            "  /etc: 'daily, no-encryption'\n",
            encoding="utf-8",
        )
        config = load_config(config_file)
        assert config["working_dir"] == "/tmp/work"
        assert config["compression_level"] == 6
        assert config["paths"] == {"/etc": "daily, no-encryption"}
        assert config["log_level"] == "info"

    def test_invalid_yaml_falls_back_to_defaults(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("paths: [unclosed\n", encoding="utf-8")
        assert load_config(config_file) == DEFAULTS

    def test_non_mapping_falls_back_to_defaults(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- just\n- a list\n", encoding="utf-8")
        assert load_config(config_file) == DEFAULTS

    def test_handles_empty_file(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert load_config(config_file) == DEFAULTS


class TestHome:
    def test_env_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("CBK_HOME", str(tmp_path / "custom"))
        assert resolve_home() == (tmp_path / "custom").resolve()
        assert config_path() == (tmp_path / "custom").resolve() / "config.yaml"

    def test_default_home(self, monkeypatch):
        monkeypatch.delenv("CBK_HOME", raising=False)
        assert resolve_home().name == ".cloud-backup"


class TestLoadSettings:
    def test_globals(self, tmp_path: Path):
        cfg = _config(
            tmp_path, {str(tmp_path / "src"): None},
            compression_level=5, weekly="mon,fri", monthly=[1, 15], cloud_dir="backups",
        )
        s = load_settings(cfg, home=tmp_path / "home")
        assert s.working_dir == Path(normalize_path(tmp_path / "work"))
        assert s.working_dir.is_dir()
        assert s.compression_level == 5
        assert s.weekly_days == frozenset({0, 4})
        assert s.monthly_days == frozenset({1, 15})
        assert s.cloud_dir == "backups/"
        assert s.state_file == tmp_path / "home" / "state.csv"
        assert s.log_file == tmp_path / "home" / "cloud-backup.log"

    def test_explicit_state_and_log_files(self, tmp_path: Path):
        cfg = _config(
            tmp_path, {str(tmp_path / "src"): None},
            state_file=str(tmp_path / "st.csv"), log_file=str(tmp_path / "b.log"),
        )
        s = load_settings(cfg, home=tmp_path)
        assert s.state_file == Path(normalize_path(tmp_path / "st.csv"))
        assert s.log_file == Path(normalize_path(tmp_path / "b.log"))

    def test_defaults_for_bare_path(self, tmp_path: Path):
        s = load_settings(_config(tmp_path, {str(tmp_path / "src"): None}), home=tmp_path)
        spec = s.paths[0]
        assert spec.schedule == ScheduleKind.ONCE
        assert spec.compression is True
        assert spec.encryption is False
        assert spec.exclude == ()
        assert spec.target.name == "local"
        assert spec.identity == identity_for(tmp_path / "src")

    def test_password_enables_encryption_by_default(self, tmp_path: Path):
        cfg = _config(
            tmp_path,
            {str(tmp_path / "a"): None, str(tmp_path / "b"): "no-encryption"},
            password="secret",
        )
        a, b = load_settings(cfg, home=tmp_path).paths
        assert a.encryption is True
        assert b.encryption is False

    def test_option_string(self, tmp_path: Path):
        cfg = _config(
            tmp_path,
            {str(tmp_path / "src"): "weekly, no-compression, exclude:*.tmp:cache, rclone"},
            targets={"local": {"path": str(tmp_path)}, "rclone": {"remote": "s3:bucket"}},
        )
        spec = load_settings(cfg, home=tmp_path).paths[0]
        assert spec.schedule == ScheduleKind.WEEKLY
        assert spec.compression is False
        assert spec.exclude == ("*.tmp", "cache")
        assert spec.target.name == "rclone"

    def test_dayly_spelling(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "src"): "dayly"})
        assert load_settings(cfg, home=tmp_path).paths[0].schedule == ScheduleKind.DAILY

    def test_mapping_form(self, tmp_path: Path):
        cfg = _config(
            tmp_path,
            {str(tmp_path / "src"): {
                "schedule": "monthly",
                "exclude": ["*.log", "tmp"],
                "compression": False,
                "encryption": True,
                "cloud": "local",
            }},
            password="pw",
        )
        spec = load_settings(cfg, home=tmp_path).paths[0]
        assert spec.schedule == ScheduleKind.MONTHLY
        assert spec.exclude == ("*.log", "tmp")
        assert spec.compression is False
        assert spec.encryption is True

    def test_paths_keep_config_order(self, tmp_path: Path):
        names = ["c", "a", "b"]
        cfg = _config(tmp_path, {str(tmp_path / n): None for n in names})
        s = load_settings(cfg, home=tmp_path)
        assert [Path(p.path).name for p in s.paths] == names

    def test_target_instances_are_shared(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): None, str(tmp_path / "b"): "local"})
        a, b = load_settings(cfg, home=tmp_path).paths
        assert a.target is b.target

    def test_two_targets_in_one_config(self, tmp_path: Path):
        cfg = _config(
            tmp_path,
            {str(tmp_path / "a"): "ydisk", str(tmp_path / "b"): "gdrive"},
        )
        s = load_settings(cfg, home=tmp_path)
        assert [p.target.name for p in s.paths] == ["ydisk", "gdrive"]
        assert set(s.targets) == {"ydisk", "gdrive"}

    def test_find_by_any_spelling(self, tmp_path: Path):
        src = tmp_path / "src"
        src.mkdir()
        s = load_settings(_config(tmp_path, {str(src): None}), home=tmp_path)
        assert s.find(str(src) + "/") is s.paths[0]
        assert s.find(tmp_path / "other") is None


class TestLoadSettingsErrors:
    def test_missing_working_dir(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): None}, working_dir="")
        with pytest.raises(ConfigurationError, match="working_dir"):
            load_settings(cfg, home=tmp_path)

    @pytest.mark.parametrize("level", [-1, 10, "high"])
    def test_bad_compression_level(self, tmp_path: Path, level):
        cfg = _config(tmp_path, {str(tmp_path / "a"): None}, compression_level=level)
        with pytest.raises(ConfigurationError):
            load_settings(cfg, home=tmp_path)

    def test_no_paths(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="No paths"):
            load_settings(_config(tmp_path, {}), home=tmp_path)

    def test_unknown_option(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): "daily, sometimes"})
        with pytest.raises(ConfigurationError, match="sometimes"):
            load_settings(cfg, home=tmp_path)

    def test_unknown_default_cloud(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): None}, cloud="dropbox")
        with pytest.raises(ConfigurationError, match="dropbox"):
            load_settings(cfg, home=tmp_path)

    def test_unknown_cloud_in_mapping(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): {"cloud": "dropbox"}})
        with pytest.raises(ConfigurationError, match="dropbox"):
            load_settings(cfg, home=tmp_path)

    def test_no_cloud_at_all(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): "daily"}, cloud="")
        with pytest.raises(ConfigurationError, match="not specified"):
            load_settings(cfg, home=tmp_path)

    def test_unknown_mapping_keys(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): {"schedul": "daily", "compresion": False}})
        with pytest.raises(ConfigurationError, match="compresion, schedul"):
            load_settings(cfg, home=tmp_path)

    @pytest.mark.parametrize("key", ["compression", "encryption"])
    @pytest.mark.parametrize("value", ["false", "no", 0, None])
    def test_flags_must_be_booleans(self, tmp_path: Path, key, value):
        cfg = _config(tmp_path, {str(tmp_path / "a"): {key: value}}, password="pw")
        with pytest.raises(ConfigurationError, match=key):
            load_settings(cfg, home=tmp_path)

    def test_encryption_without_password(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): {"encryption": True}})
        with pytest.raises(ConfigurationError, match="password"):
            load_settings(cfg, home=tmp_path)

    def test_duplicate_paths(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): None, str(tmp_path / "a") + "/": None})
        with pytest.raises(ConfigurationError, match="duplicates"):
            load_settings(cfg, home=tmp_path)

    def test_target_config_validated(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): "rclone"})
        with pytest.raises(ConfigurationError, match="remote"):
            load_settings(cfg, home=tmp_path)

    def test_bad_weekday(self, tmp_path: Path):
        cfg = _config(tmp_path, {str(tmp_path / "a"): None}, weekly="caturday")
        with pytest.raises(ConfigurationError):
            load_settings(cfg, home=tmp_path)
