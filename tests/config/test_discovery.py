"""Tests for config discovery."""

from pathlib import Path

import pytest

from querystate.config.discovery import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    ConfigNotFoundError,
    ConfigSource,
    find_config,
    locate_config,
)


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


class TestFindConfig:
    def test_finds_in_current_dir(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("[api]\n")
        assert find_config(tmp_path) == config_file

    def test_walks_up(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("[api]\n")
        child = tmp_path / "a" / "b" / "c"
        child.mkdir(parents=True)
        assert find_config(child) == config_file

    def test_nearest_file_wins(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("[api]\n")
        inner = tmp_path / "dashboard"
        inner.mkdir()
        (inner / CONFIG_FILENAME).write_text("[api]\n")
        assert find_config(inner / ".") == inner / CONFIG_FILENAME

    def test_returns_none_when_not_found(self, tmp_path: Path) -> None:
        child = tmp_path / "empty"
        child.mkdir()
        assert find_config(child) is None


class TestLocateConfig:
    def test_flag_beats_env_and_walk_up(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("[api]\n")
        from_env = tmp_path / "env.toml"
        from_env.write_text("[api]\n")
        from_flag = tmp_path / "flag.toml"
        from_flag.write_text("[api]\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(from_env))
        location = locate_config(str(from_flag), start=tmp_path)
        assert location.path == from_flag
        assert location.source is ConfigSource.FLAG

    def test_env_beats_walk_up(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("[api]\n")
        custom = tmp_path / "custom.toml"
        custom.write_text("[api]\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(custom))
        assert locate_config(start=tmp_path / "elsewhere").path == custom
        assert locate_config(start=tmp_path).source is ConfigSource.ENV

    def test_walk_up(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("[api]\n")
        location = locate_config(start=tmp_path)
        assert location.path == tmp_path / CONFIG_FILENAME
        assert location.source is ConfigSource.WALK_UP

    def test_nothing_found(self, tmp_path: Path) -> None:
        location = locate_config(start=tmp_path)
        assert location.path is None
        assert location.source is ConfigSource.NONE

    def test_missing_flag_path(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigNotFoundError, match="from --config") as exc_info:
            locate_config(tmp_path / "nope.toml")
        assert exc_info.value.source is ConfigSource.FLAG

    def test_missing_env_path_does_not_fall_back(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("[api]\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.toml"))
        with pytest.raises(ConfigNotFoundError, match=r"from \$QUERYSTATE_CONFIG"):
            locate_config(start=tmp_path)
