"""配置加载与热重载校验测试"""

import json
from pathlib import Path

import pytest

from src.config.settings import Config, get_config_file_path, reload_config
from src.config.watcher import ConfigWatcher

EXAMPLE_CONFIG = Path(__file__).resolve().parents[2] / "config" / "example.json"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CONFIG_PATH", "LOG_LEVEL", "KIRO_DB_PATH", "HOST", "PORT"):
        monkeypatch.delenv(name, raising=False)


def write_config(path, data: dict) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestConfigLoading:
    def test_defaults_when_file_missing(self, tmp_path):
        config = Config.from_file_sync(str(tmp_path / "missing.json"))

        assert config.kiro.region == "us-east-1"
        assert config.kiro.max_retries == 3
        assert config.server.port == 8080
        assert config.api_key is None
        assert config.models.default == "claude-opus-4.5"
        assert config.models.mapping["claude-sonnet-4-5"] == "claude-sonnet-4.5"

    async def test_async_load(self, tmp_path):
        path = write_config(
            tmp_path / "settings.json",
            {"kiro": {"region": "eu-west-1", "db_path": "/tmp/kiro.db"}, "api_key": "secret"},
        )
        config = await Config.from_file(path)

        assert config.kiro.region == "eu-west-1"
        assert config.kiro.db_path == "/tmp/kiro.db"
        assert config.api_key == "secret"
        assert config.logging.level == "INFO"

    def test_example_config_is_valid(self):
        config = Config.from_file_sync(str(EXAMPLE_CONFIG))
        assert config.kiro.timeout == 300
        assert config.logging.rotation == "10 MB"

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = write_config(tmp_path / "settings.json", {"logging": {"level": "INFO"}})
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("KIRO_DB_PATH", "/data/kiro.sqlite3")

        config = Config.from_file_sync(path)

        assert config.logging.level == "DEBUG"
        assert config.kiro.db_path == "/data/kiro.sqlite3"

    async def test_server_config_env(self, monkeypatch):
        monkeypatch.setenv("HOST", "127.0.0.1")
        monkeypatch.setenv("PORT", "9999")

        assert await Config().get_server_config() == ("127.0.0.1", 9999)

    def test_invalid_retries_rejected(self, tmp_path):
        path = write_config(tmp_path / "settings.json", {"kiro": {"max_retries": 0}})
        with pytest.raises(ValueError):
            Config.from_file_sync(path)

    def test_config_path_from_env(self, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", "/etc/kiro/settings.json")
        assert get_config_file_path() == "/etc/kiro/settings.json"

    async def test_reload_replaces_global(self, tmp_path):
        path = write_config(tmp_path / "settings.json", {"kiro": {"region": "us-west-2"}})
        config = await reload_config(path)
        assert config.kiro.region == "us-west-2"


class TestConfigWatcher:
    async def test_validate_config_file(self, tmp_path):
        path = write_config(tmp_path / "settings.json", {"server": {"port": 8081}})
        assert await ConfigWatcher(path).validate_config_file()

    async def test_invalid_json_rejected(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        assert not await ConfigWatcher(str(path)).validate_config_file()

    async def test_invalid_values_rejected(self, tmp_path):
        path = write_config(tmp_path / "settings.json", {"server": {"port": 0}})
        assert not await ConfigWatcher(path).validate_config_file()

    async def test_callbacks_run_after_valid_change(self, tmp_path):
        path = write_config(tmp_path / "settings.json", {})
        watcher = ConfigWatcher(path)
        calls = []

        async def callback():
            calls.append("reloaded")

        watcher.add_reload_callback(callback)
        await watcher.process_config_change()

        assert calls == ["reloaded"]

    async def test_callbacks_skipped_for_invalid_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[]", encoding="utf-8")
        watcher = ConfigWatcher(str(path))
        calls = []

        async def callback():
            calls.append("reloaded")

        watcher.add_reload_callback(callback)
        await watcher.process_config_change()

        assert calls == []

    async def test_failing_callback_does_not_block_others(self, tmp_path):
        path = write_config(tmp_path / "settings.json", {})
        watcher = ConfigWatcher(path)
        calls = []

        async def failing():
            raise RuntimeError("boom")

        async def succeeding():
            calls.append("ok")

        watcher.add_reload_callback(failing)
        watcher.add_reload_callback(succeeding)
        await watcher.process_config_change()

        assert calls == ["ok"]

    async def test_missing_file_not_watched(self, tmp_path):
        watcher = ConfigWatcher(str(tmp_path / "missing.json"))
        await watcher.start_watching()

        assert watcher.observer is None
        watcher.stop_watching()
