"""
配置与命令行参数测试
"""

from config.settings import Settings
from main import parse_args


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.server_port == 8088
    assert settings.cadvisor_url == "http://localhost:8080"
    assert settings.monitoring_interval == 10
    assert settings.monitoring_num_stats == 64
    assert settings.monitoring_skip_count == 5
    assert settings.registry_path == "registered"
    assert settings.log_file is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CPERFC_SERVER_PORT", "9000")
    monkeypatch.setenv("CPERFC_CADVISOR_URL", "http://cadvisor:8080")
    settings = Settings(_env_file=None)
    assert settings.server_port == 9000
    assert settings.cadvisor_url == "http://cadvisor:8080"


def test_registry_path_relative_to_cwd(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    settings = Settings(_env_file=None, registry_path="data/registered")
    assert settings.get_registry_path() == tmp_path / "data" / "registered"
    assert (tmp_path / "data").is_dir()


def test_parse_args_only_returns_given_options():
    assert parse_args([]) == {}
    assert parse_args(["--port", "9000", "--cadvisor", "http://cadvisor:8080", "--interval", "2.5"]) == {
        "server_port": 9000,
        "cadvisor_url": "http://cadvisor:8080",
        "monitoring_interval": 2.5,
    }


def test_parse_args_feed_settings():
    settings = Settings(_env_file=None, **parse_args(["--loglevel", "debug", "--registry", "/tmp/reg"]))
    assert settings.log_level == "debug"
    assert settings.registry_path == "/tmp/reg"
