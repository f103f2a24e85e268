from __future__ import annotations

from rakit.config import RakitConfig


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.delenv("RAKIT_CONFIG", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    config = RakitConfig(str(tmp_path / "missing.conf"))
    assert config.get_server_config()["port"] == 8011
    assert config.get_server_config()["cors_origins"] == ["*"]
    assert config.get_cabinet_config() == {
        "default_size_u": 42,
        "min_size_u": 4,
        "max_size_u": 60,
        "max_ports": 48,
    }
    ipdash = config.get_ipdash_config()
    assert ipdash["max_hosts"] == 4096
    assert ipdash["online_window_seconds"] == 600
    assert ipdash["verify_tls"] is False


def test_file_then_environment_then_defaults(tmp_path, monkeypatch):
    conf = tmp_path / "rakit.conf"
    conf.write_text(
        "[server]\nport = 9000\n\n[cabinets]\nmax_ports = 24\n", encoding="utf-8"
    )
    monkeypatch.delenv("RAKIT_CONFIG", raising=False)
    monkeypatch.setenv("RAKIT_SERVER_PORT", "9100")
    monkeypatch.setenv("RAKIT_IPDASH_TIMEOUT_MS", "500")
    monkeypatch.setenv("RAKIT_DATABASE_PATH", str(tmp_path / "x.db"))
    config = RakitConfig(str(conf))
    # The file wins over the environment.
    assert config.get_server_config()["port"] == 9000
    assert config.get_cabinet_config()["max_ports"] == 24
    assert config.get_database_config()["path"] == str(tmp_path / "x.db")
    # Timeouts are floored at one second.
    assert config.get_ipdash_config()["timeout_ms"] == 1000


def test_config_path_from_environment(tmp_path, monkeypatch):
    conf = tmp_path / "alt.conf"
    conf.write_text("[logging]\nlevel = debug\n", encoding="utf-8")
    monkeypatch.setenv("RAKIT_CONFIG", str(conf))
    assert RakitConfig().get_logging_config() == {"level": "DEBUG"}


def test_secret_only_from_environment(monkeypatch):
    monkeypatch.delenv("IP_DASH_SECRET", raising=False)
    assert RakitConfig.get_ip_dash_secret() is None
    monkeypatch.setenv("IP_DASH_SECRET", "s3cret")
    assert RakitConfig.get_ip_dash_secret() == "s3cret"
