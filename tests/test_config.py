from care_dispatch.config import DispatchConfig


def test_defaults() -> None:
    config = DispatchConfig()
    assert config.default_unit_limit == 5
    assert config.default_facility_limit == 3
    assert config.min_fuel_level == 20.0


def test_from_env_reads_overrides(monkeypatch) -> None:
    monkeypatch.setenv("DISPATCH_DB_PATH", "/tmp/custom.db")
    monkeypatch.setenv("DISPATCH_DEFAULT_UNIT_LIMIT", "8")
    monkeypatch.setenv("DISPATCH_MIN_FUEL_LEVEL", "12.5")
    monkeypatch.setenv("DISPATCH_SEED_DEMO_DATA", "no")
    monkeypatch.setenv("DISPATCH_LOG_LEVEL", "debug")
    monkeypatch.setenv("DISPATCH_CORS_ORIGINS", "https://ops.example.org, https://er.example.org")

    config = DispatchConfig.from_env()

    assert config.db_path == "/tmp/custom.db"
    assert config.default_unit_limit == 8
    assert config.min_fuel_level == 12.5
    assert config.seed_demo_data is False
    assert config.log_level == "DEBUG"
    assert config.cors_origins == ["https://ops.example.org", "https://er.example.org"]


def test_from_env_ignores_bad_numbers(monkeypatch) -> None:
    monkeypatch.setenv("DISPATCH_DEFAULT_UNIT_LIMIT", "many")
    monkeypatch.setenv("DISPATCH_DEFAULT_FACILITY_LIMIT", "0")

    config = DispatchConfig.from_env()

    assert config.default_unit_limit == 5
    assert config.default_facility_limit == 1


def test_server_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("DISPATCH_HOST", "127.0.0.1")
    monkeypatch.setenv("DISPATCH_PORT", "9100")
    monkeypatch.setenv("DISPATCH_RELOAD", "true")

    config = DispatchConfig.from_env()

    assert (config.host, config.port, config.reload) == ("127.0.0.1", 9100, True)
