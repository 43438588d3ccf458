import pytest

from agi_engine.config import AppConfig, ConfigValidationError, load_config
from agi_engine.config.loaders import deep_merge_dicts, expand_env_vars


@pytest.mark.unit
def test_missing_file_yields_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))

    assert config == AppConfig()
    assert config.server.port == 4573
    assert config.session.default_timeout_ms == 5000
    assert config.metrics.enabled is False


@pytest.mark.unit
def test_yaml_with_env_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("AGI_PORT", "4600")
    monkeypatch.delenv("AGI_TIMEOUT", raising=False)
    path = tmp_path / "agi.yaml"
    path.write_text(
        "server:\n"
        "  port: ${AGI_PORT:-4573}\n"
        "session:\n"
        "  default_timeout_ms: ${AGI_TIMEOUT:-7000}\n"
        "logging:\n"
        "  format: json\n"
    )

    config = load_config(str(path))

    assert config.server.port == 4600
    assert config.session.default_timeout_ms == 7000
    assert config.logging.format == "json"
    assert config.server.host == "0.0.0.0"


@pytest.mark.unit
def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("metrics:\n  enabled: true\n  port: 9200\n")
    monkeypatch.setenv("AGI_CONFIG", str(path))

    config = load_config()

    assert config.metrics.enabled is True
    assert config.metrics.port == 9200


@pytest.mark.unit
def test_local_override_is_merged(tmp_path):
    (tmp_path / "agi.yaml").write_text("server:\n  host: 0.0.0.0\n  port: 4573\n")
    (tmp_path / "agi.local.yaml").write_text("server:\n  port: 4700\n")

    config = load_config(str(tmp_path / "agi.yaml"))

    assert config.server.host == "0.0.0.0"
    assert config.server.port == 4700


@pytest.mark.unit
def test_invalid_values_raise_config_error(tmp_path):
    path = tmp_path / "agi.yaml"
    path.write_text("server:\n  port: not-a-port\n")

    with pytest.raises(ConfigValidationError):
        load_config(str(path))


@pytest.mark.unit
def test_expand_env_vars(monkeypatch):
    monkeypatch.setenv("AGI_HOST", "10.0.0.5")
    monkeypatch.setenv("AGI_EMPTY", "")
    monkeypatch.delenv("AGI_UNSET", raising=False)

    assert expand_env_vars("${AGI_HOST:-127.0.0.1}") == "10.0.0.5"
    assert expand_env_vars("${AGI_EMPTY:-fallback}") == "fallback"
    assert expand_env_vars("${AGI_UNSET:=4573}") == "4573"
    assert expand_env_vars("${AGI_UNSET}") == "${AGI_UNSET}"


@pytest.mark.unit
def test_deep_merge_dicts_deletes_on_none():
    base = {"server": {"host": "0.0.0.0", "port": 4573}, "metrics": {"enabled": True}}
    merged = deep_merge_dicts(base, {"server": {"port": 4600}, "metrics": None})

    assert merged == {"server": {"host": "0.0.0.0", "port": 4600}}
    assert base["server"]["port"] == 4573
