from __future__ import annotations

from pathlib import Path

import pytest

from pulse_relay.config import ConfigLocator, ConfigRepository, RelayConfig, TopicConfig
from pulse_relay.errors import ConfigurationError


def test_locator_uses_env_and_creates_directories(tmp_path: Path) -> None:
    locator = ConfigLocator()
    assert locator.project_root == tmp_path.resolve()
    assert locator.data_dir.exists()
    assert locator.logs_dir.exists()
    assert locator.config_path() == locator.data_dir / "relay_config.yaml"


def test_missing_file_writes_defaults(temp_config_repository: ConfigRepository) -> None:
    config = temp_config_repository.load_config()
    assert config == RelayConfig()
    assert temp_config_repository.config_path.exists()


def test_roundtrip(temp_config_repository: ConfigRepository) -> None:
    config = RelayConfig(
        topics=[TopicConfig(name="alpha", query="example.com/coin/", url_pattern="example.com")],
        replay_window=7,
    )
    temp_config_repository.save_config(config)
    reloaded = ConfigRepository(temp_config_repository.locator).load_config()
    assert reloaded == config


def test_json_config_is_supported(tmp_path: Path) -> None:
    path = tmp_path / "relay.json"
    path.write_text('{"topics": [{"name": "beta", "query": "q"}], "poll_interval_s": 3}', encoding="utf-8")
    repository = ConfigRepository(ConfigLocator(), config_path=path)
    config = repository.load_config()
    assert config.topics[0].name == "beta"
    assert config.poll_interval_s == 3


@pytest.mark.parametrize(
    "content",
    [
        "topics: [",
        "- just\n- a list\n",
        "topics:\n  - name: Bad Name\n    query: q\n",
        "topics: []\n",
    ],
)
def test_malformed_config_is_configuration_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigRepository(ConfigLocator(), config_path=path).load_config()


def test_missing_credential_is_configuration_error(
    temp_config_repository: ConfigRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("SOCIALDATA_API_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        temp_config_repository.resolve_api_key()


def test_credential_from_environment_and_dotenv(
    temp_config_repository: ConfigRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SOCIALDATA_API_KEY", "from-env")
    assert temp_config_repository.resolve_api_key() == "from-env"

    monkeypatch.delenv("SOCIALDATA_API_KEY")
    env_file = temp_config_repository.locator.env_file()
    env_file.write_text("SOCIALDATA_API_KEY=from-dotenv\n", encoding="utf-8")
    try:
        assert temp_config_repository.resolve_api_key() == "from-dotenv"
    finally:
        monkeypatch.delenv("SOCIALDATA_API_KEY", raising=False)
