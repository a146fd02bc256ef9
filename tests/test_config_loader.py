from pathlib import Path

import pytest

from nft_updater.config import (
    DEFAULT_API_URL,
    ConfigurationError,
    UpdaterConfig,
    load_updater_config,
)


@pytest.fixture(autouse=True)
def isolate_default_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("nft_updater.config.DEFAULT_CONFIG_PATH", tmp_path / "home.yaml")


def test_load_config_prefers_environment_over_dotenv_and_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        updater:
          api_key: file_key
          rpc_node: https://file-rpc.example
          private_key: file_private
          timeout: 12
        """
    )
    env_file = tmp_path / ".env"
    env_file.write_text("API_KEY=dotenv_key\nPRIVATE_KEY_BASE64=dotenv_private\n")

    env_map = {"API_KEY": "env_key"}

    config = load_updater_config(config_path=config_path, env=env_map, env_file=env_file)

    assert isinstance(config, UpdaterConfig)
    assert config.api_key == "env_key"
    assert config.private_key == "dotenv_private"
    assert config.rpc_node == "https://file-rpc.example"
    assert config.api_timeout == 12
    assert config.rpc_timeout == 12
    assert config.api_url == DEFAULT_API_URL
    assert config.env_file == env_file


def test_overrides_win_and_strict_arrays_parse(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("updater:\n  key_policy:\n    strict_arrays: true\n")

    config = load_updater_config(
        config_path=config_path,
        env={"RPC_NODE": "https://env-rpc.example"},
        overrides={"rpc_node": "http://127.0.0.1:8899"},
        env_file=tmp_path / "absent.env",
    )

    assert config.rpc_node == "http://127.0.0.1:8899"
    assert config.strict_key_arrays is True


def test_missing_values_are_only_required_on_use(tmp_path: Path) -> None:
    config = load_updater_config(env={}, env_file=tmp_path / "absent.env")

    assert config.api_key is None
    with pytest.raises(ConfigurationError):
        config.require_api_key()
    with pytest.raises(ConfigurationError):
        config.require_rpc_node()


def test_explicit_config_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_updater_config(config_path=tmp_path / "nope.yaml", env={})


@pytest.mark.parametrize(
    "env_map",
    [
        {"RPC_NODE": "not-a-url"},
        {"NFT_UPDATER_TIMEOUT": "soon"},
        {"NFT_UPDATER_TIMEOUT": "-1"},
    ],
)
def test_invalid_values_raise_configuration_error(tmp_path: Path, env_map: dict[str, str]) -> None:
    with pytest.raises(ConfigurationError):
        load_updater_config(env=env_map, env_file=tmp_path / "absent.env")
