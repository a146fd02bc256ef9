"""Shared configuration loader for the NFT updater."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .envstore import EnvFileStore

class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""

DEFAULT_CONFIG_PATH = Path.home() / ".nft-updater.yaml"
DEFAULT_ENV_FILE = Path(".env")
DEFAULT_API_URL = "https://api.shyft.to/sol/v2/nft/update"
DEFAULT_API_TIMEOUT = 60.0
DEFAULT_RPC_TIMEOUT = 30.0

PRIVATE_KEY_VAR = "PRIVATE_KEY_BASE64"
FEE_PAYER_KEY_VAR = "FEE_PAYER_PRIVATE_KEY"

@dataclass(frozen=True)
class UpdaterConfig:
    """Settings resolved once at process entry and passed to every stage."""

    api_key: str | None = None
    rpc_node: str | None = None
    private_key: str | None = None
    fee_payer_private_key: str | None = None
    api_url: str = DEFAULT_API_URL
    api_timeout: float = DEFAULT_API_TIMEOUT
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    strict_key_arrays: bool = False
    env_file: Path = DEFAULT_ENV_FILE

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(
                "API_KEY is not set; export it, add it to .env, or pass it in the config file"
            )
        return self.api_key

    def require_rpc_node(self) -> str:
        if not self.rpc_node:
            raise ConfigurationError(
                "RPC_NODE is not set; export it, add it to .env, or pass --rpc-node"
            )
        return self.rpc_node

def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Expected {path} to contain a YAML object with an 'updater' section"
        )
    return loaded

def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None

def _coerce_timeout(raw: Any, *, source: str) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        timeout = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout in {source}: {raw}") from exc
    if timeout <= 0:
        raise ConfigurationError(f"Timeout in {source} must be positive: {raw}")
    return timeout

def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return default

def _validate_url(raw: str | None, *, label: str) -> str | None:
    if not raw:
        return None
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid {label} URL: {raw}")
    return raw

def load_updater_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    env_file: str | Path | None = None,
) -> UpdaterConfig:
    """Load updater settings from overrides, the environment, ``.env`` and YAML.

    Earlier sources win: explicit overrides, then process environment, then
    the ``.env`` file, then the ``updater`` section of the YAML config file.
    """

    env_map = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path is not None else DEFAULT_CONFIG_PATH
    file_config = _load_config_file(path, required=config_path is not None)
    section = file_config.get("updater", {})
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected 'updater' to be a mapping in {path}")

    override_map = dict(overrides or {})
    env_path = Path(
        _first_value(env_file, env_map.get("NFT_UPDATER_ENV_FILE"), default=DEFAULT_ENV_FILE)
    ).expanduser()
    dotenv_map = EnvFileStore(env_path).values()

    def lookup(name: str, yaml_key: str, override_key: str | None = None) -> Any:
        return _first_value(
            override_map.get(override_key or yaml_key),
            env_map.get(name),
            dotenv_map.get(name),
            section.get(yaml_key),
        )

    key_policy = section.get("key_policy") or {}
    if not isinstance(key_policy, dict):
        raise ConfigurationError(f"Expected 'key_policy' to be a mapping in {path}")
    strict_arrays = _first_value(
        _coerce_bool(override_map.get("strict_key_arrays")),
        _coerce_bool(env_map.get("NFT_UPDATER_STRICT_KEY_ARRAYS")),
        _coerce_bool(dotenv_map.get("NFT_UPDATER_STRICT_KEY_ARRAYS")),
        _coerce_bool(key_policy.get("strict_arrays")),
        False,
    )

    timeout = _coerce_timeout(
        lookup("NFT_UPDATER_TIMEOUT", "timeout"), source="NFT_UPDATER_TIMEOUT/timeout"
    )

    return UpdaterConfig(
        api_key=lookup("API_KEY", "api_key"),
        rpc_node=_validate_url(lookup("RPC_NODE", "rpc_node"), label="RPC node"),
        private_key=lookup(PRIVATE_KEY_VAR, "private_key"),
        fee_payer_private_key=lookup(FEE_PAYER_KEY_VAR, "fee_payer_private_key"),
        api_url=_validate_url(
            lookup("NFT_UPDATER_API_URL", "api_url"), label="update API"
        )
        or DEFAULT_API_URL,
        api_timeout=timeout or DEFAULT_API_TIMEOUT,
        rpc_timeout=timeout or DEFAULT_RPC_TIMEOUT,
        strict_key_arrays=bool(strict_arrays),
        env_file=env_path,
    )
