"""Run configuration, built once at startup and passed into the sync engine."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigError
from .imap import IMAP_PORT, SearchQuery
from .index import get_index_path

CONFIG_FILE = "config.yaml"

ENV_HOST = "MAILWATCH_HOST"
ENV_USER = "MAILWATCH_USER"
ENV_PASSWORD = "MAILWATCH_PASSWORD"


@dataclass
class AccountConfig:
    """IMAP account to fetch from."""
    host: str = "gmail"
    user: str = ""
    password: str = ""
    port: int = IMAP_PORT

    def missing(self) -> list[str]:
        """Names of required settings that are unset."""
        missing = []
        if not self.user:
            missing.append(ENV_USER)
        if not self.password:
            missing.append(ENV_PASSWORD)
        return missing


@dataclass
class SyncConfig:
    """Everything a sync run needs: where to store, and what to fetch."""
    basedir: Path
    query: SearchQuery = field(default_factory=SearchQuery)
    dry_run: bool = False

    @property
    def index_path(self) -> Path:
        return get_index_path(self.basedir)


def get_config_path(basedir: str | Path) -> Path:
    """Get path to the optional config.yaml under a storage base."""
    return Path(basedir) / CONFIG_FILE


def _read_config(config_path: Path) -> dict:
    """Read the ``account`` mapping from config.yaml, or {} if there is none."""
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Can't read {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: expected a mapping at top level")
    account = data.get("account") or {}
    if not isinstance(account, dict):
        raise ConfigError(f"{config_path}: 'account' must be a mapping")
    return account


def load_account(
    basedir: str | Path,
    host: str | None = None,
    user: str | None = None,
    password: str | None = None,
) -> AccountConfig:
    """Resolve account settings: explicit values, then environment, then config.yaml."""
    data = {}
    config_path = get_config_path(basedir)
    if config_path.exists():
        data = _read_config(config_path)

    return AccountConfig(
        host=host or os.environ.get(ENV_HOST) or data.get("host", "gmail"),
        user=user or os.environ.get(ENV_USER) or data.get("user", ""),
        password=password or os.environ.get(ENV_PASSWORD) or data.get("password", ""),
        port=int(data.get("port", IMAP_PORT)),
    )


def save_account(account: AccountConfig, basedir: str | Path) -> Path:
    """Save account settings to config.yaml. Returns the path written."""
    config_path = get_config_path(basedir)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    acct_data: dict = {"host": account.host, "user": account.user}
    if account.password:
        acct_data["password"] = account.password
    if account.port != IMAP_PORT:
        acct_data["port"] = account.port

    with open(config_path, "w") as f:
        yaml.dump({"account": acct_data}, f, default_flow_style=False, sort_keys=False)
    return config_path
