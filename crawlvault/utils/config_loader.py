import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PathLike = Union[str, Path]

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "../../config/config.yaml")


class VaultSettings(BaseSettings):
    cassandra_hosts: List[str] = ["127.0.0.1"]
    cassandra_port: int = 9042

    keyspace: str = "crawlvault"
    queue_backend: Literal["cassandra", "memory", "null"] = "cassandra"
    queue_table: str = "queue_overflow"
    queue_name: Optional[str] = None
    queue_schema: Literal["time_ordered", "keyed"] = "time_ordered"
    store_table: str = "pages"
    store_schema: Literal["compact", "flat"] = "flat"

    replication: Union[str, Dict[str, str], None] = None
    durable_writes: bool = True
    table_properties: List[str] = []

    max_attempts: int = 3
    retry_jitter_low: float = 1.5
    retry_jitter_high: float = 2.5

    except_fields: List[str] = []
    include_query_string_in_id: bool = True
    allow_count: bool = True
    claim_with_lwt: bool = False

    log_level: str = "INFO"
    log_path: Optional[str] = "/data/logs/crawlvault.log"
    metrics_port: Optional[int] = None

    model_config = SettingsConfigDict(env_prefix="CRAWLVAULT_", env_file=".env", extra="ignore")

    @field_validator("max_attempts")
    @classmethod
    def _attempts_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be at least 1")
        return value

    @model_validator(mode="after")
    def _jitter_window(self) -> "VaultSettings":
        if self.retry_jitter_low < 0 or self.retry_jitter_low > self.retry_jitter_high:
            raise ValueError(
                f"invalid retry jitter window ({self.retry_jitter_low}, {self.retry_jitter_high})"
            )
        return self

    @property
    def retry_jitter(self) -> tuple:
        return (self.retry_jitter_low, self.retry_jitter_high)


def load_environment(dotenv_path: PathLike | None = None, *, override: bool = False) -> bool:
    """Load environment variables from a .env file.

    Returns True if an env file was found and loaded.
    """
    path = dotenv_path
    if path is None:
        path = find_dotenv(usecwd=True)

    if not path:
        return False

    return load_dotenv(dotenv_path=path, override=override)


def _load_yaml_config(path: PathLike | None = None) -> Dict[str, Any]:
    config_path = path or os.getenv("CRAWLVAULT_CONFIG") or DEFAULT_CONFIG_PATH
    if not os.path.exists(config_path):
        return {}

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def _split_hosts(raw: str) -> List[str]:
    return [host.strip() for host in raw.split(",") if host.strip()]


def load_config(path: PathLike | None = None) -> VaultSettings:
    """Build settings with precedence env -> YAML ``vault:`` section -> defaults."""
    load_environment()
    file_data = _load_yaml_config(path)
    vault_settings: Dict[str, Any] = dict(file_data.get("vault") or {})

    # Environment wins over the file; pydantic-settings gives init kwargs
    # priority, so drop file keys that the environment also sets.
    for key in list(vault_settings):
        if os.getenv(f"CRAWLVAULT_{key.upper()}") is not None:
            vault_settings.pop(key)

    # Plain comma separated hosts are accepted alongside the JSON list form.
    raw_hosts = os.getenv("CASSANDRA_HOSTS")
    if raw_hosts and os.getenv("CRAWLVAULT_CASSANDRA_HOSTS") is None:
        vault_settings["cassandra_hosts"] = _split_hosts(raw_hosts)
    elif isinstance(vault_settings.get("cassandra_hosts"), str):
        vault_settings["cassandra_hosts"] = _split_hosts(vault_settings["cassandra_hosts"])

    return VaultSettings(**vault_settings)
