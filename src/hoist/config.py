"""Settings and inventory loading."""

import os
from pathlib import Path
from typing import Any, Literal

import tomllib
from pydantic import BaseModel, ConfigDict, Field, field_validator

from hoist.hosts import Host, HostCollection
from hoist.range import expand_one


DEFAULT_SETTINGS_PATH = Path.home() / ".config" / "hoist" / "settings.toml"
DEFAULT_INVENTORY_NAME = "hoist.toml"


class HoistSettings(BaseModel):
    """User settings.

    Attributes:
        inventory: Path of the inventory file.
        default_cluster: Cluster selected when none is given.
        default_stage: Stage selected when none is given.
        log_level: Logging level name for the hoist logger.
        log_format: "text" or "json" log lines.
    """

    inventory: str = DEFAULT_INVENTORY_NAME
    default_cluster: str | None = None
    default_stage: str | None = None
    log_level: str = "WARNING"
    log_format: Literal["text", "json"] = "text"

    @field_validator("inventory", "default_cluster", "default_stage", mode="before")
    @classmethod
    def expand_env_vars(cls, v: Any) -> Any:
        """Expand environment variables in string fields."""
        if isinstance(v, str):
            return os.path.expandvars(v)
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class HostSpec(BaseModel):
    """One ``[hosts."<alias>"]`` table of the inventory.

    Unset fields leave the host's defaults in place. ``vars`` holds any
    further attributes (``deploy_path``, ``shell_path``, ``edge-id``, ...).
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    hostname: str | None = None
    user: str | None = None
    port: int | None = None
    config_file: str | None = None
    identity_file: str | None = None
    forward_agent: bool | None = None
    multiplexing: bool | None = None
    shell_command: str | None = None
    cluster: str | None = None
    stage: str | None = None
    roles: list[str] = Field(default_factory=list)
    become: str | None = None
    connection_proxy: str | None = Field(default=None, alias="connection-proxy")
    description: str | None = None
    ssh_options: dict[str, str | int] = Field(default_factory=dict)
    vars: dict[str, Any] = Field(default_factory=dict)

    @field_validator("roles", mode="before")
    @classmethod
    def split_roles(cls, v: Any) -> Any:
        """Accept ``roles = "app, cron"`` as well as a list."""
        if isinstance(v, str):
            return [role.strip() for role in v.split(",") if role.strip()]
        return v

    def build(self, alias: str) -> Host:
        """Create a configured Host for ``alias``."""
        host = Host(alias)
        if self.hostname is not None:
            host.hostname(self.hostname)
        if self.user is not None:
            host.user(self.user)
        if self.port is not None:
            host.port(self.port)
        if self.config_file is not None:
            host.config_file(self.config_file)
        if self.identity_file is not None:
            host.identity_file(self.identity_file)
        if self.forward_agent is not None:
            host.forward_agent(self.forward_agent)
        if self.multiplexing is not None:
            host.multiplexing(self.multiplexing)
        if self.shell_command is not None:
            host.shell_command(self.shell_command)
        if self.cluster is not None:
            host.cluster(self.cluster)
        if self.stage is not None:
            host.stage(self.stage)
        host.roles(self.roles)
        if self.become is not None:
            host.become(self.become)
        if self.connection_proxy is not None:
            host.with_connection_proxy(self.connection_proxy)
        if self.description is not None:
            host.set("description", self.description)
        if self.ssh_options:
            host.ssh_options(self.ssh_options)
        for key, value in self.vars.items():
            host.set(key, value)
        return host


class Inventory(BaseModel):
    """Parsed inventory file."""

    hosts: dict[str, HostSpec] = Field(default_factory=dict)

    def to_registry(self) -> HostCollection:
        """Build the host registry, expanding range syntax in aliases.

        Returns:
            HostCollection: Hosts in file order.
        """
        registry = HostCollection()
        for template, spec in self.hosts.items():
            for alias in expand_one(template):
                registry.add(spec.build(alias))
        return registry


def load_settings(path: Path | None = None) -> HoistSettings:
    """Load settings from TOML, or defaults when the file does not exist.

    Raises:
        pydantic.ValidationError: If the file contains invalid values.
    """
    settings_path = path or DEFAULT_SETTINGS_PATH

    if not settings_path.exists():
        return HoistSettings()

    with open(settings_path, "rb") as f:
        data = tomllib.load(f)

    return HoistSettings(**data)


def load_inventory(path: Path) -> HostCollection:
    """Load an inventory file into a host registry.

    A missing file yields an empty registry.

    Raises:
        pydantic.ValidationError: If a host table contains invalid values.
    """
    if not path.exists():
        return HostCollection()

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return Inventory(**data).to_registry()
