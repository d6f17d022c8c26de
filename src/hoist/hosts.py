"""Host records and the host registry."""

import re
from typing import Any, Callable, Iterable, Iterator

from hoist import context
from hoist.ssh import SshArguments, build_ssh_arguments


DEFAULT_SHELL_COMMAND = "bash -s"

# A trailing "/suffix" on an alias names a connection profile, not part of
# the network address.
PROFILE_SUFFIX = re.compile(r"/.+$")


class HostNotFound(KeyError):
    """Raised when an alias is not present in a registry."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


def _flatten(values: Iterable[Any]) -> list[Any]:
    flat: list[Any] = []
    for value in values:
        if isinstance(value, (list, tuple, set)):
            flat.extend(_flatten(value))
        else:
            flat.append(value)
    return flat


class Host:
    """One remote target.

    Connection settings are configured with chained setters::

        Host("web1").user("deploy").port(2222).cluster("eu").roles("app", "cron")

    Everything else lives in a generic attribute store (``set``/``get``).
    Stored values may be zero-argument callables; they are evaluated with this
    host as the active context the first time they are read.

    Attributes:
        alias: Selection key, unique within a registry.
        registry: The registry this host was added to, used to resolve
            connection proxies. None until the host is registered.
    """

    is_local = False

    def __init__(self, alias: str):
        self.alias = alias
        self.registry: "HostCollection | None" = None
        self._real_hostname = PROFILE_SUFFIX.sub("", alias)
        self._user: str | None = None
        self._port: int | None = None
        self._config_file: str | None = None
        self._identity_file: str | None = None
        self._forward_agent = True
        self._multiplexing: bool | None = None
        self._shell_command = DEFAULT_SHELL_COMMAND
        self._ssh_flags: dict[str, str | None] = {}
        self._ssh_options: dict[str, str] = {}
        self._config: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"Host(alias={self.alias!r})"

    def __str__(self) -> str:
        user = self.get_user()
        real = self.get_real_hostname()
        return f"{user}@{real}" if user else real

    # -- attribute store ----------------------------------------------------

    def set(self, key: str, value: Any) -> "Host":
        """Store an attribute (a plain value or a zero-argument callable)."""
        self._config[key] = value
        return self

    def add(self, key: str, values: list[Any]) -> "Host":
        """Append ``values`` to the list attribute ``key``."""
        existing = list(self._config.get(key) or [])
        existing.extend(values)
        self._config[key] = existing
        return self

    def has(self, key: str) -> bool:
        return key in self._config or key in self._builtin_keys()

    def get(self, key: str, default: Any = None) -> Any:
        """Read an attribute, evaluating and caching deferred values.

        Besides stored attributes, ``alias``, ``hostname``, ``user`` and
        ``port`` are always readable.
        """
        if key in self._config:
            value = self._config[key]
            if callable(value):
                with context.bound(self):
                    value = value()
                self._config[key] = value
            return value
        builtins = self._builtin_keys()
        if key in builtins:
            return builtins[key]()
        return default

    def all(self) -> dict[str, Any]:
        """Return a snapshot of the stored attributes."""
        return dict(self._config)

    def parse(self, value: Any) -> Any:
        """Resolve ``{{key}}`` references in ``value`` against this host."""
        return context.parse(value, self)

    def _builtin_keys(self) -> dict[str, Callable[[], Any]]:
        return {
            "alias": lambda: self.alias,
            "hostname": self.get_real_hostname,
            "user": self.get_user,
            "port": self.get_port,
        }

    # -- connection settings ------------------------------------------------

    def get_hostname(self) -> str:
        return self.parse(self.alias)

    def get_real_hostname(self) -> str:
        """Network address: the configured hostname without a ``/suffix``."""
        return self.parse(self._real_hostname)

    def hostname(self, hostname: str) -> "Host":
        self._real_hostname = PROFILE_SUFFIX.sub("", hostname)
        return self

    def get_user(self) -> str | None:
        return self.parse(self._user)

    def user(self, user: str) -> "Host":
        self._user = user
        return self

    def get_port(self) -> int | None:
        return self._port

    def port(self, port: int) -> "Host":
        self._port = port
        return self

    def get_config_file(self) -> str | None:
        return self._config_file

    def config_file(self, config_file: str) -> "Host":
        self._config_file = config_file
        return self

    def get_identity_file(self) -> str | None:
        return self.parse(self._identity_file)

    def identity_file(self, identity_file: str) -> "Host":
        self._identity_file = identity_file
        return self

    def is_forward_agent(self) -> bool:
        return self._forward_agent

    def forward_agent(self, forward_agent: bool = True) -> "Host":
        self._forward_agent = forward_agent
        return self

    def is_multiplexing(self) -> bool | None:
        return self._multiplexing

    def multiplexing(self, multiplexing: bool = True) -> "Host":
        self._multiplexing = multiplexing
        return self

    def get_shell_command(self) -> str:
        return self._shell_command

    def shell_command(self, shell_command: str) -> "Host":
        self._shell_command = shell_command
        return self

    def get_extra_ssh_flags(self) -> dict[str, str | None]:
        return dict(self._ssh_flags)

    def get_extra_ssh_options(self) -> dict[str, str]:
        return dict(self._ssh_options)

    def ssh_flags(self, flags: dict[str, str | None]) -> "Host":
        self._ssh_flags.update(flags)
        return self

    def add_ssh_flag(self, flag: str, value: str | None = None) -> "Host":
        self._ssh_flags[flag] = value
        return self

    def ssh_options(self, options: dict[str, Any]) -> "Host":
        for option, value in options.items():
            self.add_ssh_option(option, value)
        return self

    def add_ssh_option(self, option: str, value: Any) -> "Host":
        self._ssh_options[option] = str(value)
        return self

    def get_ssh_arguments(self) -> SshArguments:
        """Build the ssh flags for this host from its current settings."""
        return build_ssh_arguments(self)

    # -- grouping -----------------------------------------------------------

    def cluster(self, cluster: str) -> "Host":
        return self.set("cluster", cluster)

    def stage(self, stage: str) -> "Host":
        return self.set("stage", stage)

    def roles(self, *roles: Any) -> "Host":
        self.set("roles", [])
        return self.add("roles", _flatten(roles))

    def become(self, user: str) -> "Host":
        return self.set("become", user)

    def with_connection_proxy(self, proxy: str) -> "Host":
        return self.set("connection-proxy", proxy)

    def connection_proxy(self) -> str:
        return self.get("connection-proxy", "") or ""

    def get_description(self) -> str:
        """Human readable label for listings.

        Evaluates the ``description`` template with this host as the active
        context, falling back to ``user@hostname``.
        """
        if "description" in self._config:
            with context.bound(self):
                return str(self.parse(self.get("description")))
        return str(self)


class Localhost(Host):
    """The implicit local target used when no hosts are declared."""

    is_local = True

    def __init__(self, alias: str = "localhost"):
        super().__init__(alias)
        self._forward_agent = False

    def get_ssh_arguments(self) -> SshArguments:
        return SshArguments()


class HostCollection:
    """Ordered, unique-by-alias collection of hosts.

    Adding a host whose alias is already present replaces the earlier record
    and keeps its position. A collection created with ``claim=False`` is a
    view: it does not become the owning registry of the hosts it holds.
    """

    def __init__(self, hosts: Iterable[Host] = (), claim: bool = True):
        self._hosts: dict[str, Host] = {}
        self._claim = claim
        for host in hosts:
            self.add(host)

    @classmethod
    def view(cls, hosts: Iterable[Host]) -> "HostCollection":
        """Build a non-owning collection over ``hosts``."""
        return cls(hosts, claim=False)

    def add(self, host: Host) -> Host:
        self._hosts[host.alias] = host
        if self._claim:
            host.registry = self
        return host

    def get(self, alias: str) -> Host:
        """Look up a host by alias.

        Raises:
            HostNotFound: If no host has that alias.
        """
        try:
            return self._hosts[alias]
        except KeyError:
            raise HostNotFound(f"Host '{alias}' not found.") from None

    def has(self, alias: str | None) -> bool:
        return alias is not None and alias in self._hosts

    def select(self, predicate: Callable[[Host], bool]) -> list[Host]:
        """Return the hosts matching ``predicate``, in insertion order."""
        return [host for host in self._hosts.values() if predicate(host)]

    def aliases(self) -> list[str]:
        return list(self._hosts)

    def __contains__(self, alias: object) -> bool:
        return alias in self._hosts

    def __iter__(self) -> Iterator[Host]:
        return iter(list(self._hosts.values()))

    def __len__(self) -> int:
        return len(self._hosts)
