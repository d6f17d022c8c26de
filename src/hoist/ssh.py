"""SSH connection arguments for hosts, including proxy chains."""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from hoist.command import escape_arg

if TYPE_CHECKING:
    from hoist.hosts import Host


logger = logging.getLogger(__name__)

# Connection sharing, applied when a host enables multiplexing.
MULTIPLEXING_OPTIONS = {
    "ControlMaster": "auto",
    "ControlPath": "~/.ssh/sockets/hoist-%r@%h:%p",
    "ControlPersist": "10m",
}

# Words made only of these characters need no quoting.
SAFE_WORD = re.compile(r"[\w@%+=:,./~-]+")


class ProxyNotFound(Exception):
    """Raised when a host names a connection proxy that is not registered."""

    pass


class ProxyCycleError(Exception):
    """Raised when connection proxies reference each other in a loop."""

    pass


def quote_word(value: str) -> str:
    """Quote ``value`` for the shell unless it is a plain safe word."""
    if SAFE_WORD.fullmatch(value):
        return value
    return escape_arg(value)


@dataclass(frozen=True)
class SshArguments:
    """Ordered ssh command-line flags.

    Each entry is a ``(flag, value)`` pair; boolean flags have a value of
    None. A flag appears at most once, and so does each ``-o`` option key.

    Attributes:
        entries: The flags in the order they were added.
    """

    entries: tuple[tuple[str, str | None], ...] = ()

    def with_flag(self, flag: str, value: "str | int | None" = None) -> "SshArguments":
        """Return a copy with ``flag`` set, replacing any earlier value in place.

        ``-o Key=value`` is handled as an option, so it only replaces an
        earlier ``-o`` with the same key.
        """
        if flag == "-o" and value is not None:
            option, sep, option_value = str(value).partition("=")
            if sep:
                return self.with_option(option.strip(), option_value)
            return self._replace(lambda f, v: f == "-o" and v == str(value), (flag, str(value)))
        entry = (flag, None if value is None else str(value))
        return self._replace(lambda f, v: f == flag, entry)

    def with_option(self, option: str, value: "str | int") -> "SshArguments":
        """Return a copy with ``-o option=value`` set."""
        prefix = f"{option}="
        entry = ("-o", f"{option}={value}")
        return self._replace(
            lambda f, v: f == "-o" and v is not None and v.startswith(prefix), entry
        )

    def _replace(self, matches, entry: tuple[str, str | None]) -> "SshArguments":
        entries = list(self.entries)
        for index, (flag, value) in enumerate(entries):
            if matches(flag, value):
                entries[index] = entry
                return SshArguments(tuple(entries))
        entries.append(entry)
        return SshArguments(tuple(entries))

    def argv(self) -> list[str]:
        """Flags as separate argv words, for direct process execution."""
        words: list[str] = []
        for flag, value in self.entries:
            words.append(flag)
            if value is not None:
                words.append(value)
        return words

    def __str__(self) -> str:
        return " ".join(quote_word(word) for word in self.argv())

    def __bool__(self) -> bool:
        return bool(self.entries)


def ssh_target(host: "Host") -> str:
    """Return ``user@hostname``, or the bare hostname when no user is set."""
    user = host.get_user()
    real = host.get_real_hostname()
    return f"{user}@{real}" if user else real


def build_ssh_arguments(host: "Host", _chain: tuple[str, ...] = ()) -> SshArguments:
    """Compute the ssh flags for ``host`` from its current settings.

    Flags are emitted in the order port, config file, identity file, agent
    forwarding, multiplexing options, extra flags, extra options and finally
    the ProxyCommand of a connection proxy. The proxy's own arguments are
    resolved recursively against the host's registry.

    Args:
        host: The host to connect to.

    Returns:
        SshArguments: The flags.

    Raises:
        ProxyNotFound: If the named proxy is not in the host's registry.
        ProxyCycleError: If the proxy chain loops back onto itself.
    """
    chain = _chain + (host.alias,)
    args = SshArguments()

    if host.get_port():
        args = args.with_flag("-p", host.get_port())
    if host.get_config_file():
        args = args.with_flag("-F", host.get_config_file())
    if host.get_identity_file():
        args = args.with_flag("-i", host.get_identity_file())
    if host.is_forward_agent():
        args = args.with_flag("-A")
    if host.is_multiplexing():
        for option, value in MULTIPLEXING_OPTIONS.items():
            args = args.with_option(option, value)
    for flag, value in host.get_extra_ssh_flags().items():
        args = args.with_flag(flag, value)
    for option, value in host.get_extra_ssh_options().items():
        args = args.with_option(option, value)

    proxy_alias = host.connection_proxy()
    if proxy_alias:
        if proxy_alias in chain:
            loop = " -> ".join(chain + (proxy_alias,))
            raise ProxyCycleError(f"Connection proxy loop: {loop}.")
        registry = host.registry
        if registry is None or not registry.has(proxy_alias):
            raise ProxyNotFound(f"Cannot find host {proxy_alias} for proxying.")
        proxy = registry.get(proxy_alias)
        logger.debug("Resolving connection proxy %s for %s", proxy_alias, host.alias)

        if proxy.is_local:
            proxy_args = proxy.get_ssh_arguments()
        else:
            proxy_args = build_ssh_arguments(proxy, chain)
        words = ["ssh -W %h:%p"]
        if proxy_args:
            words.append(str(proxy_args))
        words.append(escape_arg(ssh_target(proxy)))
        # Rendered by SshArguments as one single-quoted word, 'ProxyCommand=...',
        # not ProxyCommand="..."; the shell yields the same argument either way.
        args = args.with_option("ProxyCommand", " ".join(words))

    return args


def build_connect_argv(host: "Host", remote_command: str, tty: bool = True) -> list[str]:
    """Build the argv of an interactive ssh session to ``host``.

    Args:
        host: Target host.
        remote_command: Shell text run on the remote side.
        tty: Request a pseudo-terminal (``-t``).

    Returns:
        list[str]: ``["ssh", "-t", *flags, "user@host", remote_command]``.
    """
    argv = ["ssh"]
    if tty:
        argv.append("-t")
    argv.extend(host.get_ssh_arguments().argv())
    argv.append(ssh_target(host))
    argv.append(remote_command)
    return argv


def render_connect_command(host: "Host", remote_command: str, tty: bool = True) -> str:
    """Shell-rendered form of :func:`build_connect_argv`."""
    args = str(host.get_ssh_arguments())
    words = ["ssh"]
    if tty:
        words.append("-t")
    if args:
        words.append(args)
    words.append(escape_arg(ssh_target(host)))
    words.append(escape_arg(remote_command))
    return " ".join(words)
