"""Host selection by cluster, stage, role and hostname.

Every narrowing call returns a new HostSelector over a narrower view; the
selector it was called on and the registry behind it are left untouched, so
one base selector can be narrowed in several directions::

    base = HostSelector(registry, cluster="eu")
    web = base.get_by_stage("prod").get_by_roles("web")
    db = base.get_by_hostnames("db[1:2]")
"""

import logging
from typing import Any

from hoist.hosts import Host, HostCollection, Localhost
from hoist.range import expand


logger = logging.getLogger(__name__)


class HostResolutionError(Exception):
    """Raised when a cluster, stage, role or hostname matches no host."""

    pass


class NoHostsSpecified(Exception):
    """Raised when a selection is required but no hosts are declared at all."""

    pass


def split_csv(value: str | list[str] | tuple[str, ...]) -> list[str]:
    """Split a comma separated string into trimmed, non-empty tokens."""
    if isinstance(value, str):
        value = value.split(",")
    tokens = [str(token).strip() for token in value]
    return [token for token in tokens if token]


def _matches(host: Host, key: str, wanted: Any) -> bool:
    """Exact attribute match; an empty ``wanted`` matches hosts without one."""
    value = host.get(key) if host.has(key) else None
    if not wanted:
        return value in (None, "")
    return value == wanted


def _roles_of(host: Host) -> set[str]:
    """Role names of ``host``; a string value is read as comma separated."""
    roles = host.get("roles") or []
    if isinstance(roles, str):
        return set(split_csv(roles))
    return {str(role) for role in roles}


class HostSelector:
    """An immutable, narrowed view of a host registry.

    Narrowed selectors keep a reference to the full registry; the implicit
    local host is only offered when that registry is empty, never when a
    narrowing left nothing.

    Attributes:
        default_cluster: Cluster used when get_hosts() is called without one.
        default_stage: Stage used when get_by_stage() is called without one.
    """

    def __init__(
        self,
        hosts: HostCollection,
        cluster: str | None = None,
        stage: str | None = None,
        registry: HostCollection | None = None,
    ):
        self._hosts = hosts
        self._registry = hosts if registry is None else registry
        self.default_cluster = cluster
        self.default_stage = stage

    def _narrow(self, hosts: list[Host]) -> "HostSelector":
        return HostSelector(
            HostCollection.view(hosts),
            cluster=self.default_cluster,
            stage=self.default_stage,
            registry=self._registry,
        )

    def get(self) -> dict[str, Host]:
        """Return the hosts in this view keyed by hostname."""
        return {host.get_hostname(): host for host in self._hosts}

    def hosts(self) -> list[Host]:
        """Return the hosts in this view, in registry order."""
        return list(self._hosts)

    def __len__(self) -> int:
        return len(self._hosts)

    def get_hosts(self, cluster: str | None = None) -> dict[str, Host]:
        """Resolve a cluster to hosts.

        The cluster is the argument, else the default cluster, else "no
        cluster", which selects hosts without a cluster attribute. When no
        host belongs to the cluster but a host has that alias, that host is
        returned instead.

        Args:
            cluster: Cluster name or host alias.

        Returns:
            dict[str, Host]: Matching hosts keyed by hostname. An empty
                registry with no cluster requested yields a single local host.

        Raises:
            HostResolutionError: If nothing matches in a non-empty registry.
                This includes a view narrowed down to no hosts.
            NoHostsSpecified: If a cluster is requested but no hosts exist.
        """
        cluster = cluster or self.default_cluster

        hosts = {
            host.get_hostname(): host
            for host in self._hosts.select(lambda h: _matches(h, "cluster", cluster))
        }
        if hosts:
            logger.debug("Cluster %r resolved to %s", cluster, list(hosts))
            return hosts

        if len(self._registry) == 0:
            if cluster:
                raise NoHostsSpecified(
                    f"No hosts are declared, cannot select `{cluster}`. "
                    "You need to specify at least one host or cluster."
                )
            local = Localhost()
            return {local.get_hostname(): local}

        if cluster and self._hosts.has(cluster):
            return {cluster: self._hosts.get(cluster)}

        if cluster:
            raise HostResolutionError(f"Hostname or cluster `{cluster}` was not found.")
        if len(self._hosts) == 0:
            raise HostResolutionError("No host matches the selection.")
        raise HostResolutionError(
            "Every host belongs to a cluster. Specify a hostname or cluster."
        )

    def get_by_stage(self, stage: str | None = None) -> "HostSelector":
        """Narrow to hosts of a stage (default stage when omitted).

        Raises:
            HostResolutionError: If a stage is given and no host has it.
        """
        stage = stage or self.default_stage
        hosts = self._hosts.select(lambda h: _matches(h, "stage", stage))
        if stage and not hosts:
            raise HostResolutionError(f"Stage `{stage}` was not found.")
        logger.debug("Stage %r resolved to %s", stage, [h.alias for h in hosts])
        return self._narrow(hosts)

    def get_by_hostnames(self, hostnames: str | list[str]) -> "HostSelector":
        """Narrow to explicitly named hosts.

        Args:
            hostnames: Comma separated aliases; each may use range syntax,
                e.g. ``"web[1:3], db1"``.

        Returns:
            HostSelector: The named hosts, in the order given.

        Raises:
            HostResolutionError: If an alias is not in this view.
        """
        aliases = expand(split_csv(hostnames))
        hosts: list[Host] = []
        for alias in aliases:
            if not self._hosts.has(alias):
                raise HostResolutionError(f"Hostname `{alias}` was not found.")
            hosts.append(self._hosts.get(alias))
        logger.debug("Hostnames %r resolved to %s", hostnames, aliases)
        return self._narrow(hosts)

    def get_by_roles(self, roles: str | list[str]) -> "HostSelector":
        """Narrow to hosts having at least one of ``roles``.

        Args:
            roles: Comma separated string or list of role names.

        Raises:
            HostResolutionError: If roles are given and no host has any.
        """
        wanted = set(split_csv(roles))
        hosts = self._hosts.select(
            lambda h: bool(wanted.intersection(_roles_of(h)))
        )
        if wanted and not hosts:
            raise HostResolutionError(f"Role `{', '.join(sorted(wanted))}` was not found.")
        logger.debug("Roles %s resolved to %s", sorted(wanted), [h.alias for h in hosts])
        return self._narrow(hosts)
