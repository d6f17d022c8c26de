"""Tests for host selection (selector.py).

The ``fleet`` fixture (conftest.py) holds web1..web3 and db1 in cluster
"eu", us1 in cluster "us" and an unclustered bastion.
"""

import pytest

from hoist.hosts import Host, HostCollection, Localhost
from hoist.selector import (
    HostResolutionError,
    HostSelector,
    NoHostsSpecified,
    split_csv,
)


def _aliases(selector: HostSelector) -> list[str]:
    return [host.alias for host in selector.hosts()]


# ---------------------------------------------------------------------------
# get_hosts
# ---------------------------------------------------------------------------


def test_get_hosts_by_cluster(fleet):
    hosts = HostSelector(fleet).get_hosts("eu")
    assert list(hosts) == ["web1", "web2", "web3", "db1"]


def test_get_hosts_without_cluster_selects_unclustered(fleet):
    assert list(HostSelector(fleet).get_hosts()) == ["bastion"]


def test_get_hosts_uses_default_cluster(fleet):
    selector = HostSelector(fleet, cluster="us")

    assert list(selector.get_hosts()) == ["us1"]
    assert list(selector.get_hosts("eu")) == ["web1", "web2", "web3", "db1"]


def test_get_hosts_falls_back_to_alias():
    registry = HostCollection([Host("prod"), Host("web1").cluster("eu")])
    hosts = HostSelector(registry).get_hosts("prod")

    assert list(hosts) == ["prod"]
    assert hosts["prod"] is registry.get("prod")


def test_get_hosts_alias_fallback_only_when_cluster_empty(fleet):
    """A clustered host addressed by alias is still found."""
    assert list(HostSelector(fleet).get_hosts("db1")) == ["db1"]


def test_get_hosts_unknown_cluster_raises(fleet):
    with pytest.raises(HostResolutionError, match="mars"):
        HostSelector(fleet).get_hosts("mars")


def test_get_hosts_empty_registry_yields_localhost():
    hosts = HostSelector(HostCollection()).get_hosts()

    assert len(hosts) == 1
    (host,) = hosts.values()
    assert isinstance(host, Localhost)


def test_get_hosts_empty_registry_with_cluster_raises():
    with pytest.raises(NoHostsSpecified):
        HostSelector(HostCollection()).get_hosts("eu")


def test_get_hosts_all_clustered_without_cluster_raises():
    registry = HostCollection([Host("web1").cluster("eu")])
    with pytest.raises(HostResolutionError):
        HostSelector(registry).get_hosts()


# ---------------------------------------------------------------------------
# get_by_stage
# ---------------------------------------------------------------------------


def test_get_by_stage(fleet):
    base = HostSelector(fleet, cluster="eu", stage="staging")
    prod = base.get_by_stage("prod")

    assert _aliases(prod) == ["web1", "web2", "web3", "us1"]
    assert prod.default_cluster == "eu"
    assert prod.default_stage == "staging"


def test_get_by_stage_uses_default_stage(fleet):
    assert _aliases(HostSelector(fleet, stage="staging").get_by_stage()) == ["db1"]


def test_get_by_stage_without_stage_selects_unstaged(fleet):
    assert _aliases(HostSelector(fleet).get_by_stage()) == ["bastion"]


def test_get_by_stage_unknown_raises(fleet):
    with pytest.raises(HostResolutionError, match="qa"):
        HostSelector(fleet).get_by_stage("qa")


# ---------------------------------------------------------------------------
# get_by_hostnames
# ---------------------------------------------------------------------------


def test_get_by_hostnames_expands_ranges():
    registry = HostCollection([Host("host1"), Host("host2"), Host("host3"), Host("other")])
    selector = HostSelector(registry).get_by_hostnames("host[1:3]")

    assert _aliases(selector) == ["host1", "host2", "host3"]
    assert selector.hosts()[0] is registry.get("host1")


def test_get_by_hostnames_keeps_given_order_and_trims(fleet):
    assert _aliases(HostSelector(fleet).get_by_hostnames(" db1 , web2,,")) == ["db1", "web2"]


def test_get_by_hostnames_accepts_list(fleet):
    assert _aliases(HostSelector(fleet).get_by_hostnames(["us1", "web[1:2]"])) == [
        "us1", "web1", "web2",
    ]


def test_get_by_hostnames_missing_alias_raises(fleet):
    with pytest.raises(HostResolutionError, match="web4"):
        HostSelector(fleet).get_by_hostnames("web[1:9]")


# ---------------------------------------------------------------------------
# get_by_roles
# ---------------------------------------------------------------------------


def test_get_by_roles_csv(fleet):
    assert _aliases(HostSelector(fleet).get_by_roles("db, cron")) == ["db1", "us1"]


def test_get_by_roles_list(fleet):
    assert _aliases(HostSelector(fleet).get_by_roles(["backup"])) == ["db1"]


def test_get_by_roles_unknown_raises(fleet):
    with pytest.raises(HostResolutionError, match="gpu"):
        HostSelector(fleet).get_by_roles("gpu")


def test_get_by_roles_reads_string_attribute_as_names():
    registry = HostCollection([Host("web1").set("roles", "web, cron"), Host("db1").roles("db")])
    selector = HostSelector(registry)

    assert _aliases(selector.get_by_roles("cron")) == ["web1"]
    with pytest.raises(HostResolutionError):
        selector.get_by_roles("w")


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def test_narrowing_chains(fleet):
    hosts = HostSelector(fleet).get_by_stage("prod").get_by_roles("web").get_hosts("eu")
    assert list(hosts) == ["web1", "web2", "web3"]


def test_narrowing_never_mutates_base(fleet):
    base = HostSelector(fleet)
    base.get_by_stage("prod")
    base.get_by_roles("db")
    base.get_by_hostnames("web1")

    assert len(base) == 6
    assert len(fleet) == 6
    assert fleet.get("web1").registry is fleet


def test_narrowed_view_only_sees_its_hosts(fleet):
    staging = HostSelector(fleet).get_by_stage("staging")
    with pytest.raises(HostResolutionError):
        staging.get_by_hostnames("web1")


def test_get_returns_mapping(fleet):
    selected = HostSelector(fleet).get_by_hostnames("web1").get()
    assert list(selected) == ["web1"]


def test_split_csv():
    assert split_csv("a, b ,,c") == ["a", "b", "c"]
    assert split_csv([" a ", ""]) == ["a"]


def test_narrowed_to_nothing_never_yields_localhost():
    registry = HostCollection([Host("web1").stage("prod"), Host("web2").stage("prod")])
    selector = HostSelector(registry)

    for empty in (
        selector.get_by_stage(),
        selector.get_by_roles([]),
        selector.get_by_hostnames(""),
    ):
        assert len(empty) == 0
        with pytest.raises(HostResolutionError, match="No host matches"):
            empty.get_hosts()


def test_narrowed_view_keeps_cluster_errors(fleet):
    staging = HostSelector(fleet).get_by_stage("staging")
    with pytest.raises(HostResolutionError, match="us"):
        staging.get_hosts("us")
