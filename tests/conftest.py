"""Shared test fixtures for the hoist test suite."""

import pytest

from hoist.hosts import Host, HostCollection


@pytest.fixture
def fleet() -> HostCollection:
    """A small registry spanning two clusters, two stages and a bastion.

    Returns:
        HostCollection: web1..web3 (cluster eu, stage prod, role web),
            db1 (cluster eu, stage staging, role db), us1 (cluster us)
            and bastion (no cluster).
    """
    registry = HostCollection()
    for n in (1, 2, 3):
        registry.add(
            Host(f"web{n}").user("deploy").cluster("eu").stage("prod").roles("web")
        )
    registry.add(Host("db1").user("deploy").cluster("eu").stage("staging").roles("db", "backup"))
    registry.add(Host("us1").cluster("us").stage("prod").roles(["web", "cron"]))
    registry.add(Host("bastion").user("jump").forward_agent(False))
    return registry


@pytest.fixture
def tmp_inventory(tmp_path):
    """Write a temporary inventory file and return its path.

    Args:
        tmp_path: pytest built-in fixture for temp directory.

    Returns:
        Path: Path to hoist.toml.
    """
    inventory = tmp_path / "hoist.toml"
    inventory.write_text(
        '[hosts.bastion]\n'
        'hostname = "jump.example.com"\n'
        'user = "jump"\n'
        'forward_agent = false\n'
        '\n'
        '[hosts.bastion.vars]\n'
        'edge-id = "e-0"\n'
        '\n'
        '[hosts."web[1:2]"]\n'
        'user = "deploy"\n'
        'port = 2222\n'
        'cluster = "eu"\n'
        'stage = "prod"\n'
        'roles = ["web"]\n'
        'connection-proxy = "bastion"\n'
        'description = "{{alias}} ({{stage}})"\n'
        '\n'
        '[hosts.db1]\n'
        'user = "deploy"\n'
        'cluster = "eu"\n'
        'stage = "staging"\n'
        'roles = "db, backup"\n'
        '\n'
        '[hosts.db1.vars]\n'
        'deploy_path = "/srv/app"\n'
        'shell_path = "/bin/zsh"\n'
    )
    yield inventory
