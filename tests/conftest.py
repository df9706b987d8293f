#tests\conftest.py

"""Pytest configuration and fixtures."""

import pytest

from topology_engine.access.chain import chain
from topology_engine.compute.placement import create_cluster, define_task, place
from topology_engine.config import TopologyConfig
from topology_engine.core.models import (
    ANY_IPV4,
    CertificateState,
    LogSink,
    Mount,
    SubnetSpec,
    SubnetTier,
)
from topology_engine.core.state_machine import CertificateStateMachine
from topology_engine.edge.load_balancer import create_load_balancer
from topology_engine.infrastructure.memory.certificate_authority import InMemoryCertificateAuthority
from topology_engine.infrastructure.memory.dns import InMemoryDnsProvider
from topology_engine.infrastructure.memory.substrate import InMemoryFargateSubstrate
from topology_engine.naming.certificates import request_certificate
from topology_engine.network.fabric import allocate
from topology_engine.storage.shared import provision


# -------------------------
# NETWORK / ACCESS
# -------------------------

@pytest.fixture
def subnet_specs():
    return [
        SubnetSpec("public", SubnetTier.PUBLIC, 28),
        SubnetSpec("private", SubnetTier.PRIVATE, 28),
    ]


@pytest.fixture
def address_space(subnet_specs):
    return allocate("10.0.0.0/26", 2, subnet_specs)


@pytest.fixture
def groups():
    return chain([
        ("edge", [443, 22], ANY_IPV4),
        ("service", [6610, 6611]),
        ("storage", [2049]),
    ])


@pytest.fixture
def edge_group(groups):
    return groups[0]


@pytest.fixture
def service_group(groups):
    return groups[1]


@pytest.fixture
def storage_group(groups):
    return groups[2]


# -------------------------
# COLLABORATORS
# -------------------------

@pytest.fixture
def substrate():
    return InMemoryFargateSubstrate()


@pytest.fixture
def dns_provider():
    return InMemoryDnsProvider(["example.com"])


@pytest.fixture
def zone(dns_provider):
    return dns_provider.lookup_zone("example.com")


@pytest.fixture
def certificate_authority(zone):
    authority = InMemoryCertificateAuthority()
    authority.mark_zone_validated(zone)
    return authority


# -------------------------
# ENTITIES
# -------------------------

@pytest.fixture
def volume(address_space, service_group, storage_group):
    return provision(
        address_space,
        service_group,
        "/opt/app",
        (0, 0),
        "755",
        storage_group=storage_group,
    )


@pytest.fixture
def cluster(substrate, address_space):
    return create_cluster(substrate, "test-cluster", address_space)


@pytest.fixture
def task_spec(volume, substrate):
    return define_task(
        1024,
        2048,
        [6610, 6611],
        [Mount("volume", "/opt/app")],
        "1dev/server:11.0.9",
        LogSink(stream_prefix="onedev"),
        volumes=[volume],
        substrate=substrate,
    )


@pytest.fixture
def service(cluster, task_spec, service_group, substrate):
    return place(cluster, task_spec, SubnetTier.PRIVATE, service_group, substrate=substrate)


@pytest.fixture
def load_balancer(address_space, edge_group):
    return create_load_balancer(address_space, edge_group, SubnetTier.PUBLIC)


@pytest.fixture
def pending_certificate(zone):
    return request_certificate("git.example.com", zone)


@pytest.fixture
def issued_certificate(zone):
    certificate = request_certificate("git.example.com", zone)
    CertificateStateMachine.transition(certificate, CertificateState.ISSUED)
    return certificate


# -------------------------
# CONFIGURATION
# -------------------------

@pytest.fixture
def bundle():
    """Operator bundle for the reference deployment."""
    return {
        "cidr": "10.0.0.0/26",
        "az_count": 2,
        "image": "1dev/server:11.0.9",
        "domain_name": "example.com",
        "cpu": 1024,
        "memory_mib": 2048,
        "mount_path": "/opt/app",
        "owner": (0, 0),
        "mode": "755",
        "https_ingress": "0.0.0.0/0",
        "ssh_ingress": "0.0.0.0/0",
        "certificate_timeout_seconds": 2.0,
        "certificate_poll_seconds": 0.01,
        "tags": {"CostCenter": "onedev", "owner": "platform"},
    }


@pytest.fixture
def topology_config(bundle):
    return TopologyConfig.from_bundle(bundle)
