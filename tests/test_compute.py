#tests\test_compute.py

"""Test cluster, task specification and placement."""

import pytest

from topology_engine.access.chain import chain
from topology_engine.compute.placement import create_cluster, define_task, place, replace_service
from topology_engine.core.errors import ConfigError, SubstrateError, ValidationError
from topology_engine.core.models import (
    ANY_IPV4,
    CpuArchitecture,
    LogSink,
    Mount,
    OperatingSystemFamily,
    PortMapping,
    Protocol,
    SubnetTier,
)
from topology_engine.infrastructure.memory.substrate import InMemoryFargateSubstrate


def _define(volume, substrate, **overrides):
    args = {
        "cpu": 1024,
        "memory_mib": 2048,
        "ports": [6610, 6611],
        "mounts": [Mount("volume", "/opt/app")],
        "image": "1dev/server:11.0.9",
        "log_sink": LogSink(stream_prefix="onedev"),
    }
    args.update(overrides)
    return define_task(
        args["cpu"],
        args["memory_mib"],
        args["ports"],
        args["mounts"],
        args["image"],
        args["log_sink"],
        volumes=[volume],
        substrate=substrate,
    )


class TestCluster:
    """Test cluster creation."""

    def test_cluster_is_bound_to_address_space(self, cluster, address_space, substrate):
        """Test the cluster records its fabric and substrate handle."""
        assert cluster.address_space is address_space
        assert cluster.cluster_arn.endswith(":cluster/test-cluster")
        assert cluster.container_insights
        assert cluster.serverless_capacity_providers
        assert substrate.clusters() == ["test-cluster"]

    def test_recreating_identical_cluster_returns_existing(self, cluster, substrate, address_space):
        """Test creating the same cluster twice is idempotent."""
        again = create_cluster(substrate, "test-cluster", address_space)

        assert again.cluster_arn == cluster.cluster_arn
        assert substrate.clusters() == ["test-cluster"]

    def test_conflicting_cluster_is_rejected_by_substrate(self, cluster, substrate, address_space):
        """Test substrate errors surface unmodified."""
        with pytest.raises(SubstrateError) as exc:
            create_cluster(substrate, "test-cluster", address_space, container_insights=False)

        assert exc.value.code == "ClusterAlreadyExistsException"

    def test_empty_name_fails(self, substrate, address_space):
        """Test clusters are named."""
        with pytest.raises(ValidationError):
            create_cluster(substrate, "", address_space)


class TestDefineTask:
    """Test task specifications."""

    def test_task_fields(self, task_spec, volume):
        """Test the task keeps sizing, ports, mounts and platform."""
        assert task_spec.cpu == 1024
        assert task_spec.memory_mib == 2048
        assert task_spec.ports == [PortMapping(6610), PortMapping(6611)]
        assert task_spec.mounts[0].container_path == "/opt/app"
        assert not task_spec.mounts[0].read_only
        assert task_spec.volumes == {"volume": volume}
        assert task_spec.operating_system == OperatingSystemFamily.LINUX
        assert task_spec.cpu_architecture == CpuArchitecture.X86_64

    def test_declares_port(self, task_spec):
        """Test port lookup by protocol."""
        assert task_spec.declares_port(6610, Protocol.TCP)
        assert not task_spec.declares_port(6610, Protocol.UDP)
        assert not task_spec.declares_port(443, Protocol.TCP)

    def test_empty_ports_fail(self, volume, substrate):
        """Test a task declares at least one port."""
        with pytest.raises(ValidationError):
            _define(volume, substrate, ports=[])

    def test_duplicate_ports_fail(self, volume, substrate):
        """Test each port is declared once."""
        with pytest.raises(ValidationError):
            _define(volume, substrate, ports=[6610, 6610])

    def test_empty_mounts_fail(self, volume, substrate):
        """Test a task declares at least one mount."""
        with pytest.raises(ValidationError):
            _define(volume, substrate, mounts=[])

    def test_unknown_volume_fails(self, volume, substrate):
        """Test every mount references an existing volume."""
        with pytest.raises(ValidationError):
            _define(volume, substrate, mounts=[Mount("missing", "/opt/app")])

    def test_mount_path_must_match_access_point(self, volume, substrate):
        """Test the mount targets the access point path."""
        with pytest.raises(ValidationError):
            _define(volume, substrate, mounts=[Mount("volume", "/var/data")])

    def test_bad_image_fails(self, volume, substrate):
        """Test image references are well formed."""
        with pytest.raises(ValidationError):
            _define(volume, substrate, image="")

    def test_invalid_size_is_reported(self, volume, substrate):
        """Test substrate rejection of a cpu/memory pair."""
        with pytest.raises(ValidationError) as exc:
            _define(volume, substrate, memory_mib=512)

        assert "No Fargate configuration exists" in str(exc.value)
        assert isinstance(exc.value.__cause__, SubstrateError)

    def test_unknown_cpu_is_reported(self, volume, substrate):
        """Test unsupported cpu units."""
        with pytest.raises(ValidationError):
            _define(volume, substrate, cpu=3000)


class TestPlace:
    """Test service placement."""

    def test_service_in_private_tier(self, service, address_space, service_group, substrate):
        """Test the service runs in private subnets behind the service group."""
        assert service.subnets == address_space.subnets_in(SubnetTier.PRIVATE)
        assert service.permission_group is service_group
        assert service.revision == 1
        assert substrate.running_tasks() == [service.instance_handle]

    def test_public_tier_fails(self, cluster, task_spec, service_group, substrate):
        """Test compute is never placed in the public tier."""
        with pytest.raises(ConfigError):
            place(cluster, task_spec, SubnetTier.PUBLIC, service_group, substrate=substrate)

    def test_edge_group_fails(self, cluster, task_spec, edge_group, substrate):
        """Test compute cannot sit behind an address-range group."""
        with pytest.raises(ConfigError):
            place(cluster, task_spec, SubnetTier.PRIVATE, edge_group, substrate=substrate)

    def test_port_not_opened_fails(self, cluster, task_spec, substrate):
        """Test every task port needs a rule in the service group."""
        narrow = chain([("edge", [443], ANY_IPV4), ("service", [6610])])[1]

        with pytest.raises(ConfigError) as exc:
            place(cluster, task_spec, SubnetTier.PRIVATE, narrow, substrate=substrate)

        assert "6611" in str(exc.value)

    def test_substrate_failure_propagates(self, cluster, task_spec, service_group, substrate):
        """Test a scheduling failure surfaces as the same error."""
        error = SubstrateError("Capacity is unavailable at this time", code="CapacityUnavailable")
        substrate.fail_next_schedule(error)

        with pytest.raises(SubstrateError) as exc:
            place(cluster, task_spec, SubnetTier.PRIVATE, service_group, substrate=substrate)

        assert exc.value is error
        assert substrate.running_tasks() == []

    def test_quota_exceeded(self, address_space, task_spec, service_group):
        """Test the substrate's task quota."""
        substrate = InMemoryFargateSubstrate(task_quota=0)
        cluster = create_cluster(substrate, "quota", address_space)

        with pytest.raises(SubstrateError) as exc:
            place(cluster, task_spec, SubnetTier.PRIVATE, service_group, substrate=substrate)

        assert exc.value.code == "LimitExceededException"


class TestReplaceService:
    """Test service replacement."""

    def test_replacement_bumps_revision(self, service, volume, substrate):
        """Test a new revision is scheduled and the old instance is untouched."""
        updated = _define(volume, substrate, image="1dev/server:11.1.0")

        replacement = replace_service(service, updated, substrate=substrate)

        assert replacement.revision == 2
        assert replacement.task_spec is updated
        assert replacement.instance_handle != service.instance_handle
        assert service.revision == 1
        assert service.task_spec.image == "1dev/server:11.0.9"

    def test_replacement_checks_ports(self, service, volume, substrate):
        """Test a replacement cannot open new ports behind the group's back."""
        updated = _define(volume, substrate, ports=[6610, 6611, 7000])

        with pytest.raises(ConfigError):
            replace_service(service, updated, substrate=substrate)
