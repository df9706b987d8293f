# topology_engine/compute/placement.py
"""Compute placement - cluster, task specification and service instance."""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Union

from topology_engine.core.collaborators import ComputeSubstrate
from topology_engine.core.errors import ConfigError, SubstrateError, ValidationError
from topology_engine.core.models import (
    AddressSpace,
    Cluster,
    CpuArchitecture,
    LogSink,
    Mount,
    OperatingSystemFamily,
    PermissionGroup,
    PortMapping,
    ServiceInstance,
    SubnetTier,
    TaskSpec,
    Volume,
)
from topology_engine.core.validation import (
    validate_absolute_path,
    validate_image,
    validate_port,
)

logger = logging.getLogger(__name__)

PortLike = Union[int, PortMapping]


# ============================================
# CLUSTER
# ============================================

def create_cluster(
    substrate: ComputeSubstrate,
    name: str,
    address_space: AddressSpace,
    *,
    container_insights: bool = True,
    serverless_capacity_providers: bool = True,
) -> Cluster:
    """Create a cluster bound to ``address_space``."""
    if not name:
        raise ValidationError("cluster name is required", entity="cluster")

    cluster_arn = substrate.create_cluster(
        name,
        {
            "vpc": address_space.name,
            "container_insights": container_insights,
            "capacity_providers": ["FARGATE", "FARGATE_SPOT"] if serverless_capacity_providers else [],
        },
    )

    logger.info(f"[compute] cluster {name} created ({cluster_arn})")

    return Cluster(
        name=name,
        address_space=address_space,
        cluster_arn=cluster_arn,
        container_insights=container_insights,
        serverless_capacity_providers=serverless_capacity_providers,
    )


# ============================================
# TASK SPEC
# ============================================

def define_task(
    cpu: int,
    memory_mib: int,
    ports: Sequence[PortLike],
    mounts: Sequence[Mount],
    image: str,
    log_sink: LogSink,
    *,
    volumes: Iterable[Volume],
    substrate: ComputeSubstrate,
    family: str = "app",
    container_name: Optional[str] = None,
    operating_system: OperatingSystemFamily = OperatingSystemFamily.LINUX,
    cpu_architecture: CpuArchitecture = CpuArchitecture.X86_64,
) -> TaskSpec:
    """
    Define a task specification.

    Every mount must reference one of ``volumes`` (which must already
    exist) and target that volume's access point path. The substrate
    decides whether the cpu/memory pair is runnable; its rejection is
    surfaced verbatim.
    """
    entity = f"task/{family}"

    # -------------------------
    # Ports
    # -------------------------
    if not ports:
        raise ValidationError(
            "at least one port must be declared",
            entity=entity,
            invariant="a task declares one or more ports",
        )

    port_mappings: List[PortMapping] = []
    for item in ports:
        mapping = item if isinstance(item, PortMapping) else PortMapping(container_port=item)
        validate_port(mapping.container_port, entity=entity)
        if mapping in port_mappings:
            raise ValidationError(
                f"port {mapping.container_port}/{mapping.protocol.value} declared twice",
                entity=entity,
            )
        port_mappings.append(mapping)

    # -------------------------
    # Mounts
    # -------------------------
    known = {v.name: v for v in volumes}
    if not mounts:
        raise ValidationError(
            "at least one volume mount must be declared",
            entity=entity,
            invariant="a task declares one or more mounts",
        )

    for mount in mounts:
        volume = known.get(mount.volume_name)
        if volume is None:
            raise ValidationError(
                f"mount {mount.container_path} references unknown volume {mount.volume_name!r}",
                entity=entity,
                invariant="every mount's volume exists before the task is created",
            )
        validate_absolute_path(mount.container_path, entity=entity)
        if mount.container_path != volume.path:
            raise ValidationError(
                f"mount {mount.container_path} does not match access point path {volume.path}",
                entity=entity,
                invariant="access point path matches what the task mounts",
            )

    # -------------------------
    # Image / sizing
    # -------------------------
    validate_image(image, entity=entity)

    if not log_sink or not log_sink.stream_prefix:
        raise ValidationError("log sink with a stream prefix is required", entity=entity)

    try:
        substrate.validate_task_size(cpu, memory_mib)
    except SubstrateError as e:
        raise ValidationError(e.detail, entity=entity) from e

    task_spec = TaskSpec(
        family=family,
        container_name=container_name or family,
        cpu=cpu,
        memory_mib=memory_mib,
        ports=port_mappings,
        mounts=list(mounts),
        image=image,
        log_sink=log_sink,
        volumes={m.volume_name: known[m.volume_name] for m in mounts},
        operating_system=operating_system,
        cpu_architecture=cpu_architecture,
    )

    logger.info(
        f"[compute] task {family}: cpu={cpu} memory={memory_mib}MiB "
        f"ports={[p.container_port for p in port_mappings]} image={image}"
    )

    return task_spec


# ============================================
# PLACEMENT
# ============================================

def place(
    cluster: Cluster,
    task_spec: TaskSpec,
    subnet_tier: SubnetTier,
    permission_group: PermissionGroup,
    *,
    substrate: ComputeSubstrate,
    name: Optional[str] = None,
) -> ServiceInstance:
    """
    Place ``task_spec`` in the private tier.

    Substrate failures (capacity, quota) propagate unmodified and are not
    retried here.
    """
    name = name or f"{task_spec.family}-service"
    entity = f"service/{name}"

    _check_placement(cluster, task_spec, subnet_tier, permission_group, entity)

    subnets = cluster.address_space.subnets_in(SubnetTier.PRIVATE)
    instance_handle = substrate.schedule(task_spec)

    instance = ServiceInstance(
        name=name,
        cluster=cluster,
        task_spec=task_spec,
        subnets=subnets,
        permission_group=permission_group,
        instance_handle=instance_handle,
    )

    logger.info(
        f"[compute] service {name} placed in {[s.name for s in subnets]} "
        f"behind {permission_group.name} ({instance_handle})"
    )

    return instance


def replace_service(
    instance: ServiceInstance,
    task_spec: TaskSpec,
    *,
    substrate: ComputeSubstrate,
) -> ServiceInstance:
    """Rebuild a service for a changed task spec; the old instance is left untouched."""
    entity = f"service/{instance.name}"

    _check_placement(
        instance.cluster,
        task_spec,
        SubnetTier.PRIVATE,
        instance.permission_group,
        entity,
    )

    instance_handle = substrate.schedule(task_spec)

    replacement = replace(
        instance,
        task_spec=task_spec,
        instance_handle=instance_handle,
        revision=instance.revision + 1,
        tags=dict(instance.tags),
    )

    logger.info(
        f"[compute] service {instance.name} replaced: revision "
        f"{instance.revision} -> {replacement.revision}"
    )

    return replacement


def _check_placement(
    cluster: Cluster,
    task_spec: TaskSpec,
    subnet_tier: SubnetTier,
    permission_group: PermissionGroup,
    entity: str,
) -> None:
    if subnet_tier != SubnetTier.PRIVATE:
        raise ConfigError(
            f"cannot place compute in the {subnet_tier.value} tier",
            entity=entity,
            invariant="compute is never directly reachable from the public tier",
        )

    if permission_group.internet_facing:
        raise ConfigError(
            f"{permission_group.name} accepts traffic from address ranges",
            entity=entity,
            invariant="compute is never directly reachable from the public tier",
        )

    if not cluster.address_space.subnets_in(SubnetTier.PRIVATE):
        raise ConfigError(
            f"{cluster.address_space.name} has no private subnets",
            entity=entity,
        )

    for mapping in task_spec.ports:
        if not permission_group.allows(mapping.container_port, mapping.protocol):
            raise ConfigError(
                f"port {mapping.container_port}/{mapping.protocol.value} is not opened "
                f"in {permission_group.name}",
                entity=entity,
                invariant="every declared port has a service-tier rule",
            )
