# topology_engine/edge/load_balancer.py
"""
Edge termination - public load balancer, listeners and target attachment.

Listener lifecycle: declared -> bound -> serving. A serving listener is
never edited; attaching new targets builds a replacement and swaps it into
the load balancer in one assignment.
"""

import logging
from typing import Optional, Sequence

from topology_engine.core.errors import ConfigError, ValidationError
from topology_engine.core.identity import stable_id
from topology_engine.core.models import (
    AddressSpace,
    Certificate,
    Listener,
    ListenerState,
    LoadBalancer,
    PermissionGroup,
    Protocol,
    ServiceInstance,
    SubnetTier,
    TargetAttachment,
)
from topology_engine.core.state_machine import ListenerStateMachine
from topology_engine.core.validation import validate_port

logger = logging.getLogger(__name__)


def create_load_balancer(
    address_space: AddressSpace,
    permission_group: PermissionGroup,
    public_tier: SubnetTier,
    *,
    name: str = "network-lb",
    region: str = "us-east-1",
) -> LoadBalancer:
    """Create an internet-facing load balancer with a stable DNS name."""
    entity = f"load-balancer/{name}"

    if public_tier != SubnetTier.PUBLIC:
        raise ConfigError(
            f"load balancer must sit in the public tier, got {public_tier.value}",
            entity=entity,
            invariant="the edge is the only internet-reachable entrypoint",
        )

    if not permission_group.internet_facing:
        raise ConfigError(
            f"{permission_group.name} is tier {permission_group.tier_index}; "
            f"the load balancer needs the edge group",
            entity=entity,
            invariant="the edge is the only internet-reachable entrypoint",
        )

    subnets = address_space.subnets_in(SubnetTier.PUBLIC)
    if not subnets:
        raise ConfigError(f"{address_space.name} has no public subnets", entity=entity)

    dns_name = f"{stable_id(name, address_space.name, address_space.cidr, length=16)}.elb.{region}.amazonaws.com"

    load_balancer = LoadBalancer(
        name=name,
        dns_name=dns_name,
        subnets=subnets,
        permission_group=permission_group,
        internet_facing=True,
    )

    logger.info(f"[edge] load balancer {name} at {dns_name}")

    return load_balancer


def add_listener(
    lb: LoadBalancer,
    port: int,
    protocol: Protocol,
    certificate: Optional[Certificate] = None,
) -> Listener:
    """
    Declare a listener and bind it.

    TLS listeners need exactly one issued certificate; plain listeners
    must not carry one.
    """
    entity = f"listener/{lb.name}:{port}"
    validate_port(port, entity=entity)

    if port in lb.listeners:
        raise ConfigError(f"port {port} already has a listener", entity=entity)

    if not lb.permission_group.allows(port, Protocol.TCP):
        raise ConfigError(
            f"port {port} is not published on {lb.permission_group.name}",
            entity=entity,
            invariant="listeners only use ports the edge group publishes",
        )

    if protocol.requires_certificate:
        if certificate is None:
            raise ConfigError(
                f"{protocol.value} listener requires a certificate",
                entity=entity,
                invariant="an encrypted listener references exactly one issued certificate",
            )
        if not certificate.is_issued:
            raise ConfigError(
                f"certificate for {certificate.domain_name} is {certificate.state.value}",
                entity=entity,
                invariant="an encrypted listener references exactly one issued certificate",
            )
    elif certificate is not None:
        raise ConfigError(
            f"{protocol.value} listener must not reference a certificate",
            entity=entity,
            invariant="an unencrypted listener carries no certificate",
        )

    listener = Listener(
        name=f"Listener{port}",
        load_balancer=lb.name,
        port=port,
        protocol=protocol,
        certificate=certificate,
    )
    ListenerStateMachine.transition(listener, ListenerState.BOUND)
    lb.listeners[port] = listener

    logger.info(f"[edge] listener {lb.name}:{port}/{protocol.value} bound")

    return listener


def attach_targets(
    lb: LoadBalancer,
    listener: Listener,
    target_port: int,
    target_protocol: Protocol,
    service_instances: Sequence[ServiceInstance],
) -> Listener:
    """
    Forward ``listener`` to ``target_port`` on every instance.

    The target port must already be opened in each instance's group,
    sourced from the load balancer's group, and declared by its task.
    Returns the serving listener. When ``listener`` was already serving the
    result is a replacement that keeps its other attachments; an attachment
    for the same target port and protocol is replaced.
    """
    entity = listener.entity_id
    validate_port(target_port, entity=entity)

    if lb.listeners.get(listener.port) is not listener:
        raise ConfigError(
            f"listener is not the current binding of {lb.name}:{listener.port}",
            entity=entity,
        )

    if not service_instances:
        raise ValidationError("at least one target is required", entity=entity)

    for instance in service_instances:
        group = instance.permission_group
        if not group.allows(target_port, target_protocol, lb.permission_group.as_peer()):
            raise ConfigError(
                f"target port {target_port}/{target_protocol.value} is not opened in "
                f"{group.name} from {lb.permission_group.name}",
                entity=entity,
                invariant="every target port is opened in the service-tier group",
            )
        if not instance.task_spec.declares_port(target_port, target_protocol):
            raise ConfigError(
                f"{instance.name} does not listen on {target_port}/{target_protocol.value}",
                entity=entity,
                invariant="every target port is a declared task port",
            )

    attachment = TargetAttachment(
        target_port=target_port,
        target_protocol=target_protocol,
        targets=tuple(i.entity_id for i in service_instances),
    )

    if listener.state == ListenerState.SERVING:
        return _swap(lb, listener, attachment)

    listener.attachments.append(attachment)
    ListenerStateMachine.transition(listener, ListenerState.SERVING)

    logger.info(
        f"[edge] {lb.name}:{listener.port} -> {target_port}/{target_protocol.value} "
        f"on {len(service_instances)} target(s); serving"
    )

    return listener


def _swap(lb: LoadBalancer, current: Listener, attachment: TargetAttachment) -> Listener:
    # A rebind of the same target port and protocol replaces that attachment
    attachments = [
        a for a in current.attachments
        if (a.target_port, a.target_protocol) != (attachment.target_port, attachment.target_protocol)
    ]
    attachments.append(attachment)

    replacement = Listener(
        name=current.name,
        load_balancer=current.load_balancer,
        port=current.port,
        protocol=current.protocol,
        certificate=current.certificate,
        attachments=attachments,
        generation=current.generation + 1,
        tags=dict(current.tags),
    )
    ListenerStateMachine.transition(replacement, ListenerState.BOUND)
    ListenerStateMachine.transition(replacement, ListenerState.SERVING)

    lb.listeners[current.port] = replacement

    logger.info(
        f"[edge] {lb.name}:{current.port} swapped to generation {replacement.generation} "
        f"-> {attachment.target_port}/{attachment.target_protocol.value} "
        f"({len(attachments)} attachment(s))"
    )

    return replacement
