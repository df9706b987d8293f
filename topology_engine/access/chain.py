# topology_engine/access/chain.py
"""
Access control layer - chained permission groups.

Tier 0 (edge) is the only group that may accept traffic from an address
range, and only on the ports it publishes. Every later tier is sourced from
the group object directly upstream of it, so a rule cannot skip a tier.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from topology_engine.core.errors import ConfigError, ValidationError
from topology_engine.core.models import IngressRule, PermissionGroup, Peer, Protocol
from topology_engine.core.validation import validate_port

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortRule:
    """One published port, optionally with its own source range."""
    port: int
    protocol: Protocol = Protocol.TCP
    description: str = ""
    source: Optional[Union[Peer, str]] = None


@dataclass(frozen=True)
class TierSpec:
    name: str
    ports: Sequence[Union[int, PortRule]]
    source: Optional[Union[Peer, str]] = None
    description: str = ""


PortLike = Union[int, PortRule]
TierLike = Union[TierSpec, Tuple]


# ============================================
# CONSTRUCTORS
# ============================================

def internet_facing_group(
    name: str,
    ports: Sequence[PortLike],
    *,
    source: Optional[Union[Peer, str]] = None,
    description: str = "",
) -> PermissionGroup:
    """
    Build the edge group.

    Every published port needs an explicit source range, either per port
    or through ``source``. There is no implicit "anywhere".
    """
    entity = f"permission-group/{name}"
    rules = []

    for port_rule in _normalize_ports(ports, entity):
        peer = port_rule.source if port_rule.source is not None else source
        if peer is None:
            raise ConfigError(
                f"port {port_rule.port} is published without an explicit source; "
                f"pass source=ANY_IPV4 (or a CIDR range) to acknowledge the exposure",
                entity=entity,
                invariant="open exposure of the edge tier is an explicit operator choice",
            )
        peer = _as_range_peer(peer, entity)
        rules.append(
            IngressRule(
                source=peer,
                protocol=port_rule.protocol,
                port=port_rule.port,
                description=port_rule.description
                or f"Allow {port_rule.protocol.value} {port_rule.port} from {peer.describe()}",
            )
        )

    group = PermissionGroup(
        name=name,
        tier_index=0,
        rules=rules,
        upstream=None,
        description=description or f"Edge tier {name}",
    )

    logger.info(f"[access] edge group {name} publishes {group.opened_ports()}")

    return group


def downstream_group(
    upstream: PermissionGroup,
    name: str,
    ports: Sequence[PortLike],
    *,
    description: str = "",
) -> PermissionGroup:
    """Build a group reachable only from ``upstream`` on ``ports``."""
    entity = f"permission-group/{name}"

    if not isinstance(upstream, PermissionGroup):
        raise ConfigError(
            f"upstream must be a permission group, got {type(upstream).__name__}",
            entity=entity,
            invariant="inner tiers are sourced from the upstream group, never an address range",
        )

    rules = []
    for port_rule in _normalize_ports(ports, entity):
        if port_rule.source is not None:
            raise ConfigError(
                f"port {port_rule.port} names its own source; inner tiers accept "
                f"traffic only from {upstream.name}",
                entity=entity,
                invariant="no rule may skip a tier",
            )
        rules.append(
            IngressRule(
                source=upstream.as_peer(),
                protocol=port_rule.protocol,
                port=port_rule.port,
                description=port_rule.description
                or f"Allow {port_rule.protocol.value} {port_rule.port} from {upstream.name}",
            )
        )

    group = PermissionGroup(
        name=name,
        tier_index=upstream.tier_index + 1,
        rules=rules,
        upstream=upstream,
        description=description or f"Allow access from {upstream.name}",
    )

    logger.info(
        f"[access] tier {group.tier_index} group {name} opens "
        f"{group.opened_ports()} from {upstream.name}"
    )

    return group


# ============================================
# CHAIN
# ============================================

def chain(tiers: Sequence[TierLike]) -> List[PermissionGroup]:
    """
    Build an ordered chain of permission groups.

    Each tier is a TierSpec or a tuple:
    - tier 0: (name, ports, source) - the source acknowledges the exposure
    - later tiers: (name, ports)
    """
    if not tiers:
        raise ValidationError("at least one tier is required", entity="access-chain")

    specs = [_as_tier_spec(t, index) for index, t in enumerate(tiers)]

    names = [s.name for s in specs]
    if len(set(names)) != len(names):
        raise ValidationError(f"tier names must be unique: {names}", entity="access-chain")

    groups: List[PermissionGroup] = []
    for index, spec in enumerate(specs):
        if index == 0:
            if spec.source is None and not _every_port_has_source(spec.ports):
                raise ConfigError(
                    "first tier built without acknowledging open exposure",
                    entity=f"permission-group/{spec.name}",
                    invariant="open exposure of the edge tier is an explicit operator choice",
                )
            groups.append(
                internet_facing_group(
                    spec.name,
                    spec.ports,
                    source=spec.source,
                    description=spec.description,
                )
            )
            continue

        if spec.source is not None:
            raise ConfigError(
                f"tier {index} names source {spec.source!r}; it may only be reached "
                f"from {groups[-1].name}",
                entity=f"permission-group/{spec.name}",
                invariant="no rule may skip a tier",
            )
        groups.append(
            downstream_group(
                groups[-1],
                spec.name,
                spec.ports,
                description=spec.description,
            )
        )

    return groups


def upstream_sources(group: PermissionGroup) -> List[Peer]:
    """Distinct rule sources of a group, in rule order."""
    sources: List[Peer] = []
    for rule in group.rules:
        if rule.source not in sources:
            sources.append(rule.source)
    return sources


# ============================================
# HELPERS
# ============================================

def _as_tier_spec(tier: TierLike, index: int) -> TierSpec:
    if isinstance(tier, TierSpec):
        return tier

    if not isinstance(tier, tuple) or len(tier) not in (2, 3):
        raise ValidationError(
            f"tier {index} must be a TierSpec or a (name, ports[, source]) tuple",
            entity="access-chain",
        )

    if len(tier) == 2:
        name, ports = tier
        return TierSpec(name=name, ports=ports)

    name, ports, source = tier
    return TierSpec(name=name, ports=ports, source=source)


def _normalize_ports(ports: Sequence[PortLike], entity: str) -> List[PortRule]:
    if not ports:
        raise ValidationError("a tier must open at least one port", entity=entity)

    normalized = []
    seen = set()
    for item in ports:
        port_rule = item if isinstance(item, PortRule) else PortRule(port=item)
        validate_port(port_rule.port, entity=entity)

        key = (port_rule.port, port_rule.protocol)
        if key in seen:
            raise ValidationError(
                f"port {port_rule.port}/{port_rule.protocol.value} listed twice",
                entity=entity,
            )
        seen.add(key)
        normalized.append(port_rule)

    return normalized


def _every_port_has_source(ports: Sequence[PortLike]) -> bool:
    return bool(ports) and all(
        isinstance(p, PortRule) and p.source is not None for p in ports
    )


def _as_range_peer(source: Union[Peer, str], entity: str) -> Peer:
    if isinstance(source, str):
        source = Peer(cidr=source)

    if not isinstance(source, Peer) or not source.is_range:
        raise ConfigError(
            f"edge source must be an address range, got {source!r}",
            entity=entity,
        )

    try:
        ipaddress.ip_network(source.cidr, strict=True)
    except ValueError as e:
        raise ValidationError(f"invalid source range {source.cidr!r}: {e}", entity=entity) from e

    return source
