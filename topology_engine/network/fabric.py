# topology_engine/network/fabric.py
"""
Network fabric - partitions one address block into tiered subnets.

Layout:
- Subnets are carved in request order, one per availability zone
  (public-a, public-b, private-a, private-b, ...)
- Public tier routes to the internet gateway
- Private tier routes outward only, through one NAT gateway per AZ
"""

import ipaddress
import logging
import string
from typing import List, Optional, Sequence

from topology_engine.core.errors import CapacityError, ConfigError, ValidationError
from topology_engine.core.identity import stable_id
from topology_engine.core.models import (
    AddressSpace,
    NatGateway,
    RouteTable,
    Subnet,
    SubnetSpec,
    SubnetTier,
)

logger = logging.getLogger(__name__)

MIN_AZ_COUNT = 2
MIN_SUBNET_MASK = 16
MAX_SUBNET_MASK = 28


def allocate(
    cidr: str,
    az_count: int,
    subnet_specs: Sequence[SubnetSpec],
    *,
    name: str = "vpc",
    region: str = "us-east-1",
    availability_zones: Optional[List[str]] = None,
) -> AddressSpace:
    """
    Carve ``len(subnet_specs) * az_count`` subnets out of ``cidr``.

    Args:
        cidr: IPv4 address block, e.g. "10.0.0.0/26"
        az_count: Number of failure domains (>= 2)
        subnet_specs: One entry per subnet group; each spans every AZ
        name: Address space name
        region: Used to derive AZ names when none are given
        availability_zones: Explicit AZ names (first ``az_count`` are used)

    Returns:
        AddressSpace with subnets, route tables and gateways

    Raises:
        ValidationError: malformed cidr or subnet specs
        ConfigError: fewer than two AZs, or a private tier with no NAT path
        CapacityError: the block cannot hold the requested subnets
    """
    entity = f"address-space/{name}"
    network = _parse_network(cidr, entity)
    zones = _resolve_zones(az_count, region, availability_zones, entity)
    _validate_specs(subnet_specs, network, entity)

    # -------------------------
    # Partition
    # -------------------------
    subnets: List[Subnet] = []
    cursor = int(network.network_address)
    end = int(network.broadcast_address) + 1

    for spec in subnet_specs:
        block_size = 2 ** (32 - spec.cidr_mask)
        for index, zone in enumerate(zones):
            # Align to the block boundary of this mask
            start = -(-cursor // block_size) * block_size
            if start + block_size > end:
                needed = sum(2 ** (32 - s.cidr_mask) for s in subnet_specs) * az_count
                raise CapacityError(
                    f"{cidr} ({network.num_addresses} addresses) cannot hold "
                    f"{len(subnet_specs)} subnet groups x {az_count} AZs "
                    f"({needed} addresses requested)",
                    entity=entity,
                    invariant="subnets fit inside the address block without overlap",
                )

            block = ipaddress.IPv4Network((start, spec.cidr_mask))
            subnets.append(
                Subnet(
                    name=f"{spec.name}-{string.ascii_lowercase[index]}",
                    tier=spec.tier,
                    cidr=str(block),
                    availability_zone=zone,
                )
            )
            cursor = start + block_size

    address_space = AddressSpace(
        name=name,
        cidr=str(network),
        availability_zones=zones,
        subnets=subnets,
    )

    _wire_routing(address_space)

    logger.info(
        f"[fabric] allocated {len(subnets)} subnets in {network} "
        f"across {az_count} AZs"
    )

    return address_space


def _parse_network(cidr: str, entity: str) -> ipaddress.IPv4Network:
    try:
        network = ipaddress.ip_network(cidr, strict=True)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"invalid CIDR block {cidr!r}: {e}", entity=entity) from e

    if not isinstance(network, ipaddress.IPv4Network):
        raise ValidationError(f"CIDR block {cidr!r} must be IPv4", entity=entity)

    return network


def _resolve_zones(
    az_count: int,
    region: str,
    availability_zones: Optional[List[str]],
    entity: str,
) -> List[str]:
    if az_count < MIN_AZ_COUNT:
        raise ConfigError(
            f"az_count must be at least {MIN_AZ_COUNT}, got {az_count}",
            entity=entity,
            invariant="subnets spread across at least two failure domains",
        )

    if availability_zones is not None:
        if len(availability_zones) < az_count:
            raise ConfigError(
                f"{az_count} AZs requested but only {len(availability_zones)} named",
                entity=entity,
            )
        return list(availability_zones[:az_count])

    if az_count > len(string.ascii_lowercase):
        raise ConfigError(f"az_count {az_count} is unreasonably large", entity=entity)

    return [f"{region}{string.ascii_lowercase[i]}" for i in range(az_count)]


def _validate_specs(
    subnet_specs: Sequence[SubnetSpec],
    network: ipaddress.IPv4Network,
    entity: str,
) -> None:
    if not subnet_specs:
        raise ValidationError("at least one subnet spec is required", entity=entity)

    seen = set()
    for spec in subnet_specs:
        if spec.name in seen:
            raise ValidationError(f"duplicate subnet spec name {spec.name!r}", entity=entity)
        seen.add(spec.name)

        if not MIN_SUBNET_MASK <= spec.cidr_mask <= MAX_SUBNET_MASK:
            raise ValidationError(
                f"subnet {spec.name!r} mask /{spec.cidr_mask} outside "
                f"/{MIN_SUBNET_MASK}-/{MAX_SUBNET_MASK}",
                entity=entity,
            )

        if spec.cidr_mask < network.prefixlen:
            raise CapacityError(
                f"subnet {spec.name!r} mask /{spec.cidr_mask} is wider than "
                f"the block /{network.prefixlen}",
                entity=entity,
                invariant="subnets fit inside the address block without overlap",
            )

    tiers = {spec.tier for spec in subnet_specs}
    if SubnetTier.PRIVATE in tiers and SubnetTier.PUBLIC not in tiers:
        raise ConfigError(
            "private subnets need a public tier to host NAT egress",
            entity=entity,
            invariant="private subnets route outward only through NAT",
        )


def _wire_routing(address_space: AddressSpace) -> None:
    """One route table per tier; IGW on public, NAT on private."""
    public = address_space.subnets_in(SubnetTier.PUBLIC)
    private = address_space.subnets_in(SubnetTier.PRIVATE)

    if public:
        address_space.internet_gateway = stable_id("igw", address_space.name, address_space.cidr)
        address_space.route_tables[SubnetTier.PUBLIC] = RouteTable(
            name=f"{address_space.name}-public",
            tier=SubnetTier.PUBLIC,
            subnets=[s.name for s in public],
            default_route=address_space.internet_gateway,
        )

    if private:
        for zone in address_space.availability_zones:
            host = next(s for s in public if s.availability_zone == zone)
            address_space.nat_gateways.append(
                NatGateway(
                    name=stable_id("nat", address_space.name, zone),
                    subnet=host.name,
                    availability_zone=zone,
                )
            )
        address_space.route_tables[SubnetTier.PRIVATE] = RouteTable(
            name=f"{address_space.name}-private",
            tier=SubnetTier.PRIVATE,
            subnets=[s.name for s in private],
            default_route="nat",
        )
