# topology_engine/naming/dns.py
"""DNS binding for the load balancer's stable name."""

import logging
import re

from topology_engine.core.collaborators import DnsProvider
from topology_engine.core.errors import ValidationError
from topology_engine.core.models import DnsRecord, Zone

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60

_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


def lookup_zone(provider: DnsProvider, domain_name: str) -> Zone:
    """Resolve the hosted zone for ``domain_name``."""
    _validate_hostname(domain_name, entity=f"zone/{domain_name}")
    zone = provider.lookup_zone(domain_name)
    logger.info(f"[naming] zone {zone.domain_name} -> {zone.zone_id}")
    return zone


def bind_name(
    provider: DnsProvider,
    zone: Zone,
    record_name: str,
    target: str,
    ttl: int = DEFAULT_TTL_SECONDS,
) -> DnsRecord:
    """Upsert ``record_name`` in ``zone``; repeated calls replace the same record."""
    entity = f"dns-record/{record_name}.{zone.domain_name}"

    _validate_hostname(record_name, entity=entity)
    _validate_hostname(target, entity=entity)

    if ttl <= 0:
        raise ValidationError(f"ttl must be positive, got {ttl}", entity=entity)

    record = provider.upsert_record(zone, record_name, target, ttl)

    logger.info(f"[naming] {record.fqdn} {record.record_type} {target} (ttl={ttl})")

    return record


def _validate_hostname(name: str, *, entity: str) -> None:
    if not name or len(name) > 253:
        raise ValidationError(f"invalid DNS name {name!r}", entity=entity)

    for label in name.rstrip(".").split("."):
        if not _LABEL.match(label):
            raise ValidationError(f"invalid DNS label {label!r} in {name!r}", entity=entity)
