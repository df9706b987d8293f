# topology_engine/infrastructure/memory/dns.py

from threading import Lock
from typing import Dict, Iterable, Tuple

from topology_engine.core.collaborators import DnsProvider
from topology_engine.core.errors import SubstrateError
from topology_engine.core.identity import stable_id
from topology_engine.core.models import DnsRecord, Zone


class InMemoryDnsProvider(DnsProvider):
    """Hosted zones and records kept in process memory."""

    def __init__(self, domains: Iterable[str] = ()):
        self._zones: Dict[str, Zone] = {}
        self._records: Dict[Tuple[str, str], DnsRecord] = {}
        self._lock = Lock()
        for domain in domains:
            self.add_zone(domain)

    def add_zone(self, domain_name: str) -> Zone:
        with self._lock:
            zone = Zone(
                zone_id=stable_id("Z", domain_name, length=14).replace("-", "").upper(),
                domain_name=domain_name.rstrip("."),
            )
            self._zones[zone.domain_name] = zone
            return zone

    def lookup_zone(self, domain_name: str) -> Zone:
        zone = self._zones.get(domain_name.rstrip("."))
        if zone is None:
            raise SubstrateError(
                f"Found zones: [] for dns:{domain_name}, but wanted exactly 1 zone",
                code="NoSuchHostedZone",
                entity=f"zone/{domain_name}",
            )
        return zone

    def upsert_record(self, zone: Zone, name: str, target: str, ttl: int) -> DnsRecord:
        with self._lock:
            if zone.domain_name not in self._zones:
                raise SubstrateError(
                    f"No hosted zone found with ID: {zone.zone_id}",
                    code="NoSuchHostedZone",
                    entity=f"zone/{zone.domain_name}",
                )

            record = DnsRecord(record_name=name, zone=zone, target=target, ttl=ttl)
            self._records[(zone.zone_id, name)] = record
            return record

    def records(self, zone: Zone) -> list[DnsRecord]:
        return [r for (zone_id, _), r in self._records.items() if zone_id == zone.zone_id]
