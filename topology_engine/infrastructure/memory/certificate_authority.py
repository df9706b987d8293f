# topology_engine/infrastructure/memory/certificate_authority.py

from threading import Lock
from typing import Dict, Set

from topology_engine.core.collaborators import CertificateAuthority
from topology_engine.core.models import Certificate, CertificateState, Zone


class InMemoryCertificateAuthority(CertificateAuthority):
    """
    DNS-validating authority kept in process memory.

    Certificates for names inside a validated zone are issued on the
    ``pending_polls + 1``-th check; names in any other zone stay pending.
    """

    def __init__(self, *, pending_polls: int = 0):
        self.pending_polls = pending_polls
        self._validated_zones: Set[str] = set()
        self._failed: Set[str] = set()
        self._polls: Dict[str, int] = {}
        self._lock = Lock()

    def mark_zone_validated(self, zone: Zone) -> None:
        with self._lock:
            self._validated_zones.add(zone.zone_id)

    def reject(self, domain_name: str) -> None:
        with self._lock:
            self._failed.add(domain_name)

    def validate(self, certificate: Certificate, zone: Zone) -> CertificateState:
        with self._lock:
            if certificate.domain_name in self._failed:
                return CertificateState.FAILED

            polls = self._polls.get(certificate.certificate_id, 0) + 1
            self._polls[certificate.certificate_id] = polls

            if zone.zone_id in self._validated_zones and polls > self.pending_polls:
                return CertificateState.ISSUED

            return CertificateState.PENDING_VALIDATION

    def poll_count(self, certificate: Certificate) -> int:
        return self._polls.get(certificate.certificate_id, 0)
