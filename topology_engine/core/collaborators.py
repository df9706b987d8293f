# topology_engine/core/collaborators.py

from abc import ABC, abstractmethod
from typing import Any, Dict

from topology_engine.core.models import (
    Certificate,
    CertificateState,
    DnsRecord,
    TaskSpec,
    Zone,
)


class DnsProvider(ABC):
    """
    Contract for the DNS provider.
    """

    @abstractmethod
    def lookup_zone(self, domain_name: str) -> Zone:
        """
        Resolve the hosted zone for a domain.
        Must raise SubstrateError if no zone exists.
        """
        raise NotImplementedError

    @abstractmethod
    def upsert_record(
        self,
        zone: Zone,
        name: str,
        target: str,
        ttl: int,
    ) -> DnsRecord:
        """
        Create or replace the record keyed by (zone, name).
        """
        raise NotImplementedError


class CertificateAuthority(ABC):
    """
    Contract for the certificate authority.
    """

    @abstractmethod
    def validate(self, certificate: Certificate, zone: Zone) -> CertificateState:
        """
        Report the current validation state of a certificate.
        Returns ISSUED, PENDING_VALIDATION or FAILED.
        """
        raise NotImplementedError


class ComputeSubstrate(ABC):
    """
    Contract for the serverless container substrate.
    Every method raises SubstrateError on rejection.
    """

    @abstractmethod
    def create_cluster(self, name: str, options: Dict[str, Any]) -> str:
        """
        Create a cluster and return its identifier.
        """
        raise NotImplementedError

    @abstractmethod
    def validate_task_size(self, cpu: int, memory_mib: int) -> None:
        """
        Reject cpu/memory pairs the substrate cannot run.
        """
        raise NotImplementedError

    @abstractmethod
    def schedule(self, spec: TaskSpec) -> str:
        """
        Place one task and return the instance handle.
        Capacity and quota failures are reported, never retried.
        """
        raise NotImplementedError
