# topology_engine/naming/certificates.py
"""
Certificate lifecycle.

A certificate is requested against a DNS zone and stays pending until the
certificate authority reports it issued. Waiting for that is the only
suspension point of a build, so it is bounded by a caller timeout and can
be cancelled.
"""

import logging
import threading
import time
from typing import Optional

from topology_engine.core.collaborators import CertificateAuthority
from topology_engine.core.errors import CertificateTimeoutError, SubstrateError, ValidationError
from topology_engine.core.identity import stable_id
from topology_engine.core.models import Certificate, CertificateState, Zone
from topology_engine.core.state_machine import CertificateStateMachine

logger = logging.getLogger(__name__)


def request_certificate(
    name: str,
    zone: Zone,
    *,
    certificate_name: Optional[str] = None,
) -> Certificate:
    """Request a certificate for ``name``, validated through ``zone``."""
    entity = f"certificate/{name}"

    if not name:
        raise ValidationError("certificate name is required", entity=entity)

    if name != zone.domain_name and not name.endswith(f".{zone.domain_name}"):
        raise ValidationError(
            f"{name} is not inside zone {zone.domain_name}",
            entity=entity,
            invariant="a certificate is validated through the zone that owns its name",
        )

    certificate = Certificate(
        certificate_id=stable_id("cert", name, zone.zone_id),
        domain_name=name,
        zone=zone,
        certificate_name=certificate_name,
    )
    CertificateStateMachine.transition(certificate, CertificateState.PENDING_VALIDATION)

    logger.info(f"[naming] certificate requested for {name} (zone {zone.zone_id})")

    return certificate


def refresh_certificate(
    authority: CertificateAuthority,
    certificate: Certificate,
    zone: Zone,
) -> Certificate:
    """Pull the current validation state from the authority."""
    state = authority.validate(certificate, zone)
    if state != certificate.state:
        CertificateStateMachine.transition(certificate, state)
        logger.info(f"[naming] certificate {certificate.domain_name} is {state.value}")
    return certificate


def wait_for_issued(
    authority: CertificateAuthority,
    certificate: Certificate,
    zone: Zone,
    *,
    timeout_seconds: float,
    poll_interval_seconds: float = 5.0,
    cancel_event: Optional[threading.Event] = None,
) -> Certificate:
    """
    Block until ``certificate`` is issued.

    Polls the authority every ``poll_interval_seconds`` until:
    - Certificate is issued (returns it)
    - Validation fails (raises SubstrateError)
    - Timeout or cancellation (raises CertificateTimeoutError)
    """
    entity = certificate.entity_id

    if timeout_seconds <= 0:
        raise ValidationError(f"timeout must be positive, got {timeout_seconds}", entity=entity)

    cancel_event = cancel_event or threading.Event()
    deadline = time.monotonic() + timeout_seconds

    while True:
        refresh_certificate(authority, certificate, zone)

        if certificate.state == CertificateState.ISSUED:
            return certificate

        if certificate.state == CertificateState.FAILED:
            raise SubstrateError(
                f"validation of {certificate.domain_name} failed",
                code="VALIDATION_FAILED",
                entity=entity,
            )

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise CertificateTimeoutError(
                f"still {certificate.state.value} after {timeout_seconds}s",
                entity=entity,
                invariant="an encrypted listener waits for an issued certificate",
            )

        logger.debug(
            f"[naming] {certificate.domain_name} {certificate.state.value}, "
            f"{remaining:.1f}s left"
        )

        if cancel_event.wait(min(poll_interval_seconds, remaining)):
            raise CertificateTimeoutError(
                "wait cancelled",
                entity=entity,
                invariant="an encrypted listener waits for an issued certificate",
            )
