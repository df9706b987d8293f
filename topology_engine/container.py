#topology_engine\container.py

"""Dependency injection container - wires collaborators and the orchestrator together."""

from typing import Optional

from topology_engine.config import TopologyConfig
from topology_engine.core.events import MultiEventEmitter, RecordingEventEmitter
from topology_engine.infrastructure.memory.certificate_authority import InMemoryCertificateAuthority
from topology_engine.infrastructure.memory.dns import InMemoryDnsProvider
from topology_engine.infrastructure.memory.substrate import InMemoryFargateSubstrate
from topology_engine.orchestrator.config import OrchestratorConfig
from topology_engine.orchestrator.topology_orchestrator import TopologyOrchestrator


class Container:
    """In-memory collaborators for dry-run builds."""

    def __init__(
        self,
        config: TopologyConfig,
        *,
        validated_zone: bool = True,
        orchestrator_config: Optional[OrchestratorConfig] = None,
    ):
        # ============================================
        # COLLABORATORS
        # ============================================

        self.dns_provider = InMemoryDnsProvider([config.domain_name])
        self.certificate_authority = InMemoryCertificateAuthority()
        self.substrate = InMemoryFargateSubstrate(region=config.region)

        if validated_zone:
            zone = self.dns_provider.lookup_zone(config.domain_name)
            self.certificate_authority.mark_zone_validated(zone)

        # ============================================
        # EVENTS
        # ============================================

        self.recorder = RecordingEventEmitter()
        self.emitters = MultiEventEmitter([
            self.recorder
        ])

        # ============================================
        # ORCHESTRATOR
        # ============================================

        self.orchestrator = TopologyOrchestrator(
            dns_provider=self.dns_provider,
            certificate_authority=self.certificate_authority,
            substrate=self.substrate,
            event_emitters=self.emitters,
            config=orchestrator_config,
        )
