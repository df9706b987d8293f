#topology_engine\domain\models.py
"""Domain models for deployment shapes and build records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from topology_engine.core.models import (
    AddressSpace,
    Certificate,
    Cluster,
    DnsRecord,
    Listener,
    LoadBalancer,
    PermissionGroup,
    Protocol,
    ServiceInstance,
    TaskSpec,
    Volume,
    Zone,
)


# ============================================
# ENUMS
# ============================================

class BuildStatus(Enum):
    """Build pass status."""
    PENDING = "PENDING"
    BUILDING = "BUILDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StepStatus(Enum):
    """Build step status."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


# ============================================
# DEPLOYMENT SHAPE
# ============================================

@dataclass(frozen=True)
class ListenerDefinition:
    """External port -> internal port mapping on the edge."""
    name: str
    port: int
    protocol: Protocol
    target_port: int
    target_protocol: Protocol = Protocol.TCP
    description: str = ""

    @property
    def encrypted(self) -> bool:
        return self.protocol.requires_certificate


@dataclass
class DeploymentShape:
    """The single deployment shape: one entrypoint, one service, one filesystem."""
    shape_id: str
    name: str
    description: str

    container_name: str
    log_stream_prefix: str
    cluster_name: str

    listeners: List[ListenerDefinition] = field(default_factory=list)

    volume_name: str = "volume"
    certificate_name: Optional[str] = None

    def service_ports(self) -> List[int]:
        return [l.target_port for l in self.listeners]

    def edge_ports(self) -> List[int]:
        return [l.port for l in self.listeners]


# ============================================
# BUILD RECORD
# ============================================

@dataclass
class BuildStepExecution:
    """Execution tracking for a build step."""
    step_id: str
    status: StepStatus = StepStatus.PENDING

    error_message: Optional[str] = None

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None


@dataclass
class TopologyBuild:
    """One dependency-ordered build pass."""
    build_id: UUID
    name: str

    status: BuildStatus = BuildStatus.PENDING

    steps: List[BuildStepExecution] = field(default_factory=list)
    total_steps: int = 0

    failed_step: Optional[str] = None
    error_message: Optional[str] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    def step(self, step_id: str) -> Optional[BuildStepExecution]:
        for s in self.steps:
            if s.step_id == step_id:
                return s
        return None


# ============================================
# TOPOLOGY
# ============================================

@dataclass
class Topology:
    """Result of a completed build pass."""
    build: TopologyBuild

    address_space: AddressSpace
    permission_groups: List[PermissionGroup]
    volume: Volume
    cluster: Cluster
    task_spec: TaskSpec
    service: ServiceInstance
    load_balancer: LoadBalancer
    zone: Zone
    certificate: Certificate
    dns_record: DnsRecord

    @property
    def listeners(self) -> List[Listener]:
        return [self.load_balancer.listeners[port] for port in sorted(self.load_balancer.listeners)]

    def entities(self) -> List[object]:
        """Every entity of the topology, leaf-first."""
        return [
            self.address_space,
            *self.permission_groups,
            self.volume.file_system,
            self.volume.access_point,
            self.cluster,
            self.task_spec,
            self.service,
            self.load_balancer,
            *self.listeners,
            self.certificate,
            self.dns_record,
        ]
