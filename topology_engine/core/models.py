"""Core topology entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


# ============================================
# ENUMS
# ============================================

class SubnetTier(Enum):
    """Network tier a subnet belongs to."""
    PUBLIC = "public"
    PRIVATE = "private"


class Protocol(Enum):
    """Transport / listener protocol."""
    TCP = "TCP"
    UDP = "UDP"
    TLS = "TLS"

    @property
    def requires_certificate(self) -> bool:
        return self is Protocol.TLS


class CertificateState(Enum):
    """Certificate validation lifecycle."""
    REQUESTED = "requested"
    PENDING_VALIDATION = "pending-validation"
    ISSUED = "issued"
    FAILED = "failed"


class ListenerState(Enum):
    """Listener lifecycle."""
    DECLARED = "declared"
    BOUND = "bound"
    SERVING = "serving"


class AuthorizationMode(Enum):
    """Access point authorization mode."""
    IAM_ENABLED = "ENABLED"
    IAM_DISABLED = "DISABLED"


class OperatingSystemFamily(Enum):
    LINUX = "LINUX"
    WINDOWS_SERVER_2022_CORE = "WINDOWS_SERVER_2022_CORE"


class CpuArchitecture(Enum):
    X86_64 = "X86_64"
    ARM64 = "ARM64"


# ============================================
# NETWORK FABRIC
# ============================================

@dataclass(frozen=True)
class SubnetSpec:
    """Request for one subnet per availability zone."""
    name: str
    tier: SubnetTier
    cidr_mask: int = 28


@dataclass(frozen=True)
class Subnet:
    name: str
    tier: SubnetTier
    cidr: str
    availability_zone: str


@dataclass(frozen=True)
class NatGateway:
    name: str
    subnet: str  # public subnet that hosts it
    availability_zone: str


@dataclass
class RouteTable:
    """One routing table per tier."""
    name: str
    tier: SubnetTier
    subnets: List[str] = field(default_factory=list)
    default_route: Optional[str] = None  # gateway id, or "nat" for per-AZ NAT


@dataclass
class AddressSpace:
    """Isolated address space split into public and private tiers."""
    name: str
    cidr: str
    availability_zones: List[str]
    subnets: List[Subnet] = field(default_factory=list)
    route_tables: Dict[SubnetTier, RouteTable] = field(default_factory=dict)
    internet_gateway: Optional[str] = None
    nat_gateways: List[NatGateway] = field(default_factory=list)

    enable_dns_hostnames: bool = True
    enable_dns_support: bool = True
    restrict_default_security_group: bool = True

    tags: Dict[str, str] = field(default_factory=dict)

    def subnets_in(self, tier: SubnetTier) -> List[Subnet]:
        """Subnets of one tier, in allocation order."""
        return [s for s in self.subnets if s.tier == tier]

    @property
    def entity_id(self) -> str:
        return f"address-space/{self.name}"


# ============================================
# ACCESS CONTROL
# ============================================

@dataclass(frozen=True)
class Peer:
    """Source of an inbound rule.

    Either a CIDR range (edge tier only) or another permission group.
    """
    cidr: Optional[str] = None
    group: Optional[str] = None

    @property
    def is_range(self) -> bool:
        return self.cidr is not None

    def describe(self) -> str:
        return self.cidr if self.is_range else f"sg:{self.group}"


ANY_IPV4 = Peer(cidr="0.0.0.0/0")


@dataclass(frozen=True)
class IngressRule:
    source: Peer
    protocol: Protocol
    port: int
    description: str = ""


@dataclass
class PermissionGroup:
    """Named set of inbound rules.

    Build through ``access.chain`` constructors, never directly.
    """
    name: str
    tier_index: int
    rules: List[IngressRule] = field(default_factory=list)
    upstream: Optional["PermissionGroup"] = None
    description: str = ""
    allow_all_outbound: bool = True

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def internet_facing(self) -> bool:
        return self.tier_index == 0

    def opened_ports(self, protocol: Optional[Protocol] = None) -> List[int]:
        return [
            r.port for r in self.rules
            if protocol is None or r.protocol == protocol
        ]

    def allows(self, port: int, protocol: Protocol, source: Optional[Peer] = None) -> bool:
        """Check whether an inbound rule opens ``port`` (optionally from ``source``)."""
        for rule in self.rules:
            if rule.port != port or rule.protocol != protocol:
                continue
            if source is None or rule.source == source:
                return True
        return False

    def as_peer(self) -> Peer:
        return Peer(group=self.name)

    @property
    def entity_id(self) -> str:
        return f"permission-group/{self.name}"


# ============================================
# SHARED STORAGE
# ============================================

@dataclass(frozen=True)
class PosixOwner:
    uid: int
    gid: int


@dataclass
class FileSystem:
    file_system_id: str
    permission_group: PermissionGroup
    mount_targets: List[str] = field(default_factory=list)  # private subnet CIDRs
    encrypted_at_rest: bool = True

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def entity_id(self) -> str:
        return f"file-system/{self.file_system_id}"


@dataclass
class AccessPoint:
    access_point_id: str
    file_system_id: str
    path: str
    owner: PosixOwner
    permissions: str
    posix_user: PosixOwner

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def entity_id(self) -> str:
        return f"access-point/{self.access_point_id}"


@dataclass
class Volume:
    """Filesystem + access point pair mounted by the task."""
    name: str
    file_system: FileSystem
    access_point: AccessPoint
    transit_encryption: bool = True
    authorization: AuthorizationMode = AuthorizationMode.IAM_ENABLED

    @property
    def owner(self) -> PosixOwner:
        return self.access_point.owner

    @property
    def mode(self) -> str:
        return self.access_point.permissions

    @property
    def path(self) -> str:
        return self.access_point.path


# ============================================
# COMPUTE
# ============================================

@dataclass(frozen=True)
class PortMapping:
    container_port: int
    protocol: Protocol = Protocol.TCP


@dataclass(frozen=True)
class Mount:
    volume_name: str
    container_path: str
    read_only: bool = False


@dataclass(frozen=True)
class LogSink:
    """Container log destination (awslogs-style driver)."""
    stream_prefix: str
    driver: str = "awslogs"


@dataclass
class Cluster:
    name: str
    address_space: AddressSpace
    cluster_arn: str
    container_insights: bool = True
    serverless_capacity_providers: bool = True

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def entity_id(self) -> str:
        return f"cluster/{self.name}"


@dataclass
class TaskSpec:
    family: str
    container_name: str
    cpu: int
    memory_mib: int
    ports: List[PortMapping]
    mounts: List[Mount]
    image: str
    log_sink: LogSink
    volumes: Dict[str, Volume] = field(default_factory=dict)
    operating_system: OperatingSystemFamily = OperatingSystemFamily.LINUX
    cpu_architecture: CpuArchitecture = CpuArchitecture.X86_64

    tags: Dict[str, str] = field(default_factory=dict)

    def declares_port(self, port: int, protocol: Protocol) -> bool:
        return any(
            p.container_port == port and p.protocol == protocol
            for p in self.ports
        )

    @property
    def entity_id(self) -> str:
        return f"task/{self.family}"


@dataclass
class ServiceInstance:
    name: str
    cluster: Cluster
    task_spec: TaskSpec
    subnets: List[Subnet]
    permission_group: PermissionGroup
    instance_handle: str
    revision: int = 1

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def entity_id(self) -> str:
        return f"service/{self.name}@{self.revision}"


# ============================================
# IDENTITY & NAMING
# ============================================

@dataclass(frozen=True)
class Zone:
    zone_id: str
    domain_name: str


@dataclass
class DnsRecord:
    record_name: str
    zone: Zone
    target: str
    ttl: int = 60
    record_type: str = "CNAME"

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def fqdn(self) -> str:
        return f"{self.record_name}.{self.zone.domain_name}"

    @property
    def entity_id(self) -> str:
        return f"dns-record/{self.fqdn}"


@dataclass
class Certificate:
    certificate_id: str
    domain_name: str
    zone: Zone
    certificate_name: Optional[str] = None
    state: CertificateState = CertificateState.REQUESTED

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def is_issued(self) -> bool:
        return self.state == CertificateState.ISSUED

    @property
    def entity_id(self) -> str:
        return f"certificate/{self.domain_name}"


# ============================================
# EDGE TERMINATION
# ============================================

@dataclass(frozen=True)
class TargetAttachment:
    target_port: int
    target_protocol: Protocol
    targets: Tuple[str, ...]  # service instance entity ids


@dataclass
class Listener:
    name: str
    load_balancer: str
    port: int
    protocol: Protocol
    certificate: Optional[Certificate] = None
    attachments: List[TargetAttachment] = field(default_factory=list)
    state: ListenerState = ListenerState.DECLARED
    generation: int = 1

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def entity_id(self) -> str:
        return f"listener/{self.load_balancer}:{self.port}#{self.generation}"


@dataclass
class LoadBalancer:
    name: str
    dns_name: str
    subnets: List[Subnet]
    permission_group: PermissionGroup
    internet_facing: bool = True
    listeners: Dict[int, Listener] = field(default_factory=dict)

    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def entity_id(self) -> str:
        return f"load-balancer/{self.name}"
