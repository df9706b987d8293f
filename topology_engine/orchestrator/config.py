#topology_engine\orchestrator\config.py
from dataclasses import dataclass


@dataclass(frozen=True)
class OrchestratorConfig:
    address_space_name: str = "vpc"
    subnet_mask: int = 28

    edge_group_name: str = "edge-sg"
    service_group_name: str = "service-sg"
    storage_group_name: str = "storage-sg"

    load_balancer_name: str = "network-lb"
    dns_ttl_seconds: int = 60
