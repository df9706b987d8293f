# topology_engine/run_build.py
"""Compile the topology from TOPOLOGY_* settings against in-memory collaborators."""

import logging
import sys

from topology_engine.config import load_config
from topology_engine.container import Container
from topology_engine.core.errors import TopologyError

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main() -> int:
    """Main entry point."""
    try:
        config = load_config()
    except TopologyError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    container = Container(config)

    logger.info("=" * 80)
    logger.info("TOPOLOGY BUILD")
    logger.info("=" * 80)
    logger.info(f"Name: {config.name}")
    logger.info(f"Address block: {config.cidr} across {config.az_count} AZs")
    logger.info(f"Image: {config.image}")
    logger.info(f"Domain: {config.fqdn}")
    logger.info(f"Certificate timeout: {config.certificate_timeout_seconds}s")
    logger.info("=" * 80)

    try:
        topology = container.orchestrator.build(config)
    except TopologyError as e:
        logger.error(f"Build failed: {e}")
        return 1

    logger.info("")
    logger.info(f"Subnets: {[s.cidr for s in topology.address_space.subnets]}")
    for group in topology.permission_groups:
        logger.info(
            f"Group {group.name}: "
            f"{[(r.source.describe(), r.port) for r in group.rules]}"
        )
    logger.info(f"Volume: {topology.volume.path} ({topology.volume.file_system.file_system_id})")
    logger.info(f"Service: {topology.service.name} ({topology.service.instance_handle})")
    for listener in topology.listeners:
        targets = [a.target_port for a in listener.attachments]
        logger.info(f"Listener {listener.port}/{listener.protocol.value} -> {targets} [{listener.state.value}]")
    logger.info(f"DNS: {topology.dns_record.fqdn} -> {topology.dns_record.target}")
    logger.info("=" * 80)

    return 0


if __name__ == "__main__":
    sys.exit(main())
