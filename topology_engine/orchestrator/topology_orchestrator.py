# topology_engine/orchestrator/topology_orchestrator.py
"""Topology orchestrator - runs the dependency-ordered build pass."""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from topology_engine.access.chain import PortRule, TierSpec, chain
from topology_engine.compute.placement import create_cluster, define_task, place
from topology_engine.config import TopologyConfig
from topology_engine.core.collaborators import CertificateAuthority, ComputeSubstrate, DnsProvider
from topology_engine.core.events_model import TopologyEvent
from topology_engine.core.models import LogSink, Mount, PortMapping, SubnetSpec, SubnetTier
from topology_engine.domain.models import (
    BuildStatus,
    BuildStepExecution,
    DeploymentShape,
    StepStatus,
    Topology,
    TopologyBuild,
)
from topology_engine.domain.templates import ONEDEV_SHAPE
from topology_engine.edge.load_balancer import add_listener, attach_targets, create_load_balancer
from topology_engine.naming.certificates import request_certificate, wait_for_issued
from topology_engine.naming.dns import bind_name, lookup_zone
from topology_engine.network.fabric import allocate
from topology_engine.orchestrator.config import OrchestratorConfig
from topology_engine.plan.graph import BuildPlan
from topology_engine.storage.shared import NFS_PORT, provision
from topology_engine.tagging import apply_tags

logger = logging.getLogger(__name__)


class TopologyOrchestrator:
    """
    Builds one topology per call.

    Flow:
    1. Turn the configuration bundle into an explicit build plan
    2. Run every step in dependency order
    3. Stop at the first error (nothing partial is returned)
    4. Tag the finished entity set
    """

    def __init__(
        self,
        dns_provider: DnsProvider,
        certificate_authority: CertificateAuthority,
        substrate: ComputeSubstrate,
        event_emitters,
        config: Optional[OrchestratorConfig] = None,
    ):
        self._dns = dns_provider
        self._authority = certificate_authority
        self._substrate = substrate
        self._emitters = event_emitters
        self._config = config or OrchestratorConfig()
        self.builds: list[TopologyBuild] = []

    def build(
        self,
        config: TopologyConfig,
        *,
        shape: DeploymentShape = ONEDEV_SHAPE,
        cancel_event: Optional[threading.Event] = None,
    ) -> Topology:
        """
        Run a full build pass.

        Raises the first error encountered, after marking the build FAILED.
        """
        plan = self.plan(config, shape=shape, cancel_event=cancel_event)
        ordered = plan.order()

        build = TopologyBuild(
            build_id=uuid4(),
            name=config.name,
            total_steps=len(ordered),
            steps=[BuildStepExecution(step_id=node.step_id) for node in ordered],
            metadata={
                "shape": shape.shape_id,
                "region": config.region,
                "cidr": config.cidr,
                "fqdn": config.fqdn,
            },
        )
        build.status = BuildStatus.BUILDING
        build.started_at = datetime.now(timezone.utc)
        self.builds.append(build)

        logger.info(f"[orchestrator] starting build {build.build_id} ({config.name})")
        logger.info(f"[orchestrator] plan has {len(ordered)} steps")
        self._emit([TopologyEvent.build_started(build)])

        results: Dict[str, Any] = {}

        for node in ordered:
            step = build.step(node.step_id)
            step.status = StepStatus.RUNNING
            step.started_at = datetime.now(timezone.utc)
            started = time.monotonic()

            logger.info(f"[orchestrator] step {node.step_id}: {node.description}")

            try:
                results[node.step_id] = node.action(results)
            except Exception as e:
                step.status = StepStatus.FAILED
                step.error_message = str(e)
                step.completed_at = datetime.now(timezone.utc)
                self._fail(build, step, e)
                raise

            step.status = StepStatus.COMPLETED
            step.completed_at = datetime.now(timezone.utc)
            step.duration_seconds = time.monotonic() - started
            self._emit([TopologyEvent.step_completed(build, step)])

        topology = Topology(
            build=build,
            address_space=results["address_space"],
            permission_groups=results["permission_groups"],
            volume=results["volume"],
            cluster=results["cluster"],
            task_spec=results["task_spec"],
            service=results["service"],
            load_balancer=results["load_balancer"],
            zone=results["zone"],
            certificate=results["certificate_issued"],
            dns_record=results["dns_record"],
        )

        apply_tags(topology.entities(), config.tags)

        build.status = BuildStatus.COMPLETED
        build.completed_at = datetime.now(timezone.utc)
        self._emit([TopologyEvent.build_completed(build)])

        logger.info(f"[orchestrator] build {build.build_id} completed")

        return topology

    def plan(
        self,
        config: TopologyConfig,
        *,
        shape: DeploymentShape = ONEDEV_SHAPE,
        cancel_event: Optional[threading.Event] = None,
    ) -> BuildPlan:
        """
        Translate the configuration into an explicit build plan.

        Steps that only validate (fabric, access, storage, task definition)
        are added first so a bad bundle fails before any collaborator is
        called. The cluster is created only after the certificate is issued.
        """
        c = self._config
        plan = BuildPlan(config.name)

        # -------------------------
        # Network fabric
        # -------------------------
        plan.add(
            "address_space",
            lambda r: allocate(
                config.cidr,
                config.az_count,
                [
                    SubnetSpec("public", SubnetTier.PUBLIC, c.subnet_mask),
                    SubnetSpec("private", SubnetTier.PRIVATE, c.subnet_mask),
                ],
                name=c.address_space_name,
                region=config.region,
            ),
            description=f"Allocate {config.cidr} across {config.az_count} zones",
        )

        # -------------------------
        # Access control
        # -------------------------
        def edge_rule(listener_def):
            source = config.https_ingress if listener_def.encrypted else config.ssh_ingress
            return PortRule(
                port=listener_def.port,
                source=source,
                description=f"Allow {listener_def.description} traffic from {source}",
            )

        plan.add(
            "permission_groups",
            lambda r: chain([
                TierSpec(
                    name=c.edge_group_name,
                    ports=[edge_rule(l) for l in shape.listeners],
                    description="Allow traffic to the load balancer",
                ),
                TierSpec(
                    name=c.service_group_name,
                    ports=[
                        PortRule(port=l.target_port, description=f"Allow {l.description} traffic from the load balancer")
                        for l in shape.listeners
                    ],
                    description="Allow access from the load balancer",
                ),
                TierSpec(
                    name=c.storage_group_name,
                    ports=[PortRule(port=NFS_PORT, description="Allow NFS traffic from the cluster")],
                    description="Allow access from the cluster",
                ),
            ]),
            depends_on=["address_space"],
            description="Chain edge, service and storage permission groups",
        )

        # -------------------------
        # Shared storage
        # -------------------------
        plan.add(
            "volume",
            lambda r: provision(
                r["address_space"],
                r["permission_groups"][1],
                config.mount_path,
                config.owner,
                config.mode,
                name=shape.volume_name,
                storage_group=r["permission_groups"][2],
            ),
            depends_on=["address_space", "permission_groups"],
            description=f"Provision shared volume at {config.mount_path}",
        )

        # -------------------------
        # Task definition
        # -------------------------
        plan.add(
            "task_spec",
            lambda r: define_task(
                config.cpu,
                config.memory_mib,
                [PortMapping(l.target_port, l.target_protocol) for l in shape.listeners],
                [Mount(shape.volume_name, config.mount_path, read_only=False)],
                config.image,
                LogSink(stream_prefix=shape.log_stream_prefix),
                volumes=[r["volume"]],
                substrate=self._substrate,
                family=shape.shape_id,
                container_name=shape.container_name,
            ),
            depends_on=["volume"],
            description=f"Define task {config.image} ({config.cpu} cpu, {config.memory_mib} MiB)",
        )

        # -------------------------
        # Identity & naming
        # -------------------------
        plan.add(
            "zone",
            lambda r: lookup_zone(self._dns, config.domain_name),
            depends_on=["task_spec"],
            description=f"Look up hosted zone {config.domain_name}",
        )

        plan.add(
            "load_balancer",
            lambda r: create_load_balancer(
                r["address_space"],
                r["permission_groups"][0],
                SubnetTier.PUBLIC,
                name=c.load_balancer_name,
                region=config.region,
            ),
            depends_on=["address_space", "permission_groups"],
            description="Create internet-facing load balancer",
        )

        plan.add(
            "dns_record",
            lambda r: bind_name(
                self._dns,
                r["zone"],
                config.record_name,
                r["load_balancer"].dns_name,
                c.dns_ttl_seconds,
            ),
            depends_on=["zone", "load_balancer"],
            description=f"Bind {config.fqdn} to the load balancer",
        )

        plan.add(
            "certificate",
            lambda r: request_certificate(
                config.fqdn,
                r["zone"],
                certificate_name=shape.certificate_name,
            ),
            depends_on=["zone"],
            description=f"Request certificate for {config.fqdn}",
        )

        plan.add(
            "certificate_issued",
            lambda r: wait_for_issued(
                self._authority,
                r["certificate"],
                r["zone"],
                timeout_seconds=config.certificate_timeout_seconds,
                poll_interval_seconds=config.certificate_poll_seconds,
                cancel_event=cancel_event,
            ),
            depends_on=["certificate", "dns_record"],
            description=f"Wait up to {config.certificate_timeout_seconds}s for the certificate",
        )

        # -------------------------
        # Compute placement
        # -------------------------
        plan.add(
            "cluster",
            lambda r: create_cluster(self._substrate, shape.cluster_name, r["address_space"]),
            depends_on=["address_space", "task_spec", "certificate_issued"],
            description=f"Create cluster {shape.cluster_name}",
        )

        plan.add(
            "service",
            lambda r: place(
                r["cluster"],
                r["task_spec"],
                SubnetTier.PRIVATE,
                r["permission_groups"][1],
                substrate=self._substrate,
            ),
            depends_on=["cluster", "task_spec", "permission_groups"],
            description="Place the service in private subnets",
        )

        # -------------------------
        # Edge termination
        # -------------------------
        for listener_def in shape.listeners:
            depends_on = ["load_balancer", "service"]
            if listener_def.encrypted:
                depends_on.append("certificate_issued")

            plan.add(
                f"listener_{listener_def.port}",
                self._listener_step(listener_def),
                depends_on=depends_on,
                description=(
                    f"Forward {listener_def.protocol.value} {listener_def.port} "
                    f"to {listener_def.target_port}"
                ),
            )

        return plan

    def _listener_step(self, listener_def):
        def action(r):
            certificate = r["certificate_issued"] if listener_def.encrypted else None
            listener = add_listener(
                r["load_balancer"],
                listener_def.port,
                listener_def.protocol,
                certificate,
            )
            return attach_targets(
                r["load_balancer"],
                listener,
                listener_def.target_port,
                listener_def.target_protocol,
                [r["service"]],
            )
        return action

    def _fail(self, build: TopologyBuild, step: BuildStepExecution, error: Exception) -> None:
        for pending in build.steps:
            if pending.status == StepStatus.PENDING:
                pending.status = StepStatus.SKIPPED

        build.status = BuildStatus.FAILED
        build.failed_step = step.step_id
        build.error_message = f"{type(error).__name__}: {error}"
        build.completed_at = datetime.now(timezone.utc)

        logger.error(f"[orchestrator] build {build.build_id} failed at {step.step_id}: {error}")

        self._emit([
            TopologyEvent.step_failed(build, step),
            TopologyEvent.build_failed(build),
        ])

    def _emit(self, events):
        """Emit events via emitters."""
        self._emitters.emit(events)
