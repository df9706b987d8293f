# topology_engine/domain/templates/onedev.py
"""OneDev deployment shape - git server behind TLS and SSH listeners."""

from topology_engine.core.models import Protocol
from topology_engine.domain.models import DeploymentShape, ListenerDefinition


ONEDEV_SHAPE = DeploymentShape(
    shape_id="onedev",
    name="OneDev on serverless containers",
    description="OneDev deployment",

    container_name="onedev",
    log_stream_prefix="onedev",
    cluster_name="onedev-ecs-cluster",
    certificate_name="OneDev service",

    # The task runs unprivileged, so well-known edge ports map to high ports
    listeners=[
        ListenerDefinition(
            name="Listener443",
            port=443,
            protocol=Protocol.TLS,
            target_port=6610,
            description="HTTPS",
        ),
        ListenerDefinition(
            name="Listener22",
            port=22,
            protocol=Protocol.TCP,
            target_port=6611,
            description="SSH",
        ),
    ],
)
