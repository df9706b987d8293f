# topology_engine/infrastructure/memory/substrate.py

from threading import Lock
from typing import Any, Dict, List, Optional

from topology_engine.core.collaborators import ComputeSubstrate
from topology_engine.core.errors import SubstrateError
from topology_engine.core.identity import stable_id
from topology_engine.core.models import TaskSpec


# Serverless task sizes: cpu units -> allowed memory (MiB)
FARGATE_TASK_SIZES: Dict[int, List[int]] = {
    256: [512, 1024, 2048],
    512: list(range(1024, 4096 + 1, 1024)),
    1024: list(range(2048, 8192 + 1, 1024)),
    2048: list(range(4096, 16384 + 1, 1024)),
    4096: list(range(8192, 30720 + 1, 1024)),
    8192: list(range(16384, 61440 + 1, 4096)),
    16384: list(range(32768, 122880 + 1, 8192)),
}


class InMemoryFargateSubstrate(ComputeSubstrate):
    """Serverless container substrate kept in process memory."""

    def __init__(
        self,
        *,
        account: str = "000000000000",
        region: str = "us-east-1",
        task_quota: Optional[int] = None,
    ):
        self.account = account
        self.region = region
        self.task_quota = task_quota
        self._clusters: Dict[str, Dict[str, Any]] = {}
        self._tasks: Dict[str, TaskSpec] = {}
        self._failures: List[SubstrateError] = []
        self._lock = Lock()

    def fail_next_schedule(self, error: SubstrateError) -> None:
        """Make the next ``schedule`` call raise ``error``."""
        with self._lock:
            self._failures.append(error)

    def create_cluster(self, name: str, options: Dict[str, Any]) -> str:
        with self._lock:
            existing = self._clusters.get(name)
            if existing is not None and existing != dict(options):
                raise SubstrateError(
                    f"Cluster {name} already exists with different settings",
                    code="ClusterAlreadyExistsException",
                    entity=f"cluster/{name}",
                )
            # Same name and settings returns the existing cluster
            self._clusters[name] = dict(options)
            return f"arn:aws:ecs:{self.region}:{self.account}:cluster/{name}"

    def validate_task_size(self, cpu: int, memory_mib: int) -> None:
        allowed = FARGATE_TASK_SIZES.get(cpu)
        if allowed is None:
            raise SubstrateError(
                f"Invalid CPU value {cpu}; valid values are {sorted(FARGATE_TASK_SIZES)}",
                code="ClientException",
            )
        if memory_mib not in allowed:
            raise SubstrateError(
                f"No Fargate configuration exists for given values: "
                f"{cpu} CPU, {memory_mib} memory",
                code="ClientException",
            )

    def schedule(self, spec: TaskSpec) -> str:
        with self._lock:
            if self._failures:
                raise self._failures.pop(0)

            if self.task_quota is not None and len(self._tasks) >= self.task_quota:
                raise SubstrateError(
                    f"You've reached the limit on the number of tasks you can run "
                    f"concurrently ({self.task_quota})",
                    code="LimitExceededException",
                    entity=spec.entity_id,
                )

            handle = stable_id("task", spec.family, spec.image, len(self._tasks), length=32)
            self._tasks[handle] = spec
            return handle

    def running_tasks(self) -> List[str]:
        return list(self._tasks)

    def clusters(self) -> List[str]:
        return list(self._clusters)
