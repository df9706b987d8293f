# topology_engine/plan/graph.py
"""
Explicit build plan.

Nodes are topology entities, edges are "requires". The plan is ordered
with Kahn's algorithm, breaking ties by insertion order, so the same plan
always runs in the same order.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence

from topology_engine.core.errors import ConfigError


StepAction = Callable[[Dict[str, Any]], Any]


@dataclass
class PlanNode:
    step_id: str
    action: StepAction
    depends_on: List[str] = field(default_factory=list)
    description: str = ""


class BuildPlan:
    """Dependency graph of build steps."""

    def __init__(self, name: str):
        self.name = name
        self._nodes: Dict[str, PlanNode] = {}

    def add(
        self,
        step_id: str,
        action: StepAction,
        depends_on: Sequence[str] = (),
        description: str = "",
    ) -> PlanNode:
        if step_id in self._nodes:
            raise ConfigError(f"step {step_id!r} defined twice", entity=f"plan/{self.name}")

        node = PlanNode(
            step_id=step_id,
            action=action,
            depends_on=list(depends_on),
            description=description,
        )
        self._nodes[step_id] = node
        return node

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, step_id: str) -> bool:
        return step_id in self._nodes

    def order(self) -> List[PlanNode]:
        """Topological order of the plan."""
        entity = f"plan/{self.name}"

        for node in self._nodes.values():
            for dep in node.depends_on:
                if dep not in self._nodes:
                    raise ConfigError(
                        f"step {node.step_id!r} requires unknown step {dep!r}",
                        entity=entity,
                    )

        remaining = {step_id: len(set(n.depends_on)) for step_id, n in self._nodes.items()}
        dependents: Dict[str, List[str]] = {step_id: [] for step_id in self._nodes}
        for node in self._nodes.values():
            for dep in set(node.depends_on):
                dependents[dep].append(node.step_id)

        ready = [step_id for step_id, count in remaining.items() if count == 0]
        ordered: List[PlanNode] = []

        while ready:
            step_id = ready.pop(0)
            ordered.append(self._nodes[step_id])
            for child in dependents[step_id]:
                remaining[child] -= 1
                if remaining[child] == 0:
                    ready.append(child)
            # keep ties in insertion order
            ready.sort(key=list(self._nodes).index)

        if len(ordered) != len(self._nodes):
            cyclic = sorted(step_id for step_id, count in remaining.items() if count > 0)
            raise ConfigError(
                f"dependency cycle between steps {cyclic}",
                entity=entity,
                invariant="the build plan is acyclic",
            )

        return ordered

    def requires(self, step_id: str) -> List[str]:
        """Transitive dependencies of ``step_id``."""
        seen: List[str] = []
        stack = list(self._nodes[step_id].depends_on)
        while stack:
            dep = stack.pop()
            if dep in seen:
                continue
            seen.append(dep)
            stack.extend(self._nodes[dep].depends_on)
        return seen
