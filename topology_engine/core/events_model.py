"""Event models for the topology build pass."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID


@dataclass
class TopologyEvent:
    """Base build event."""

    event_type: str
    build_id: UUID
    timestamp: datetime
    metadata: Dict[str, Any]

    @staticmethod
    def build_started(build):
        """Build started event."""
        return TopologyEvent(
            event_type="build.started",
            build_id=build.build_id,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "name": build.name,
                "total_steps": build.total_steps,
                **build.metadata,
            }
        )

    @staticmethod
    def step_completed(build, step):
        """Step completed event."""
        return TopologyEvent(
            event_type="step.completed",
            build_id=build.build_id,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "step_id": step.step_id,
                "duration_seconds": step.duration_seconds,
            }
        )

    @staticmethod
    def step_failed(build, step):
        """Step failed event."""
        return TopologyEvent(
            event_type="step.failed",
            build_id=build.build_id,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "step_id": step.step_id,
                "error": step.error_message,
            }
        )

    @staticmethod
    def build_completed(build):
        """Build completed event."""
        return TopologyEvent(
            event_type="build.completed",
            build_id=build.build_id,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "completed_at": build.completed_at.isoformat() if build.completed_at else None,
            }
        )

    @staticmethod
    def build_failed(build):
        """Build failed event."""
        return TopologyEvent(
            event_type="build.failed",
            build_id=build.build_id,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "failed_step": build.failed_step,
                "error": build.error_message,
            }
        )
