#tests\test_tagging.py

"""Test cross-cutting tags and build events."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from topology_engine.core.errors import ValidationError
from topology_engine.core.events import MultiEventEmitter, RecordingEventEmitter
from topology_engine.core.events_model import TopologyEvent
from topology_engine.tagging import apply_tags


class TestApplyTags:
    """Test tag application."""

    def test_tags_every_entity(self, address_space, groups, load_balancer):
        """Test each taggable entity receives the tags."""
        entities = [address_space, *groups, load_balancer]

        count = apply_tags(entities, {"CostCenter": "onedev"})

        assert count == 5
        assert all(e.tags == {"CostCenter": "onedev"} for e in entities)

    def test_shared_entity_tagged_once(self, address_space):
        """Test an entity reachable twice counts once."""
        assert apply_tags([address_space, address_space], {"owner": "platform"}) == 1

    def test_untaggable_objects_are_skipped(self, volume):
        """Test objects without tags are ignored."""
        assert apply_tags([volume, volume.file_system], {"owner": "platform"}) == 1

    def test_merges_with_existing_tags(self, address_space):
        """Test tags are added, not replaced."""
        address_space.tags["Name"] = "vpc"

        apply_tags([address_space], {"owner": "platform"})

        assert address_space.tags == {"Name": "vpc", "owner": "platform"}

    def test_empty_key_fails(self, address_space):
        """Test tag keys are required."""
        with pytest.raises(ValidationError):
            apply_tags([address_space], {"": "x"})

    def test_non_string_value_fails(self, address_space):
        """Test tag values are strings."""
        with pytest.raises(ValidationError):
            apply_tags([address_space], {"CostCenter": 42})


class TestEventEmitters:
    """Test build event fan-out."""

    def _event(self, event_type):
        return TopologyEvent(
            event_type=event_type,
            build_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            metadata={},
        )

    def test_fan_out(self):
        """Test every emitter receives the events."""
        first = RecordingEventEmitter()
        second = RecordingEventEmitter()
        emitters = MultiEventEmitter([first, second])

        emitters.emit([self._event("build.started")])

        assert first.event_types() == ["build.started"]
        assert second.event_types() == ["build.started"]

    def test_unknown_event_type_fails(self):
        """Test only known event types are recorded."""
        recorder = RecordingEventEmitter()

        with pytest.raises(ValueError):
            recorder.emit([self._event("build.exploded")])

        assert recorder.events == []
