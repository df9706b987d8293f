#tests\test_domain_models.py

"""Test domain models and state transitions."""

from uuid import uuid4

import pytest

from topology_engine.core.errors import InvalidStateTransition, TopologyError
from topology_engine.core.models import (
    Certificate,
    CertificateState,
    Listener,
    ListenerState,
    Protocol,
    Zone,
)
from topology_engine.core.state_machine import CertificateStateMachine, ListenerStateMachine
from topology_engine.domain.models import BuildStatus, BuildStepExecution, StepStatus, TopologyBuild
from topology_engine.domain.templates import ONEDEV_SHAPE


class TestListenerLifecycle:
    """Test listener state transitions."""

    @pytest.fixture
    def listener(self):
        """Create sample listener."""
        return Listener(name="Listener22", load_balancer="network-lb", port=22, protocol=Protocol.TCP)

    # -------------------------
    # STATE TRANSITION TESTS
    # -------------------------

    def test_initial_state(self, listener):
        """Test listener starts DECLARED."""
        assert listener.state == ListenerState.DECLARED
        assert listener.generation == 1

    def test_bind_then_serve(self, listener):
        """Test DECLARED -> BOUND -> SERVING."""
        ListenerStateMachine.transition(listener, ListenerState.BOUND)
        ListenerStateMachine.transition(listener, ListenerState.SERVING)

        assert listener.state == ListenerState.SERVING

    def test_skip_bound_fails(self, listener):
        """Test DECLARED -> SERVING is rejected."""
        with pytest.raises(InvalidStateTransition) as exc:
            ListenerStateMachine.transition(listener, ListenerState.SERVING)

        assert listener.entity_id in str(exc.value)

    def test_same_state_is_noop(self, listener):
        """Test re-entering the current state."""
        ListenerStateMachine.transition(listener, ListenerState.DECLARED)

        assert listener.state == ListenerState.DECLARED


class TestCertificateLifecycle:
    """Test certificate state transitions."""

    @pytest.fixture
    def certificate(self):
        """Create sample certificate."""
        zone = Zone(zone_id="Z123", domain_name="example.com")
        return Certificate(certificate_id="cert-1", domain_name="git.example.com", zone=zone)

    def test_initial_state(self, certificate):
        """Test certificate starts REQUESTED."""
        assert certificate.state == CertificateState.REQUESTED

    def test_pending_then_issued(self, certificate):
        """Test REQUESTED -> PENDING_VALIDATION -> ISSUED."""
        CertificateStateMachine.transition(certificate, CertificateState.PENDING_VALIDATION)
        CertificateStateMachine.transition(certificate, CertificateState.ISSUED)

        assert certificate.is_issued

    def test_issue_without_validation_fails(self, certificate):
        """Test REQUESTED -> ISSUED is rejected."""
        with pytest.raises(InvalidStateTransition):
            CertificateStateMachine.transition(certificate, CertificateState.ISSUED)

    def test_failed_is_terminal(self, certificate):
        """Test FAILED -> ISSUED is rejected."""
        CertificateStateMachine.transition(certificate, CertificateState.PENDING_VALIDATION)
        CertificateStateMachine.transition(certificate, CertificateState.FAILED)

        with pytest.raises(InvalidStateTransition):
            CertificateStateMachine.transition(certificate, CertificateState.ISSUED)


class TestErrors:
    """Test error rendering."""

    def test_message_names_entity_and_invariant(self):
        """Test every error says what failed and why."""
        error = TopologyError("broken", entity="volume/data", invariant="paths are absolute")

        assert str(error) == "[volume/data] broken (invariant: paths are absolute)"
        assert error.detail == "broken"


class TestDeploymentShape:
    """Test the reference deployment shape."""

    def test_listeners(self):
        """Test edge and service ports line up."""
        assert ONEDEV_SHAPE.edge_ports() == [443, 22]
        assert ONEDEV_SHAPE.service_ports() == [6610, 6611]

    def test_only_https_is_encrypted(self):
        """Test only the TLS listener needs a certificate."""
        encrypted = {l.port: l.encrypted for l in ONEDEV_SHAPE.listeners}

        assert encrypted == {443: True, 22: False}


class TestTopologyBuild:
    """Test build bookkeeping."""

    def test_step_lookup(self):
        """Test steps are found by id."""
        build = TopologyBuild(
            build_id=uuid4(),
            name="test",
            steps=[BuildStepExecution(step_id="address_space")],
        )

        assert build.status == BuildStatus.PENDING
        assert build.step("address_space").status == StepStatus.PENDING
        assert build.step("missing") is None
