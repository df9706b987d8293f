#topology_engine\core\state_machine.py

from topology_engine.core.errors import InvalidStateTransition
from topology_engine.core.models import (
    Certificate,
    CertificateState,
    Listener,
    ListenerState,
)


LISTENER_TRANSITIONS = {
    ListenerState.DECLARED: {
        ListenerState.BOUND,
    },
    ListenerState.BOUND: {
        ListenerState.SERVING,
    },
    # SERVING is terminal: changes build a replacement listener
}


CERTIFICATE_TRANSITIONS = {
    CertificateState.REQUESTED: {
        CertificateState.PENDING_VALIDATION,
    },
    CertificateState.PENDING_VALIDATION: {
        CertificateState.ISSUED,
        CertificateState.FAILED,
    },
}


class ListenerStateMachine:
    @staticmethod
    def transition(listener: Listener, new_state: ListenerState) -> Listener:
        current = listener.state

        if current == new_state:
            return listener

        allowed = LISTENER_TRANSITIONS.get(current, set())
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {new_state.value}",
                entity=listener.entity_id,
                invariant="listener lifecycle is declared -> bound -> serving",
            )

        listener.state = new_state
        return listener


class CertificateStateMachine:
    @staticmethod
    def transition(certificate: Certificate, new_state: CertificateState) -> Certificate:
        current = certificate.state

        if current == new_state:
            return certificate

        allowed = CERTIFICATE_TRANSITIONS.get(current, set())
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {new_state.value}",
                entity=certificate.entity_id,
                invariant="certificate lifecycle is requested -> pending-validation -> issued",
            )

        certificate.state = new_state
        return certificate
