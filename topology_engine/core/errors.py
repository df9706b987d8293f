# topology_engine/core/errors.py

from typing import Optional


# -----------------------------
# Base Errors
# -----------------------------

class TopologyError(Exception):
    """Base class for all topology engine errors.

    Every error names the entity that failed and the invariant it violated,
    so a failed build never reports just "operation failed".
    """

    def __init__(
        self,
        message: str,
        *,
        entity: Optional[str] = None,
        invariant: Optional[str] = None,
    ):
        self.entity = entity
        self.invariant = invariant
        self.detail = message
        super().__init__(self._render(message))

    def _render(self, message: str) -> str:
        parts = []
        if self.entity:
            parts.append(f"[{self.entity}]")
        parts.append(message)
        if self.invariant:
            parts.append(f"(invariant: {self.invariant})")
        return " ".join(parts)


# -----------------------------
# Caller Errors
# -----------------------------

class ConfigError(TopologyError):
    """Caller-supplied topology violates an invariant."""
    pass


class CapacityError(TopologyError):
    """Requested sizing cannot be satisfied."""
    pass


class ValidationError(TopologyError):
    """Malformed entity fields."""
    pass


# -----------------------------
# Collaborator Errors
# -----------------------------

class SubstrateError(TopologyError):
    """External collaborator rejected a request.

    The collaborator's own code and message are kept verbatim.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        entity: Optional[str] = None,
        invariant: Optional[str] = None,
    ):
        self.code = code
        super().__init__(message, entity=entity, invariant=invariant)


class CertificateTimeoutError(TopologyError, TimeoutError):
    """Certificate validation did not complete within the caller's bound."""
    pass


# -----------------------------
# Build Errors
# -----------------------------

class InvalidStateTransition(TopologyError):
    """Illegal lifecycle transition attempted."""
    pass
