"""Deterministic resource identifiers."""

import hashlib


def stable_id(prefix: str, *parts: object, length: int = 17) -> str:
    """Derive an id from its inputs so identical builds yield identical ids."""
    digest = hashlib.sha256("|".join(str(p) for p in parts).encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:length]}"
