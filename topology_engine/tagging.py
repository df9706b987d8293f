"""Cross-cutting tags, applied once over the finished entity set."""

import logging
from typing import Iterable, Mapping

from topology_engine.core.errors import ValidationError

logger = logging.getLogger(__name__)


def apply_tags(entities: Iterable[object], tags: Mapping[str, str]) -> int:
    """
    Decorate every entity that carries tags.

    Returns the number of entities tagged. Entities reachable twice are
    tagged once.
    """
    for key, value in tags.items():
        if not key:
            raise ValidationError("tag keys must not be empty", entity="tags")
        if not isinstance(value, str):
            raise ValidationError(f"tag {key!r} must be a string, got {value!r}", entity="tags")

    seen = set()
    for entity in entities:
        if id(entity) in seen or not hasattr(entity, "tags"):
            continue
        seen.add(id(entity))
        entity.tags.update(tags)

    logger.info(f"[tagging] applied {len(tags)} tag(s) to {len(seen)} entities")

    return len(seen)
