#topology_engine\core\validation.py
import posixpath
import re

from topology_engine.core.errors import ValidationError


_MODE_PATTERN = re.compile(r"^[0-7]{3,4}$")
_IMAGE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._\-/:@]*$")


def validate_port(port: int, *, entity: str) -> None:
    if not isinstance(port, int) or isinstance(port, bool):
        raise ValidationError(f"port must be an integer, got {port!r}", entity=entity)

    if not 1 <= port <= 65535:
        raise ValidationError(f"port {port} out of range 1-65535", entity=entity)


def validate_absolute_path(path: str, *, entity: str) -> None:
    # -------------------------
    # Presence
    # -------------------------
    if not path:
        raise ValidationError(
            "mount path must not be empty",
            entity=entity,
            invariant="mount path is an absolute POSIX path",
        )

    # -------------------------
    # Shape
    # -------------------------
    if not posixpath.isabs(path):
        raise ValidationError(
            f"mount path {path!r} is not absolute",
            entity=entity,
            invariant="mount path is an absolute POSIX path",
        )

    if posixpath.normpath(path) != path.rstrip("/") and path != "/":
        raise ValidationError(
            f"mount path {path!r} is not normalized",
            entity=entity,
            invariant="mount path is an absolute POSIX path",
        )


def validate_mode(mode: str, *, entity: str) -> None:
    if not isinstance(mode, str) or not _MODE_PATTERN.match(mode):
        raise ValidationError(
            f"permission mode {mode!r} is not an octal string like '755'",
            entity=entity,
        )


def validate_posix_id(value: int, *, name: str, entity: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(
            f"{name} must be a non-negative integer, got {value!r}",
            entity=entity,
        )


def validate_image(image: str, *, entity: str) -> None:
    if not image:
        raise ValidationError("image reference is required", entity=entity)

    if not _IMAGE_PATTERN.match(image):
        raise ValidationError(f"image reference {image!r} is malformed", entity=entity)
