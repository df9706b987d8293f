# topology_engine/storage/shared.py
"""Shared storage - network filesystem plus a scoped access point."""

import logging
from typing import Optional, Tuple, Union

from topology_engine.access.chain import downstream_group
from topology_engine.core.errors import ConfigError, ValidationError
from topology_engine.core.identity import stable_id
from topology_engine.core.models import (
    AccessPoint,
    AddressSpace,
    AuthorizationMode,
    FileSystem,
    PermissionGroup,
    PosixOwner,
    Protocol,
    SubnetTier,
    Volume,
)
from topology_engine.core.validation import (
    validate_absolute_path,
    validate_mode,
    validate_posix_id,
)

logger = logging.getLogger(__name__)

NFS_PORT = 2049

OwnerLike = Union[PosixOwner, Tuple[int, int]]


def provision(
    address_space: AddressSpace,
    permission_group: PermissionGroup,
    mount_path: str,
    owner: OwnerLike,
    mode: str,
    *,
    name: str = "volume",
    storage_group: Optional[PermissionGroup] = None,
    transit_encryption: bool = True,
    authorization: AuthorizationMode = AuthorizationMode.IAM_ENABLED,
) -> Volume:
    """
    Provision a filesystem reachable only from ``permission_group``.

    Owner and mode are mandatory; there is no default owner because the
    container must be able to write as whatever uid it runs with.

    Args:
        address_space: Fabric whose private subnets host the mount targets
        permission_group: Service-tier group allowed to mount
        mount_path: Absolute access point path
        owner: (uid, gid) or PosixOwner
        mode: Octal permission string, e.g. "755"
        storage_group: Storage tier from ``chain``; built here when omitted

    Returns:
        Volume whose owner/mode are exactly the supplied values
    """
    entity = f"volume/{name}"

    # -------------------------
    # Inputs
    # -------------------------
    validate_absolute_path(mount_path, entity=entity)
    validate_mode(mode, entity=entity)
    posix_owner = _as_owner(owner, entity)

    if not transit_encryption:
        raise ConfigError(
            "transit encryption cannot be disabled",
            entity=entity,
            invariant="shared storage is encrypted in transit",
        )

    if permission_group.internet_facing:
        raise ConfigError(
            f"{permission_group.name} is internet facing; storage is reachable "
            f"only from the service tier",
            entity=entity,
            invariant="no rule may skip a tier",
        )

    private_subnets = address_space.subnets_in(SubnetTier.PRIVATE)
    if not private_subnets:
        raise ConfigError(
            f"{address_space.name} has no private subnets for mount targets",
            entity=entity,
        )

    # -------------------------
    # Storage tier
    # -------------------------
    if storage_group is None:
        storage_group = downstream_group(
            permission_group,
            f"{name}-storage",
            [NFS_PORT],
            description=f"Allow NFS from {permission_group.name}",
        )
    else:
        _check_storage_group(storage_group, permission_group, entity)

    file_system = FileSystem(
        file_system_id=stable_id("fs", address_space.name, name),
        permission_group=storage_group,
        mount_targets=[s.cidr for s in private_subnets],
    )

    access_point = AccessPoint(
        access_point_id=stable_id("fsap", file_system.file_system_id, mount_path),
        file_system_id=file_system.file_system_id,
        path=mount_path,
        owner=posix_owner,
        permissions=mode,
        posix_user=posix_owner,
    )

    volume = Volume(
        name=name,
        file_system=file_system,
        access_point=access_point,
        transit_encryption=True,
        authorization=authorization,
    )

    logger.info(
        f"[storage] provisioned {file_system.file_system_id} at {mount_path} "
        f"owner={posix_owner.uid}:{posix_owner.gid} mode={mode}"
    )

    return volume


def _as_owner(owner: OwnerLike, entity: str) -> PosixOwner:
    if isinstance(owner, PosixOwner):
        uid, gid = owner.uid, owner.gid
    elif isinstance(owner, (tuple, list)) and len(owner) == 2:
        uid, gid = owner
    else:
        raise ValidationError(f"owner must be (uid, gid), got {owner!r}", entity=entity)

    validate_posix_id(uid, name="uid", entity=entity)
    validate_posix_id(gid, name="gid", entity=entity)

    return PosixOwner(uid=uid, gid=gid)


def _check_storage_group(
    storage_group: PermissionGroup,
    permission_group: PermissionGroup,
    entity: str,
) -> None:
    if storage_group.upstream is not permission_group:
        upstream = storage_group.upstream.name if storage_group.upstream else None
        raise ConfigError(
            f"storage group {storage_group.name} is reachable from {upstream}, "
            f"not {permission_group.name}",
            entity=entity,
            invariant="storage tier is reachable only from the service tier",
        )

    if not storage_group.allows(NFS_PORT, Protocol.TCP, permission_group.as_peer()):
        raise ConfigError(
            f"storage group {storage_group.name} does not open NFS port {NFS_PORT}",
            entity=entity,
            invariant="storage tier opens the storage protocol port",
        )
