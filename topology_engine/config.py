#topology_engine\config.py
"""Operator configuration bundle."""

import ipaddress
import posixpath
import re
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from topology_engine.core.errors import ValidationError


_MODE_PATTERN = re.compile(r"^[0-7]{3,4}$")


class TopologyConfig(BaseModel):
    """Declarative surface: everything an operator supplies for one build."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "onedev-on-ecs"
    region: str = "us-east-1"

    # Network
    cidr: str
    az_count: int = Field(2, ge=2)

    # Application
    image: str = Field(min_length=1)
    domain_name: str = Field(min_length=1)
    record_name: str = "git"

    # Sizing (the substrate decides which pairs are valid)
    cpu: int = Field(gt=0)
    memory_mib: int = Field(gt=0)

    # Storage (NO DEFAULTS)
    mount_path: str
    owner: Tuple[int, int]
    mode: str

    # Edge exposure (NO DEFAULTS)
    https_ingress: str
    ssh_ingress: str

    # Certificate wait
    certificate_timeout_seconds: float = Field(900.0, gt=0)
    certificate_poll_seconds: float = Field(15.0, gt=0)

    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("cidr", "https_ingress", "ssh_ingress")
    @classmethod
    def _ipv4_block(cls, value: str) -> str:
        network = ipaddress.ip_network(value, strict=True)
        if network.version != 4:
            raise ValueError("must be an IPv4 block")
        return str(network)

    @field_validator("mount_path")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value or not posixpath.isabs(value):
            raise ValueError("must be an absolute path")
        return value

    @field_validator("owner")
    @classmethod
    def _posix_owner(cls, value: Tuple[int, int]) -> Tuple[int, int]:
        if any(v < 0 for v in value):
            raise ValueError("uid and gid must be non-negative")
        return value

    @field_validator("mode", mode="before")
    @classmethod
    def _octal_mode(cls, value: Any) -> str:
        if not isinstance(value, str) or not _MODE_PATTERN.match(value):
            raise ValueError("must be an octal permission string like '755'")
        return value

    @field_validator("tags")
    @classmethod
    def _tag_keys(cls, value: Dict[str, str]) -> Dict[str, str]:
        if any(not k for k in value):
            raise ValueError("tag keys must not be empty")
        return value

    @property
    def fqdn(self) -> str:
        return f"{self.record_name}.{self.domain_name}"

    @classmethod
    def from_bundle(cls, bundle: Mapping[str, Any]) -> "TopologyConfig":
        """Build from a plain mapping, reporting problems as ValidationError."""
        try:
            return cls.model_validate(dict(bundle))
        except PydanticValidationError as e:
            raise ValidationError(_summarize(e), entity="config") from e


class TopologySettings(BaseSettings):
    """Configuration bundle from environment variables (TOPOLOGY_*)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TOPOLOGY_",
        case_sensitive=False,
        extra="ignore"
    )

    name: str = "onedev-on-ecs"
    region: str = "us-east-1"

    # Required (NO DEFAULTS)
    cidr: str
    image: str
    domain_name: str
    cpu: int
    memory_mib: int
    mount_path: str
    owner_uid: int
    owner_gid: int
    mode: str
    https_ingress: str
    ssh_ingress: str

    az_count: int = 2
    record_name: str = "git"
    certificate_timeout_seconds: float = 900.0
    certificate_poll_seconds: float = 15.0

    tags: Dict[str, str] = {}

    def to_config(self) -> TopologyConfig:
        data = self.model_dump()
        data["owner"] = (data.pop("owner_uid"), data.pop("owner_gid"))
        return TopologyConfig.from_bundle(data)


def load_config(env_file: Optional[str] = ".env") -> TopologyConfig:
    """Read TOPOLOGY_* settings and validate them."""
    try:
        settings = TopologySettings(_env_file=env_file)
    except PydanticValidationError as e:
        raise ValidationError(_summarize(e), entity="config") from e
    return settings.to_config()


def _summarize(error: PydanticValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "bundle"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)
