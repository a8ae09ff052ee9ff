from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Epoch(str, Enum):
    V1 = "1"
    V2 = "2"
    V2_PROXY = "2.proxy"
    UNKNOWN = "unknown"


class DataDirState(str, Enum):
    LEGACY = "v0.4"
    CURRENT = "v2.0"
    CURRENT_PROXY = "v2.0 proxy"
    ABSENT = "empty"
    UNRECOGNIZED = "unknown"


@dataclass(frozen=True)
class Member:
    name: str
    peer_url: str
    client_url: str


@dataclass(frozen=True)
class StandbyMarker:
    """Legacy record of a node relaying for an existing cluster."""

    running: bool
    cluster: tuple[Member, ...] = ()
    sync_interval: float = 0.0

    def client_urls(self) -> list[str]:
        return [member.client_url for member in self.cluster]

    def initial_cluster(self) -> str:
        return ",".join(f"{member.name}={member.peer_url}" for member in self.cluster)


@dataclass(frozen=True)
class Command:
    name: str
    key: str | None = None
    value: str | None = None


@dataclass(frozen=True)
class TLSInfo:
    ca_file: str = ""
    cert_file: str = ""
    key_file: str = ""

    def empty(self) -> bool:
        return not self.cert_file and not self.key_file

    def scheme(self) -> str:
        return "http" if self.empty() else "https"


@dataclass
class Resolution:
    epoch: Epoch
    extra_args: list[str] = field(default_factory=list)
    unset_env: list[str] = field(default_factory=list)
    trail: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LaunchPlan:
    epoch: Epoch
    executable: str
    argv: tuple[str, ...]
    env: dict[str, str]

    def as_dict(self, include_env: bool = False) -> dict:
        out = {
            "epoch": self.epoch.value,
            "executable": self.executable,
            "argv": list(self.argv),
        }
        if include_env:
            out["env"] = dict(sorted(self.env.items()))
        return out
