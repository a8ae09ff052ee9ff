from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..models import Command, DataDirState, StandbyMarker


class DataDirInspector(ABC):
    """Read-only view of a node's data directory and its legacy artifacts."""

    @abstractmethod
    def classify(self, path: str) -> DataDirState:
        raise NotImplementedError

    @abstractmethod
    def exists(self, path: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def decode_standby_marker(self, path: str) -> StandbyMarker | None:
        """Raise MarkerNotFoundError when absent, DecodeError when unreadable."""
        raise NotImplementedError

    @abstractmethod
    def decode_latest_snapshot(self, snapshot_dir: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def decode_command_log(self, log_file: str) -> list[Command]:
        raise NotImplementedError
