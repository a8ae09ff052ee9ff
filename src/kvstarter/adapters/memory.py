from __future__ import annotations

from typing import Any

from ..errors import MarkerNotFoundError, StarterError
from ..models import Command, DataDirState, StandbyMarker
from .base import DataDirInspector

_MISSING = object()


class InMemoryInspector(DataDirInspector):
    """Canned data directory; any field may be an exception to raise instead."""

    def __init__(
        self,
        state: DataDirState | StarterError = DataDirState.ABSENT,
        marker: Any = _MISSING,
        snapshot: dict[str, Any] | StarterError | None = None,
        commands: list[Command] | StarterError | None = None,
        files: set[str] | None = None,
    ) -> None:
        self.state = state
        self.marker = marker
        self.snapshot = snapshot
        self.commands = commands if commands is not None else []
        self.files = set(files or ())
        self.calls: list[str] = []

    @staticmethod
    def _unwrap(value: Any) -> Any:
        if isinstance(value, StarterError):
            raise value
        return value

    def classify(self, path: str) -> DataDirState:
        self.calls.append("classify")
        return self._unwrap(self.state)

    def exists(self, path: str) -> bool:
        return path in self.files

    def decode_standby_marker(self, path: str) -> StandbyMarker | None:
        self.calls.append("standby")
        if self.marker is _MISSING:
            raise MarkerNotFoundError("MARKER_NOT_FOUND", f"no standby info at {path}")
        return self._unwrap(self.marker)

    def decode_latest_snapshot(self, snapshot_dir: str) -> dict[str, Any] | None:
        self.calls.append("snapshot")
        return self._unwrap(self.snapshot)

    def decode_command_log(self, log_file: str) -> list[Command]:
        self.calls.append("log")
        return list(self._unwrap(self.commands))
