from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from jsonschema import ValidationError, validate

from ..constants import (
    LEGACY_COMMANDS,
    LEGACY_CONF_FILE,
    LEGACY_LOG_FILE,
    LEGACY_SNAPSHOT_DIR,
    LEGACY_SNAPSHOT_SUFFIX,
    LEGACY_STANDBY_INFO,
    MEMBER_DIR,
    PROXY_DIR,
    SNAP_DIR,
    WAL_DIR,
)
from ..errors import DecodeError, MarkerNotFoundError, StarterError
from ..models import Command, DataDirState, Member, StandbyMarker
from .base import DataDirInspector

STANDBY_INFO_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["Running"],
    "properties": {
        "Running": {"type": "boolean"},
        "Cluster": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "required": ["name", "peerURL", "clientURL"],
                "properties": {
                    "name": {"type": "string"},
                    "state": {"type": "string"},
                    "peerURL": {"type": "string"},
                    "clientURL": {"type": "string"},
                },
            },
        },
        "SyncInterval": {"type": "number"},
    },
}

SNAPSHOT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["state"],
    "properties": {
        "lastIndex": {"type": "integer"},
        "lastTerm": {"type": "integer"},
        "state": {"type": ["object", "string"]},
    },
}

LOG_ENTRY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["commandName"],
    "properties": {
        "index": {"type": "integer"},
        "term": {"type": "integer"},
        "commandName": {"type": "string"},
        "command": {"type": ["object", "null"]},
    },
}


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DecodeError("JSON_INVALID", f"invalid JSON in {path}: {exc}") from exc
    except OSError as exc:
        raise DecodeError("READ_FAILED", f"cannot read {path}: {exc}") from exc


def _check(value: Any, schema: dict[str, Any], where: str) -> None:
    try:
        validate(value, schema)
    except ValidationError as exc:
        raise DecodeError("SHAPE_INVALID", f"{where}: {exc.message}") from exc


def _snapshot_index(name: str) -> int | None:
    stem = name[: -len(LEGACY_SNAPSHOT_SUFFIX)]
    parts = stem.split("_")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        return None
    return int(parts[1])


def _has_entries(path: str) -> bool:
    # a v2 wal directory is never empty once written
    try:
        return bool(os.listdir(path))
    except OSError:
        return False


class FilesystemInspector(DataDirInspector):
    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def classify(self, path: str) -> DataDirState:
        try:
            names = set(os.listdir(path))
        except FileNotFoundError:
            return DataDirState.ABSENT
        except OSError as exc:
            raise StarterError("DATA_DIR_UNREADABLE", f"cannot list {path}: {exc}") from exc
        if not names:
            return DataDirState.ABSENT

        if MEMBER_DIR in names:
            inner = self.classify(os.path.join(path, MEMBER_DIR))
            if inner is DataDirState.LEGACY:
                return DataDirState.UNRECOGNIZED
            return inner
        if {SNAP_DIR, WAL_DIR} <= names and _has_entries(os.path.join(path, WAL_DIR)):
            return DataDirState.CURRENT
        if PROXY_DIR in names:
            return DataDirState.CURRENT_PROXY
        if {LEGACY_SNAPSHOT_DIR, LEGACY_CONF_FILE, LEGACY_LOG_FILE} <= names:
            return DataDirState.LEGACY
        if LEGACY_STANDBY_INFO in names:
            return DataDirState.LEGACY
        return DataDirState.UNRECOGNIZED

    def decode_standby_marker(self, path: str) -> StandbyMarker | None:
        marker_path = Path(path)
        if not marker_path.exists():
            raise MarkerNotFoundError("MARKER_NOT_FOUND", f"no standby info at {path}")
        raw = _read_json(marker_path)
        if raw is None:
            return None
        _check(raw, STANDBY_INFO_SCHEMA, str(marker_path))
        members = tuple(
            Member(name=item["name"], peer_url=item["peerURL"], client_url=item["clientURL"])
            for item in raw.get("Cluster") or []
        )
        return StandbyMarker(
            running=raw["Running"],
            cluster=members,
            sync_interval=float(raw.get("SyncInterval", 0)),
        )

    def decode_latest_snapshot(self, snapshot_dir: str) -> dict[str, Any] | None:
        directory = Path(snapshot_dir)
        if not directory.is_dir():
            return None
        indexed = []
        for entry in directory.iterdir():
            if not entry.name.endswith(LEGACY_SNAPSHOT_SUFFIX):
                continue
            index = _snapshot_index(entry.name)
            if index is None:
                raise DecodeError("SNAPSHOT_NAME_INVALID", f"unexpected snapshot file name: {entry.name}")
            indexed.append((index, entry))
        if not indexed:
            return None

        _, latest = max(indexed, key=lambda item: item[0])
        snapshot = _read_json(latest)
        _check(snapshot, SNAPSHOT_SCHEMA, str(latest))
        state = snapshot["state"]
        if isinstance(state, str):
            try:
                state = json.loads(state)
            except json.JSONDecodeError as exc:
                raise DecodeError("SNAPSHOT_STATE_INVALID", f"invalid store state in {latest}: {exc}") from exc
        if not isinstance(state, dict):
            raise DecodeError("SNAPSHOT_STATE_INVALID", f"store state in {latest} is not an object")
        return state

    def decode_command_log(self, log_file: str) -> list[Command]:
        path = Path(log_file)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise DecodeError("READ_FAILED", f"cannot read {path}: {exc}") from exc

        commands: list[Command] = []
        for idx, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as exc:
                raise DecodeError("JSONL_INVALID", f"invalid JSON at {path}:{idx}: {exc}") from exc
            _check(entry, LOG_ENTRY_SCHEMA, f"{path}:{idx}")

            name = entry["commandName"]
            if name not in LEGACY_COMMANDS:
                raise DecodeError("UNKNOWN_COMMAND", f"unknown command {name!r} at {path}:{idx}")
            body = entry.get("command") or {}
            key = body.get("key")
            value = body.get("value")
            commands.append(
                Command(
                    name=name,
                    key=key if isinstance(key, str) else None,
                    value=value if isinstance(value, str) else None,
                )
            )
        return commands
